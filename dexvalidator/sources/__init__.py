"""External reference sources for Pokémon data."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol

import requests

from ..helpers import build_session
from ..models import DataSourceReport, ExternalData, SourceData
from . import bulbapedia, serebii

logger = logging.getLogger(__name__)

# Precedence order used when both sources supply a value.
SOURCE_ORDER = [bulbapedia.SOURCE_NAME, serebii.SOURCE_NAME]


class Fetcher(Protocol):
    def fetch(self, pokemon_id: str, pokemon_name: str) -> ExternalData:
        ...


class WikiFetcher:
    """Fetch a Pokémon from Bulbapedia and Serebii over HTTP.

    ``dex_ids`` maps lower-cased Pokémon names to ids so evolution targets
    given by name are compared as dex numbers.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout: float = 10.0,
        retries: int = 3,
        dex_ids: Optional[Mapping[str, str]] = None,
    ):
        self.session = session or build_session()
        self.timeout = timeout
        self.retries = retries
        self.dex_ids = dict(dex_ids or {})
        self.metrics: Dict[str, Any] = {"requests": 0, "errors": 0, "latencies": []}
        self._counts: Dict[str, List[int]] = {name: [0, 0] for name in SOURCE_ORDER}
        self._last_error: Dict[str, Optional[str]] = {name: None for name in SOURCE_ORDER}

    def resolve_evolutions(self, source: SourceData) -> None:
        chain = (source.data or {}).get("evolutionChain")
        for step in chain or []:
            target = str(step.get("evolves_to", ""))
            if not target.isdigit():
                resolved = self.dex_ids.get(target.lower())
                if resolved is None:
                    logger.debug("Unknown evolution target %r from %s", target, source.source)
                else:
                    step["evolves_to"] = resolved

    def fetch(self, pokemon_id: str, pokemon_name: str) -> ExternalData:
        logger.info("=== Fetching data for %s (#%s) ===", pokemon_name, pokemon_id)
        kwargs = {"timeout": self.timeout, "retries": self.retries}
        sources = [
            bulbapedia.fetch(pokemon_name, self.session, self.metrics, **kwargs),
            serebii.fetch(pokemon_id, self.session, self.metrics, **kwargs),
        ]
        for source in sources:
            ok, failed = self._counts[source.source]
            if source.data is None:
                self._counts[source.source] = [ok, failed + 1]
                self._last_error[source.source] = source.error
            else:
                self._counts[source.source] = [ok + 1, failed]
                self.resolve_evolutions(source)
        return ExternalData(entity_id=pokemon_id, entity_name=pokemon_name, sources=sources)

    def reports(self) -> List[DataSourceReport]:
        """Per-source summary of the fetches made so far."""
        reports = []
        for name in SOURCE_ORDER:
            ok, failed = self._counts[name]
            reports.append(
                DataSourceReport(
                    source_name=name,
                    pokemon_count=ok,
                    success=failed == 0,
                    error_message=self._last_error[name],
                )
            )
        return reports


__all__ = ["Fetcher", "WikiFetcher", "SOURCE_ORDER", "bulbapedia", "serebii"]
