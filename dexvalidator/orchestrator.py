"""Validation orchestrator: fetch, compare, score and persist."""

import logging
import time
from typing import Callable, Iterable, List, Optional, Sequence

from .comparator import compare_entity
from .entities import EntityStore
from .exceptions import IssueNotFoundError
from .fields import REQUIRED_FIELDS, require_field
from .models import (
    Issue,
    Progress,
    Severity,
    ValidationPhase,
    ValidationResult,
    ValidationStatistics,
)
from .overrides import OverrideStore
from .scorer import apply_accepted_issues, score_entity
from .sources import Fetcher
from .statistics import StatisticsStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Progress], None]

TEST_MODE_LIMIT = 3


class Validator:
    """Validate Pokémon one at a time against an external fetcher.

    All collaborators are passed in: the entity store, the fetcher, the
    override store and the statistics store.  Nothing is shared through
    module state.
    """

    def __init__(
        self,
        entities: EntityStore,
        fetcher: Fetcher,
        overrides: OverrideStore,
        statistics: StatisticsStore,
        *,
        fields: Sequence[str] = REQUIRED_FIELDS,
        delay: float = 1.0,
        persist_each_entity: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.entities = entities
        self.fetcher = fetcher
        self.overrides = overrides
        self.statistics = statistics
        self.fields = list(fields)
        self.delay = delay
        self.persist_each_entity = persist_each_entity
        self.progress_callback = progress_callback
        self.results: List[ValidationResult] = []

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def entities_needing_validation(self) -> List[str]:
        return self.entities.needing_validation()

    def select_entities(
        self,
        pokemon: Optional[str] = None,
        limit: Optional[int] = None,
        test: bool = False,
    ) -> List[str]:
        """Pick the Pokémon to validate.

        Test mode takes the first three and ignores the other filters.
        ``pokemon`` matches an exact id or a case-insensitive name fragment.
        """
        candidates = self.entities_needing_validation()
        if test:
            return candidates[:TEST_MODE_LIMIT]
        if pokemon:
            needle = pokemon.lower()
            candidates = [
                pid
                for pid in candidates
                if pid == pokemon or needle in self.entities.name_of(pid).lower()
            ]
        if limit:
            candidates = candidates[:limit]
        return candidates

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _report(self, current: int, total: int, pokemon_id: str, phase: ValidationPhase) -> None:
        if self.progress_callback is None:
            return
        self.progress_callback(
            Progress(
                current=current,
                total=total,
                entity_id=pokemon_id,
                entity_name=self.entities.name_of(pokemon_id),
                phase=phase,
            )
        )

    def validate_entity(
        self, pokemon_id: str, *, position: int = 1, total: int = 1
    ) -> ValidationResult:
        """Validate one Pokémon.

        A failure while fetching never propagates: the result is marked
        ``error`` with a single ``external_fetch`` issue and zero completeness.
        """
        pokemon = self.entities.get(pokemon_id)
        result = ValidationResult(id=pokemon_id, name=self.entities.name_of(pokemon_id))

        result.status = ValidationPhase.fetching
        self._report(position, total, pokemon_id, result.status)
        try:
            external = self.fetcher.fetch(pokemon_id, result.name)
        except Exception as e:
            logger.error("Validation of %s (#%s) failed: %s", result.name, pokemon_id, e)
            result.status = ValidationPhase.error
            result.error = str(e)
            result.completeness = 0
            result.issues = [
                Issue(
                    field="external_fetch",
                    severity=Severity.error,
                    message=f"Failed to fetch external data: {e}",
                )
            ]
            self._report(position, total, pokemon_id, result.status)
            return result
        result.external_data = external

        result.status = ValidationPhase.comparing
        self._report(position, total, pokemon_id, result.status)
        result.issues, result.suggestions = compare_entity(pokemon, external, self.fields)
        result.accepted_issues = apply_accepted_issues(pokemon_id, result.issues, self.overrides)
        result.total_issues = sum(1 for issue in result.issues if not issue.accepted)

        card = score_entity(pokemon_id, result.issues, self.overrides, self.fields)
        result.status = ValidationPhase.scored
        result.completeness = card.completeness
        result.external_accuracy = card.external_accuracy
        result.in_game_validation = card.in_game_validation
        result.field_detail = card.field_detail
        self._report(position, total, pokemon_id, result.status)

        result.status = ValidationPhase.completed
        self._report(position, total, pokemon_id, result.status)
        logger.info(
            "%s (#%s): %d%% complete, %d open issues",
            result.name,
            pokemon_id,
            result.completeness,
            result.total_issues,
        )
        return result

    def validate_many(self, pokemon_ids: Iterable[str]) -> List[ValidationResult]:
        """Validate Pokémon in order and overwrite the statistics snapshot."""
        pokemon_ids = list(pokemon_ids)
        total = len(pokemon_ids)
        results: List[ValidationResult] = []
        for index, pokemon_id in enumerate(pokemon_ids, start=1):
            self._report(index, total, pokemon_id, ValidationPhase.pending)
            results.append(self.validate_entity(pokemon_id, position=index, total=total))
            if self.persist_each_entity:
                self.save_statistics(results)
            if index < total and self.delay:
                time.sleep(self.delay)
        self.results = results
        self.save_statistics(results)
        return results

    def save_statistics(self, results: Sequence[ValidationResult]) -> None:
        self.statistics.save(ValidationStatistics.from_result(r) for r in results)

    def find_open_issue(self, pokemon_id: str, field: str) -> Issue:
        """Fetch and compare one Pokémon and return its unaccepted issue for *field*."""
        require_field(field, self.fields)
        pokemon = self.entities.get(pokemon_id)
        name = self.entities.name_of(pokemon_id)
        external = self.fetcher.fetch(pokemon_id, name)
        issues, _ = compare_entity(pokemon, external, [field])
        apply_accepted_issues(pokemon_id, issues, self.overrides)
        for issue in issues:
            if issue.field == field and not issue.accepted:
                return issue
        raise IssueNotFoundError(pokemon_id, field, name)
