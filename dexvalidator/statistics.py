"""Persisted validation statistics snapshot."""

from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from pydantic import ValidationError

from .exceptions import PersistedStateError
from .models import FieldStatus, ValidationStatistics, utc_now

logger = logging.getLogger(__name__)


class StatisticsStore:
    """Read/write access to ``validation-statistics.json``.

    Each save replaces the whole file with the given snapshot; statistics of
    different runs are never merged.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.statistics: Dict[str, ValidationStatistics] = {}

    def __len__(self) -> int:
        return len(self.statistics)

    def __iter__(self) -> Iterator[ValidationStatistics]:
        return iter(self.statistics.values())

    def get(self, pokemon_id: str) -> Optional[ValidationStatistics]:
        return self.statistics.get(pokemon_id)

    def load(self) -> bool:
        """Load the snapshot; return ``False`` when no file exists yet."""
        self.statistics.clear()
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No statistics file at %s", self.path)
            return False
        try:
            data = json.loads(text)
            entries = [ValidationStatistics.model_validate(e) for e in data["statistics"]]
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse %s: %s", self.path, exc)
            raise PersistedStateError(self.path, str(exc)) from exc
        except (KeyError, TypeError, ValidationError) as exc:
            logger.error("Unexpected statistics layout in %s: %s", self.path, exc)
            raise PersistedStateError(self.path, f"unexpected layout: {exc}") from exc
        self.statistics = {entry.id: entry for entry in entries}
        return True

    def save(self, snapshot: Iterable[ValidationStatistics]) -> None:
        self.statistics = {entry.id: entry for entry in snapshot}
        data = {
            "metadata": {
                "description": "Pokemon validation statistics and field-level validation status",
                "lastUpdated": utc_now(),
                "validationSystem": "Granular Field Validation (75% external + 25% in-game)",
            },
            "statistics": [
                entry.model_dump(mode="json", by_alias=True)
                for entry in self.statistics.values()
            ],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        logger.info("Saved statistics for %d Pokemon to %s", len(self.statistics), self.path)

    def average_completeness(self) -> float:
        if not self.statistics:
            return 0.0
        return sum(s.completeness for s in self.statistics.values()) / len(self.statistics)

    def field_status_counts(self) -> Dict[str, int]:
        """Count field statuses across every Pokemon in the snapshot."""
        counts: Counter = Counter({status.value: 0 for status in FieldStatus})
        for entry in self.statistics.values():
            for info in entry.field_validation.values():
                counts[info.status.value] += 1
        result = dict(counts)
        result["total"] = sum(counts.values())
        return result

    def ranked(self) -> List[ValidationStatistics]:
        return sorted(self.statistics.values(), key=lambda s: s.completeness, reverse=True)
