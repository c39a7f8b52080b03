"""Operator overrides: accepted issues and in-game validated fields.

Two independent record kinds are kept:

``accepted issues``
    ``(pokemon id, signature)`` pairs.  The signature covers the field, the
    severity and the current value, so an acceptance stops applying as soon
    as the underlying data or the kind of discrepancy changes.

``in-game validated fields``
    ``(pokemon id, field)`` pairs confirmed by playing the game.  They do not
    depend on the value and survive any later data change.

Both are persisted as JSON files.  A missing file is an empty store; a file
that cannot be parsed raises :class:`PersistedStateError`.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set

from .exceptions import PersistedStateError
from .fields import FIELD_ACCESSORS
from .models import Issue, utc_now

logger = logging.getLogger(__name__)

IN_GAME_SCHEMA_VERSION = 2


def issue_signature(issue: Issue) -> str:
    """Return a stable identity for *issue*.

    The value part is a SHA-256 digest of canonical JSON (sorted keys), which
    keeps mappings with the same content but different key order equal.  The
    field name stays readable as the prefix.
    """

    payload = json.dumps(
        [issue.field, issue.severity.value, issue.current],
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"{issue.field}:{issue.severity.value}:{digest}"


def signature_field(signature: str) -> str:
    return signature.split(":", 1)[0]


def _read_json(path: Path) -> Optional[Any]:
    """Return parsed JSON from *path* or ``None`` when the file is absent."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("No state file at %s, starting empty", path)
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse %s: %s", path, exc)
        raise PersistedStateError(path, str(exc)) from exc


def migrate_in_game_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Upgrade an in-game validation payload to the current schema.

    Version 1 files may contain entries without a ``fields`` list, meaning
    the whole Pokemon was validated.  Those entries are expanded to every
    known field, whatever subset a run is configured to validate.  Newer
    payloads are returned unchanged.
    """

    metadata = dict(payload.get("metadata") or {})
    version = metadata.get("schemaVersion", 1)
    if version >= IN_GAME_SCHEMA_VERSION:
        return dict(payload)
    validated = []
    for entry in payload.get("validated", []):
        entry = dict(entry)
        if entry.get("fields") is None:
            logger.info(
                "Upgrading legacy in-game validation for #%s to all fields", entry.get("id")
            )
            entry["fields"] = list(FIELD_ACCESSORS)
        validated.append(entry)
    metadata["schemaVersion"] = IN_GAME_SCHEMA_VERSION
    return {"metadata": metadata, "validated": validated}


class OverrideStore:
    """In-memory view of both override files with explicit load/save."""

    def __init__(self, accepted_path: Path, in_game_path: Path):
        self.accepted_path = Path(accepted_path)
        self.in_game_path = Path(in_game_path)
        # pokemon id -> signature -> accepted at
        self.accepted: Dict[str, Dict[str, str]] = {}
        self.in_game: Dict[str, Set[str]] = {}

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> "OverrideStore":
        self.load_accepted()
        self.load_in_game()
        return self

    def load_accepted(self) -> bool:
        """Load accepted issues; return ``False`` when no file exists."""
        data = _read_json(self.accepted_path)
        self.accepted.clear()
        if data is None:
            return False
        if not isinstance(data, dict):
            raise PersistedStateError(self.accepted_path, "expected an object keyed by Pokemon id")
        try:
            for pokemon_id, entry in data.items():
                records = {
                    item["signature"]: item.get("acceptedAt") or utc_now()
                    for item in entry["acceptedIssues"]
                }
                if records:
                    self.accepted[str(pokemon_id)] = records
        except (KeyError, TypeError, AttributeError) as exc:
            logger.error("Unexpected accepted issues layout in %s: %s", self.accepted_path, exc)
            raise PersistedStateError(self.accepted_path, f"unexpected layout: {exc}") from exc
        return True

    def load_in_game(self) -> bool:
        """Load in-game validations; return ``False`` when no file exists."""
        data = _read_json(self.in_game_path)
        self.in_game.clear()
        if data is None:
            return False
        if not isinstance(data, dict):
            raise PersistedStateError(self.in_game_path, "expected an object")
        try:
            data = migrate_in_game_payload(data)
            for entry in data.get("validated", []):
                fields = set(entry["fields"])
                if fields:
                    self.in_game[str(entry["id"])] = fields
        except (KeyError, TypeError, AttributeError) as exc:
            logger.error("Unexpected in-game validation layout in %s: %s", self.in_game_path, exc)
            raise PersistedStateError(self.in_game_path, f"unexpected layout: {exc}") from exc
        return True

    def save(self, names: Optional[Mapping[str, str]] = None) -> None:
        self.save_accepted(names)
        self.save_in_game(names)

    def save_accepted(self, names: Optional[Mapping[str, str]] = None) -> None:
        names = names or {}
        data = {
            pokemon_id: {
                "name": names.get(pokemon_id) or f"Pokemon #{pokemon_id}",
                "acceptedIssues": [
                    {"signature": sig, "acceptedAt": accepted_at}
                    for sig, accepted_at in records.items()
                ],
            }
            for pokemon_id, records in self.accepted.items()
        }
        self.accepted_path.parent.mkdir(parents=True, exist_ok=True)
        self.accepted_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        logger.info("Saved %d accepted issues to %s", self.accepted_count(), self.accepted_path)

    def save_in_game(self, names: Optional[Mapping[str, str]] = None) -> None:
        names = names or {}
        now = utc_now()
        data = {
            "metadata": {
                "description": "Pokemon fields that have been validated in-game",
                "lastUpdated": now,
                "schemaVersion": IN_GAME_SCHEMA_VERSION,
            },
            "validated": [
                {
                    "id": pokemon_id,
                    "name": names.get(pokemon_id) or f"Pokemon #{pokemon_id}",
                    "fields": sorted(fields, key=self._field_order),
                    "lastUpdated": now,
                }
                for pokemon_id, fields in self.in_game.items()
            ],
        }
        self.in_game_path.parent.mkdir(parents=True, exist_ok=True)
        self.in_game_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        logger.info("Saved in-game validation for %d Pokemon to %s", len(self.in_game), self.in_game_path)

    @staticmethod
    def _field_order(field: str):
        if field in FIELD_ACCESSORS:
            return (0, list(FIELD_ACCESSORS).index(field), field)
        return (1, 0, field)

    # ------------------------------------------------------------------
    # Accepted issues
    # ------------------------------------------------------------------

    def accept_issue(self, pokemon_id: str, signature: str) -> None:
        self.accepted.setdefault(pokemon_id, {}).setdefault(signature, utc_now())

    def remove_accepted_issue(self, pokemon_id: str, signature: str) -> bool:
        records = self.accepted.get(pokemon_id)
        if not records or signature not in records:
            return False
        del records[signature]
        if not records:
            del self.accepted[pokemon_id]
        return True

    def remove_accepted_for_field(self, pokemon_id: str, field: str) -> int:
        """Drop every accepted signature recorded for *field*."""
        records = self.accepted.get(pokemon_id, {})
        matching = [sig for sig in records if signature_field(sig) == field]
        for sig in matching:
            self.remove_accepted_issue(pokemon_id, sig)
        return len(matching)

    def is_accepted(self, pokemon_id: str, issue: Issue) -> bool:
        return issue_signature(issue) in self.accepted.get(pokemon_id, {})

    def accepted_signatures(self, pokemon_id: str) -> List[str]:
        return list(self.accepted.get(pokemon_id, {}))

    def accepted_count(self) -> int:
        return sum(len(records) for records in self.accepted.values())

    # ------------------------------------------------------------------
    # In-game validation
    # ------------------------------------------------------------------

    def set_in_game_validated(self, pokemon_id: str, field: str) -> None:
        self.in_game.setdefault(pokemon_id, set()).add(field)

    def remove_in_game_validated(self, pokemon_id: str, field: str) -> bool:
        fields = self.in_game.get(pokemon_id)
        if not fields or field not in fields:
            return False
        fields.discard(field)
        if not fields:
            del self.in_game[pokemon_id]
        return True

    def is_in_game_validated(self, pokemon_id: str, field: str) -> bool:
        return field in self.in_game.get(pokemon_id, set())

    def in_game_fields(self, pokemon_id: str) -> Set[str]:
        return set(self.in_game.get(pokemon_id, set()))

    def in_game_count(self) -> int:
        return sum(len(fields) for fields in self.in_game.values())
