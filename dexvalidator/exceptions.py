"""Exception hierarchy for dexvalidator."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional


class DexValidatorError(Exception):
    """Base class for errors reported to the operator."""


class ConfigError(DexValidatorError):
    """Raised when a configuration file exists but cannot be parsed."""


class PersistedStateError(DexValidatorError):
    """Raised when an override or statistics file is malformed.

    Missing files are never an error; a file that exists but cannot be read
    back must not be silently replaced by an empty store.
    """

    def __init__(self, path: Path, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Malformed state file {self.path}: {reason}")


class UnknownFieldError(DexValidatorError):
    def __init__(self, field: str, valid_fields: Optional[Iterable[str]] = None):
        self.field = field
        self.valid_fields = list(valid_fields or [])
        message = f'Invalid field name "{field}"'
        if self.valid_fields:
            message += f" (valid fields: {', '.join(self.valid_fields)})"
        super().__init__(message)


class EntityNotFoundError(DexValidatorError):
    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"Pokemon #{entity_id} not found")


class IssueNotFoundError(DexValidatorError):
    def __init__(self, entity_id: str, field: str, entity_name: Optional[str] = None):
        self.entity_id = entity_id
        self.field = field
        label = entity_name or f"Pokemon #{entity_id}"
        super().__init__(f'No unaccepted issue found for field "{field}" in {label}')
