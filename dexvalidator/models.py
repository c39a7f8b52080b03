from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(tz=timezone.utc).isoformat()


class Severity(str, Enum):
    """Raw outcome of comparing one field against external sources."""

    missing_attribute = "missing_attribute"
    inaccurate = "inaccurate"
    partial_match = "partial_match"
    source_conflict = "source_conflict"
    no_reference = "no_reference"
    error = "error"


class FieldStatus(str, Enum):
    """Display status of a field once the override layer is applied."""

    accurate = "accurate"
    accepted_override = "accepted_override"
    in_game_validated = "in_game_validated"
    missing_attribute = "missing_attribute"
    inaccurate = "inaccurate"
    partial_match = "partial_match"
    source_conflict = "source_conflict"
    no_reference = "no_reference"


class ValidationPhase(str, Enum):
    pending = "pending"
    fetching = "fetching"
    comparing = "comparing"
    scored = "scored"
    completed = "completed"
    error = "error"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)


class Issue(_CamelModel):
    """A discrepancy found for a single field."""

    field: str
    severity: Severity
    message: str
    current: Any = None
    expected: Any = None
    source: Optional[str] = None
    matching_source: Optional[str] = Field(default=None, alias="matchingSource")
    matching_value: Any = Field(default=None, alias="matchingValue")
    conflicting_source: Optional[str] = Field(default=None, alias="conflictingSource")
    conflicting_value: Any = Field(default=None, alias="conflictingValue")
    source_values: Optional[Dict[str, Any]] = Field(default=None, alias="sourceValues")
    accepted: bool = False
    accepted_at: Optional[str] = Field(default=None, alias="acceptedAt")


class Suggestion(BaseModel):
    field: str
    action: str = "correct"
    value: Any = None
    source: str


class SourceData(BaseModel):
    """Field values supplied by one external source.

    ``data`` is ``None`` when the source could not be fetched; a field missing
    from ``data`` means the source has nothing to say about it.
    """

    source: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    timestamp: str = Field(default_factory=utc_now)

    def has_value(self, field: str) -> bool:
        return self.data is not None and field in self.data

    def value(self, field: str) -> Any:
        return (self.data or {}).get(field)


class ExternalData(_CamelModel):
    entity_id: str = Field(alias="pokemonId")
    entity_name: str = Field(alias="pokemonName")
    sources: List[SourceData] = Field(default_factory=list)
    timestamp: str = Field(default_factory=utc_now)

    def source_values(self, field: str) -> List[Tuple[str, Any]]:
        """Return ``(source, value)`` pairs for *field* in precedence order."""
        return [(s.source, s.value(field)) for s in self.sources if s.has_value(field)]


class DataSourceReport(BaseModel):
    """Information about the success of fetching a particular data source."""

    source_name: str
    pokemon_count: int
    success: bool
    error_message: Optional[str] = None


class FieldValidation(_CamelModel):
    accurate: bool
    in_game_validated: bool = Field(alias="inGameValidated")
    has_accepted_issue: bool = Field(alias="hasAcceptedIssue")
    status: FieldStatus


class ScoreCard(BaseModel):
    """Completeness score of one Pokemon.

    ``external_accuracy`` and ``in_game_validation`` are unrounded percentage
    points (0-75 and 0-25); ``completeness`` is their sum rounded half up.
    """

    external_accuracy: float
    in_game_validation: float
    completeness: int
    accurate_fields: int
    in_game_fields: int
    total_fields: int
    field_detail: Dict[str, FieldValidation] = Field(default_factory=dict)


class ValidationResult(_CamelModel):
    id: str
    name: str
    timestamp: str = Field(default_factory=utc_now)
    status: ValidationPhase = ValidationPhase.pending
    completeness: int = 0
    external_accuracy: float = Field(default=0.0, alias="externalAccuracy")
    in_game_validation: float = Field(default=0.0, alias="inGameValidation")
    issues: List[Issue] = Field(default_factory=list)
    suggestions: List[Suggestion] = Field(default_factory=list)
    field_detail: Dict[str, FieldValidation] = Field(default_factory=dict, alias="fieldValidation")
    external_data: Optional[ExternalData] = Field(default=None, alias="externalData")
    total_issues: int = Field(default=0, alias="totalIssues")
    accepted_issues: int = Field(default=0, alias="acceptedIssues")
    error: Optional[str] = None


class ValidationStatistics(_CamelModel):
    """Persisted per-Pokemon snapshot used for reporting between runs."""

    id: str
    name: str
    completeness: int
    last_validated: str = Field(alias="lastValidated")
    field_validation: Dict[str, FieldValidation] = Field(
        default_factory=dict, alias="fieldValidation"
    )
    external_accuracy: float = Field(alias="externalAccuracy")
    in_game_validation: float = Field(alias="inGameValidation")
    total_issues: int = Field(default=0, alias="totalIssues")
    accepted_issues: int = Field(default=0, alias="acceptedIssues")
    status: str = "completed"
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: ValidationResult) -> "ValidationStatistics":
        return cls(
            id=result.id,
            name=result.name,
            completeness=result.completeness,
            last_validated=result.timestamp,
            field_validation=result.field_detail,
            external_accuracy=result.external_accuracy,
            in_game_validation=result.in_game_validation,
            total_issues=result.total_issues,
            accepted_issues=result.accepted_issues,
            status=result.status.value,
            error=result.error,
        )


class Progress(BaseModel):
    current: int
    total: int
    entity_id: str
    entity_name: str
    phase: ValidationPhase
