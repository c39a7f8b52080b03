"""dexvalidator package."""

from .comparator import compare_entity, compare_field, values_equal
from .config import Settings, build_settings, load_config
from .entities import EntityStore
from .exceptions import (
    ConfigError,
    DexValidatorError,
    EntityNotFoundError,
    IssueNotFoundError,
    PersistedStateError,
    UnknownFieldError,
)
from .fields import FIELD_ACCESSORS, REQUIRED_FIELDS, get_field_value
from .helpers import safe_request
from .models import (
    ExternalData,
    FieldStatus,
    FieldValidation,
    Issue,
    Progress,
    Severity,
    SourceData,
    ValidationPhase,
    ValidationResult,
    ValidationStatistics,
)
from .orchestrator import Validator
from .overrides import OverrideStore, issue_signature
from .scorer import score_entity
from .statistics import StatisticsStore

__all__ = [
    "compare_entity",
    "compare_field",
    "values_equal",
    "Settings",
    "build_settings",
    "load_config",
    "EntityStore",
    "ConfigError",
    "DexValidatorError",
    "EntityNotFoundError",
    "IssueNotFoundError",
    "PersistedStateError",
    "UnknownFieldError",
    "FIELD_ACCESSORS",
    "REQUIRED_FIELDS",
    "get_field_value",
    "safe_request",
    "ExternalData",
    "FieldStatus",
    "FieldValidation",
    "Issue",
    "Progress",
    "Severity",
    "SourceData",
    "ValidationPhase",
    "ValidationResult",
    "ValidationStatistics",
    "Validator",
    "OverrideStore",
    "issue_signature",
    "score_entity",
    "StatisticsStore",
]
