"""Configuration helpers for the validator."""

from __future__ import annotations

from pathlib import Path
import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigError, UnknownFieldError
from .fields import REQUIRED_FIELDS, validate_field_list

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("dexvalidator.json")
DEFAULT_DATA_DIR = Path("data")


class Settings(BaseModel):
    """Runtime settings for a validation session."""

    data_dir: Path = DEFAULT_DATA_DIR
    required_fields: List[str] = Field(default_factory=lambda: list(REQUIRED_FIELDS))
    delay: float = 1.0
    timeout: float = 10.0
    retries: int = 3
    persist_each_entity: bool = False

    @field_validator("required_fields")
    @classmethod
    def _known_fields(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("must name at least one field")
        try:
            return validate_field_list(value)
        except UnknownFieldError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("delay", "timeout")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @property
    def pokemon_path(self) -> Path:
        return self.data_dir / "shared" / "pokemon-base.json"

    @property
    def accepted_issues_path(self) -> Path:
        return self.data_dir / "accepted-issues.json"

    @property
    def in_game_path(self) -> Path:
        return self.data_dir / "in-game-validated.json"

    @property
    def statistics_path(self) -> Path:
        return self.data_dir / "validation-statistics.json"

    @property
    def run_log_path(self) -> Path:
        return self.data_dir / "run_log.jsonl"

    @property
    def reports_dir(self) -> Path:
        return self.data_dir.parent / "reports"


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from *path* if it exists.

    Parameters
    ----------
    path:
        Optional path to a JSON configuration file. When omitted the function
        looks for ``dexvalidator.json`` in the working directory.  A missing
        file yields an empty dictionary; a file that is not valid JSON raises
        :class:`~dexvalidator.exceptions.ConfigError`.
    """

    cfg_path = path or DEFAULT_CONFIG_PATH
    try:
        with open(cfg_path, encoding="utf-8") as fh:
            data = json.load(fh)
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse config %s: %s", cfg_path, exc)
        raise ConfigError(f"Invalid config file {cfg_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {cfg_path} must contain a JSON object")
    return data


def build_settings(config: Optional[Dict[str, Any]] = None, **overrides: Any) -> Settings:
    """Merge *config* with explicit *overrides* into a :class:`Settings`.

    Supported keys: ``data_dir``, ``required_fields``, ``delay``,
    ``timeout``, ``retries`` and ``persist_each_entity``.  Overrides with a
    value of ``None`` are ignored so CLI defaults do not mask the file.
    """

    values = dict(config or {})
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return Settings.model_validate(values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
