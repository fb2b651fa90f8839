from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Locate the YAML config (explicit path > $QUIZ_INGEST_CONFIG > config/quiz_ingest.yml)
- Validate it against the bundled JSON Schema (config_schema.json)
- Apply defaults for every omitted key

A missing default config file is not an error (all keys have defaults); a
missing file that was asked for explicitly is.
"""

__all__ = [
    "ConfigError",
    "QuizIngestConfig",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "resolve_config_path",
    "load_config",
]

CONFIG_ENV_VAR = "QUIZ_INGEST_CONFIG"
DEFAULT_CONFIG_PATH = Path("config") / "quiz_ingest.yml"
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class QuizIngestConfig:
    question_bank_path: Path = Path("data") / "question_bank.json"
    backups_directory: Path = Path("data") / "backups"
    logs_directory: Path = Path("logs")
    duplicate_policy: str = "text"
    header_failure_scope: str = "file"
    defaults: dict[str, Any] = field(default_factory=dict)  # merge_strategy / strictness / headers_map
    presets: dict[str, list[str]] = field(default_factory=dict)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: the schema file is missing or invalid, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def resolve_config_path(path: Path | None = None) -> tuple[Path, bool]:
    """Return (config path, explicitly requested)."""
    if path is not None:
        return Path(path), True
    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        return Path(env), True
    return DEFAULT_CONFIG_PATH, False


def load_config(path: Path | None = None) -> QuizIngestConfig:
    config_path, explicit = resolve_config_path(path)
    if not config_path.exists():
        if explicit:
            raise ConfigError(f"config file not found: {config_path}")
        return QuizIngestConfig()
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {config_path}")

    _validate_config_schema(data)

    base = QuizIngestConfig()
    defaults = dict(data.get("defaults") or {})
    if data.get("headers_map"):
        defaults["headers_map"] = dict(data["headers_map"])
    return QuizIngestConfig(
        question_bank_path=Path(data.get("question_bank_path", base.question_bank_path)),
        backups_directory=Path(data.get("backups_directory", base.backups_directory)),
        logs_directory=Path(data.get("logs_directory", base.logs_directory)),
        duplicate_policy=data.get("duplicate_policy", base.duplicate_policy),
        header_failure_scope=data.get("header_failure_scope", base.header_failure_scope),
        defaults=defaults,
        presets={k: list(v) for k, v in (data.get("presets") or {}).items()},
    )
