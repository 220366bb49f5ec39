from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from borrower_match.models.config_models import (
    AdvisoryConfig,
    DatabaseConfig,
    ImportConfig,
    MatchingConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config (e.g. config/matching.yml)
- Validate keys against the JSON schema shipped next to this module
- Apply defaults for everything the file leaves out
"""

SCHEMA_PATH = Path(__file__).parent / "schema.json"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or if the
            config data fails schema validation (unknown keys, wrong types,
            out-of-range values).
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


def config_from_dict(data: dict[str, Any]) -> ImportConfig:
    """Build an ImportConfig from already-parsed (and validated) data."""
    defaults = MatchingConfig()
    hard = data.get("hard_confidence", {})
    matching = MatchingConfig(
        rule_confidence=data.get("rule_confidence", defaults.rule_confidence),
        advisory_min_confidence=data.get("advisory_min_confidence", defaults.advisory_min_confidence),
        phone_country_code=data.get("phone_country_code", defaults.phone_country_code),
        phone_confidence=hard.get("phone", defaults.phone_confidence),
        national_id_confidence=hard.get("nationalId", defaults.national_id_confidence),
        email_confidence=hard.get("email", defaults.email_confidence),
        soft_threshold=data.get("soft_threshold", defaults.soft_threshold),
        soft_confidence=data.get("soft_confidence", defaults.soft_confidence),
        orphan_fuzzy_threshold=data.get("orphan_fuzzy_threshold", defaults.orphan_fuzzy_threshold),
    )

    adv_defaults = AdvisoryConfig()
    adv_raw = data.get("advisory", {})
    advisory = AdvisoryConfig(
        enabled=adv_raw.get("enabled", adv_defaults.enabled),
        timeout_seconds=adv_raw.get("timeout_seconds", adv_defaults.timeout_seconds),
        max_calls_per_minute=adv_raw.get("max_calls_per_minute", adv_defaults.max_calls_per_minute),
    )

    db_raw = data.get("database", {})
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )

    base = ImportConfig()
    return ImportConfig(
        matching=matching,
        advisory=advisory,
        database=db,
        concurrency_limit=data.get("concurrency_limit", base.concurrency_limit),
        auto_commit_needs_review=data.get("auto_commit_needs_review", base.auto_commit_needs_review),
        sample_rows=data.get("sample_rows", base.sample_rows),
    )


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)
    return config_from_dict(data)
