from __future__ import annotations

from pathlib import Path

import pytest

from borrower_match.config.loader import ConfigError, config_from_dict, load_config
from borrower_match.models.config_models import ImportConfig, MatchingConfig


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.concurrency_limit == 4
    assert cfg.matching.phone_country_code == "260"
    assert cfg.matching.hard_confidence("email") == 0.9
    assert cfg.advisory.timeout_seconds == 2
    assert cfg.advisory.max_calls_per_minute == 5
    assert cfg.database.user == "appuser"
    assert cfg.auto_commit_needs_review is False


def test_empty_file_gives_defaults(temp_workdir: Path):
    path = temp_workdir / "config" / "import.yml"
    path.write_text("", encoding="utf-8")
    assert load_config(path) == ImportConfig()


def test_partial_override_keeps_other_defaults():
    cfg = config_from_dict({"soft_threshold": 0.9, "hard_confidence": {"phone": 0.99}})
    assert cfg.matching.soft_threshold == 0.9
    assert cfg.matching.phone_confidence == 0.99
    assert cfg.matching.national_id_confidence == MatchingConfig().national_id_confidence
    assert cfg.concurrency_limit == 8


def test_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(temp_workdir / "config" / "nope.yml")


def test_invalid_yaml(temp_workdir: Path):
    path = temp_workdir / "config" / "import.yml"
    path.write_text("rule_confidence: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(path)


def test_non_mapping_root(temp_workdir: Path):
    path = temp_workdir / "config" / "import.yml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(path)
