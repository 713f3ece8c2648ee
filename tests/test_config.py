from __future__ import annotations

import json

import pytest

from filekeep.config import DEFAULT_DEBOUNCE_SECONDS, load_config, parse_config
from filekeep.exceptions import ConfigurationError


def test_load_yaml(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        "rules:\n"
        "  - file_path: /etc/hosts\n"
        "    backup_dir_path: /tmp/hosts-backups\n"
        "  - file_path: ~/notes.md\n"
        "    backup_dir_path: ~/bak\n"
    )

    config = load_config(cfg)

    assert config.rules == [("/etc/hosts", "/tmp/hosts-backups"), ("~/notes.md", "~/bak")]
    assert config.debounce_seconds == DEFAULT_DEBOUNCE_SECONDS


def test_load_json_with_debounce(tmp_path):
    cfg = tmp_path / "config.json"
    cfg.write_text(json.dumps({
        "debounce_seconds": 2,
        "rules": [{"file_path": "a", "backup_dir_path": "b"}],
    }))

    config = load_config(cfg)

    assert config.rules == [("a", "b")]
    assert config.debounce_seconds == 2.0


def test_unreadable_file(tmp_path):
    with pytest.raises(ConfigurationError, match="can't be opened"):
        load_config(tmp_path / "missing.yaml")


def test_yaml_syntax_error(tmp_path):
    cfg = tmp_path / "broken.yaml"
    cfg.write_text("rules: [\n  - file_path: a\n")
    with pytest.raises(ConfigurationError, match="Failed to parse"):
        load_config(cfg)


@pytest.mark.parametrize(
    "data",
    [
        None,
        ["rules"],
        {},
        {"rules": "nope"},
        {"rules": ["not-a-mapping"]},
        {"rules": [{"file_path": "a"}]},
        {"rules": [{"file_path": "", "backup_dir_path": "b"}]},
        {"rules": [{"file_path": 3, "backup_dir_path": "b"}]},
        {"rules": [], "debounce_seconds": 0},
        {"rules": [], "debounce_seconds": -1},
        {"rules": [], "debounce_seconds": True},
        {"rules": [], "debounce_seconds": "5"},
        {"rules": [], "debounce_seconds": float("nan")},
        {"rules": [], "debounce_seconds": float("inf")},
        {"rules": [], "debounce_seconds": 1e300},
    ],
)
def test_schema_violations(data):
    with pytest.raises(ConfigurationError):
        parse_config(data)


def test_empty_rules_list_is_allowed():
    assert parse_config({"rules": []}).rules == []


@pytest.mark.parametrize("value", [".nan", ".inf"])
def test_non_finite_yaml_debounce_is_rejected(tmp_path, value):
    cfg = tmp_path / "config.yaml"
    cfg.write_text(f"debounce_seconds: {value}\nrules: []\n")
    with pytest.raises(ConfigurationError, match="finite"):
        load_config(cfg)
