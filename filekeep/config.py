"""
config.py — Configuration document loading for filekeep.

The configuration is a YAML (or JSON, chosen by the ``.json`` suffix)
mapping of the form::

    debounce_seconds: 5        # optional
    rules:
      - file_path: ~/notes/todo.md
        backup_dir_path: ~/backups/todo

Only the resulting :class:`Config` matters to the rest of the program.
"""

from __future__ import annotations

import json
import logging
import math
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Tuple

import yaml

from filekeep.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 5.0


@dataclass
class Config:
    """Parsed configuration.

    Attributes:
        rules:            ``(file_path, backup_dir_path)`` pairs, unresolved.
        debounce_seconds: Quiescence window before a change is reported.
    """

    rules: List[Tuple[str, str]] = field(default_factory=list)
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS


def _read_document(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                return json.load(f)
            return yaml.safe_load(f)
    except OSError as exc:
        raise ConfigurationError(f"The configuration file {str(path)!r} can't be opened: {exc}") from exc
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Failed to parse configuration file {str(path)!r}: {exc}") from exc


def _parse_rule(index: int, entry: Any) -> Tuple[str, str]:
    if not isinstance(entry, dict):
        raise ConfigurationError(f"Rule #{index} must be a mapping, got {type(entry).__name__}")
    values = []
    for key in ("file_path", "backup_dir_path"):
        value = entry.get(key)
        if not isinstance(value, str) or not value:
            raise ConfigurationError(f"Rule #{index}: {key!r} must be a non-empty string")
        values.append(value)
    return values[0], values[1]


def parse_config(data: Any) -> Config:
    """Validate an already-parsed document and build a :class:`Config`."""
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a mapping with a 'rules' list")

    raw_rules = data.get("rules")
    if not isinstance(raw_rules, list):
        raise ConfigurationError("Configuration key 'rules' must be a list")

    debounce = data.get("debounce_seconds", DEFAULT_DEBOUNCE_SECONDS)
    # bool is an int subclass; timers overflow above TIMEOUT_MAX
    if (
        isinstance(debounce, bool)
        or not isinstance(debounce, (int, float))
        or not 0 < debounce <= threading.TIMEOUT_MAX
        or not math.isfinite(debounce)
    ):
        raise ConfigurationError("Configuration key 'debounce_seconds' must be a positive finite number")

    rules = [_parse_rule(i, entry) for i, entry in enumerate(raw_rules)]
    return Config(rules=rules, debounce_seconds=float(debounce))


def load_config(path: str | Path) -> Config:
    """Read and validate the configuration file at *path*.

    Raises:
        ConfigurationError: unreadable file, syntax error, or schema violation.
    """
    path = Path(path)
    config = parse_config(_read_document(path))
    logger.info("Loaded %d rule(s) from %s", len(config.rules), path)
    return config
