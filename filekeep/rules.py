"""
rules.py — Rule table construction for filekeep.

Turns the raw ``(file_path, backup_dir_path)`` pairs read from the
configuration into an immutable mapping keyed by canonical watched-file
path.  The mapping is built once at startup and only read afterwards.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Tuple, Union

from filekeep.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

RawPath = Union[str, os.PathLike]
RuleTable = Mapping[Path, Path]


def canonicalize(raw: RawPath, strict: bool = True) -> Path:
    """Return the absolute, symlink-resolved form of *raw*.

    With *strict* set, raises ``OSError`` (usually ``FileNotFoundError``)
    if the path does not exist.  ``RuntimeError`` signals a symlink loop on
    older interpreters.
    """
    return Path(raw).expanduser().resolve(strict=strict)


def build_rule_table(rules: Iterable[Tuple[RawPath, RawPath]]) -> RuleTable:
    """Canonicalize every rule and return a read-only lookup table.

    Raises:
        ConfigurationError: a path cannot be canonicalized, or two rules
            point at the same watched file.
    """
    table: dict[Path, Path] = {}
    for index, (raw_file, raw_dir) in enumerate(rules):
        try:
            file_path = canonicalize(raw_file)
        except (OSError, RuntimeError) as exc:
            raise ConfigurationError(
                f"Rule #{index}: failed to canonicalize file path {str(raw_file)!r}: {exc}"
            ) from exc
        try:
            backup_dir = canonicalize(raw_dir)
        except (OSError, RuntimeError) as exc:
            raise ConfigurationError(
                f"Rule #{index}: failed to canonicalize directory path {str(raw_dir)!r}: {exc}"
            ) from exc

        if file_path in table:
            raise ConfigurationError(
                f"Rule #{index}: {file_path} is already watched "
                f"(backing up to {table[file_path]})"
            )
        table[file_path] = backup_dir

    logger.debug("Built rule table with %d rule(s)", len(table))
    return MappingProxyType(table)
