from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

import yaml

from src.common.errors import ConfigError

logger = logging.getLogger(__name__)

TARGET_NAME_KEYS = ("targetName", "ingressName")
DEFAULT_ANNOTATIONS_KEY = "defaultAnnotations"
YAML_SUFFIXES = (".yaml", ".yml")

_EMPTY: Mapping[str, str] = MappingProxyType({})


def _match_key(name: str) -> str:
    return name.lower()


@dataclass(frozen=True)
class PolicyEntry:
    target_name: str
    default_annotations: Mapping[str, str] = field(default_factory=lambda: _EMPTY)

    def matches(self, name: str) -> bool:
        return _match_key(self.target_name) == _match_key(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "targetName": self.target_name,
            DEFAULT_ANNOTATIONS_KEY: dict(self.default_annotations),
        }


@dataclass(frozen=True)
class PolicyTable:
    """Ordered, read-only collection of policy entries.

    Lookups compare names case-insensitively and the first matching entry
    wins, so later duplicates are shadowed.
    """

    entries: Tuple[PolicyEntry, ...] = ()

    def __iter__(self) -> Iterator[PolicyEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def lookup(self, name: str) -> Optional[PolicyEntry]:
        for entry in self.entries:
            logger.debug("Checking default for %s/%s", entry.target_name, name)
            if entry.matches(name):
                return entry
        return None

    def defaults_for(self, name: str) -> Mapping[str, str]:
        entry = self.lookup(name)
        if entry is None:
            return _EMPTY
        return entry.default_annotations

    def to_list(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.entries]


def parse_policy_document(data: Any) -> PolicyTable:
    """Build a ``PolicyTable`` from an already-decoded JSON/YAML document."""

    if data is None:
        return PolicyTable()
    if not isinstance(data, list):
        raise ConfigError("policy document must contain a list of entries")

    entries: List[PolicyEntry] = []
    for index, record in enumerate(data):
        if not isinstance(record, dict):
            raise ConfigError(f"policy entry {index} must be a mapping")
        target_name = _target_name(record, index)
        if target_name is None:
            logger.debug("Skipping policy entry %d without a target name", index)
            continue
        defaults = _default_annotations(record, index)
        entries.append(PolicyEntry(target_name=target_name, default_annotations=defaults))
    return PolicyTable(entries=tuple(entries))


def _target_name(record: Dict[str, Any], index: int) -> Optional[str]:
    for key in TARGET_NAME_KEYS:
        value = record.get(key)
        if value is not None:
            if not isinstance(value, str):
                raise ConfigError(f"policy entry {index}: {key} must be a string")
            return value
    return None


def _default_annotations(record: Dict[str, Any], index: int) -> Mapping[str, str]:
    raw = record.get(DEFAULT_ANNOTATIONS_KEY)
    if raw is None:
        return _EMPTY
    if not isinstance(raw, dict):
        raise ConfigError(f"policy entry {index}: {DEFAULT_ANNOTATIONS_KEY} must be a mapping")
    defaults: Dict[str, str] = {}
    for key, value in raw.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise ConfigError(
                f"policy entry {index}: annotation {key!r} must map a string to a string"
            )
        defaults[key] = value
    return MappingProxyType(defaults)


def read_policy_document(source: Union[str, Path]) -> PolicyTable:
    """Read and parse a policy document, raising ``ConfigError`` on any failure."""

    path = Path(source)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"failed to read policy document {path}: {exc}") from exc
    return parse_policy_document(_decode_policy_text(text, path))


def _decode_policy_text(text: str, path: Path) -> Any:
    if path.suffix.lower() not in YAML_SUFFIXES:
        try:
            return json.loads(text)
        except (json.JSONDecodeError, RecursionError):
            pass
    try:
        return yaml.safe_load(text)
    except (yaml.YAMLError, RecursionError) as exc:
        raise ConfigError(f"invalid policy document {path}: {exc}") from exc


def load_policy_table(source: Optional[Union[str, Path]]) -> PolicyTable:
    """Load the policy table, falling back to an empty table on failure.

    The failure is logged for the operator and never raised; with an empty
    table every mutation decision resolves to "no mutation".
    """

    if source is None:
        logger.error("Failed to load default annotations: no policy document configured")
        return PolicyTable()
    try:
        table = read_policy_document(source)
    except ConfigError as exc:
        logger.error("Failed to load default annotations: %s", exc)
        return PolicyTable()
    logger.info("Loaded %d policy entries from %s", len(table), source)
    return table


class PolicyStore:
    """Holds the current policy snapshot and swaps it whole on reload.

    Readers call ``current()`` once per request and keep that snapshot, so an
    in-flight request never sees a half-applied reload.
    """

    def __init__(self, source: Optional[Union[str, Path]] = None, table: Optional[PolicyTable] = None) -> None:
        self.source = source
        self._table = table if table is not None else load_policy_table(source)

    def current(self) -> PolicyTable:
        return self._table

    def reload(self) -> PolicyTable:
        """Re-read the policy document; a failed reload keeps the current snapshot."""

        if self.source is None:
            return self._table
        try:
            table = read_policy_document(self.source)
        except ConfigError as exc:
            logger.error("Keeping previous policy table, reload failed: %s", exc)
            return self._table
        self._table = table
        logger.info("Reloaded %d policy entries from %s", len(table), self.source)
        return table


__all__ = [
    "PolicyEntry",
    "PolicyStore",
    "PolicyTable",
    "load_policy_table",
    "parse_policy_document",
    "read_policy_document",
]
