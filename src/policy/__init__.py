"""Policy table describing per-object default annotations."""

from .table import (
    PolicyEntry,
    PolicyStore,
    PolicyTable,
    load_policy_table,
    parse_policy_document,
)

__all__ = [
    "PolicyEntry",
    "PolicyStore",
    "PolicyTable",
    "load_policy_table",
    "parse_policy_document",
]
