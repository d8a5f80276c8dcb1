"""Backing stores that bindings read from and write to."""

from entitykit.infrastructure.stores.base import (
    BackingStore,
    StoreError,
    StoreQueryError,
    StoreTimeoutError,
    StoreUnreachableError,
    WriteResult,
)
from entitykit.infrastructure.stores.memory import MemoryStore
from entitykit.infrastructure.stores.sql import SqlTableStore

__all__ = [
    "BackingStore",
    "MemoryStore",
    "SqlTableStore",
    "StoreError",
    "StoreQueryError",
    "StoreTimeoutError",
    "StoreUnreachableError",
    "WriteResult",
]
