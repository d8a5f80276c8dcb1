"""Dict-backed store for tests, fixtures, and non-SQL entities."""

from __future__ import annotations

import copy
import threading
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from entitykit.domain.types import FailureReason
from entitykit.infrastructure.stores.base import (
    StoreQueryError,
    StoreUnreachableError,
    WriteResult,
)

Key = tuple[Any, ...]


class MemoryStore:
    """Thread-safe in-memory backing store.

    Rows are kept in insertion order. ``unique`` lists extra columns whose
    values must be unique across rows (checked on insert and update).
    Setting ``available = False`` makes every call report the store as
    unreachable.
    """

    def __init__(
        self,
        name: str,
        identity_fields: Iterable[str],
        rows: Iterable[Mapping[str, Any]] = (),
        *,
        unique: Iterable[str] = (),
    ) -> None:
        self.name = name
        self.identity_fields = tuple(identity_fields)
        self.unique = tuple(unique)
        self.available = True
        self._lock = threading.Lock()
        self._rows: dict[Key, dict[str, Any]] = {}
        for row in rows:
            self._rows[self._key(row)] = dict(row)

    def _key(self, values: Mapping[str, Any]) -> Key:
        return tuple(values[name] for name in self.identity_fields)

    def rows(self) -> list[dict[str, Any]]:
        """Copies of every stored row, in insertion order."""
        with self._lock:
            return [dict(row) for row in self._rows.values()]

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def query(self, filter: Any = None) -> list[dict[str, Any]]:
        """Return rows matching *filter* (None, field equalities, or a predicate)."""
        if not self.available:
            raise StoreUnreachableError(f"{self.name} is unavailable")
        match = self._matcher(filter)
        with self._lock:
            try:
                return [copy.deepcopy(row) for row in self._rows.values() if match(row)]
            except Exception as exc:
                msg = f"{self.name}: filter raised {type(exc).__name__}: {exc}"
                raise StoreQueryError(msg) from exc

    def _matcher(self, filter: Any) -> Callable[[Mapping[str, Any]], bool]:
        if filter is None:
            return lambda _row: True
        if isinstance(filter, Mapping):
            expected = dict(filter)
            return lambda row: all(
                name in row and row[name] == value for name, value in expected.items()
            )
        if callable(filter):
            return filter
        msg = f"{self.name}: unsupported filter type {type(filter).__name__}"
        raise StoreQueryError(msg)

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def insert(self, values: Mapping[str, Any]) -> WriteResult:
        if not self.available:
            return _unreachable(self.name)
        with self._lock:
            key = self._key(values)
            if key in self._rows:
                return WriteResult.failure(
                    FailureReason.CONSTRAINT_VIOLATION,
                    f"Duplicate key {key!r} in {self.name}",
                )
            clash = self._unique_clash(values, exclude=None)
            if clash:
                return clash
            self._rows[key] = copy.deepcopy(dict(values))
        return WriteResult.success()

    def update(
        self,
        identity: Mapping[str, Any],
        values: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> WriteResult:
        if not self.available:
            return _unreachable(self.name)
        with self._lock:
            key = self._key(identity)
            current = self._rows.get(key)
            failure = self._check_existing(key, current, expected)
            if failure:
                return failure
            clash = self._unique_clash(values, exclude=key)
            if clash:
                return clash
            assert current is not None
            current.update(copy.deepcopy(dict(values)))
        return WriteResult.success()

    def delete(
        self,
        identity: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> WriteResult:
        if not self.available:
            return _unreachable(self.name)
        with self._lock:
            key = self._key(identity)
            failure = self._check_existing(key, self._rows.get(key), expected)
            if failure:
                return failure
            del self._rows[key]
        return WriteResult.success()

    def _check_existing(
        self,
        key: Key,
        current: dict[str, Any] | None,
        expected: Mapping[str, Any] | None,
    ) -> WriteResult | None:
        if current is None:
            return WriteResult.failure(
                FailureReason.NOT_FOUND, f"Row {key!r} not found in {self.name}"
            )
        for name, value in (expected or {}).items():
            if current.get(name) != value:
                return WriteResult.failure(
                    FailureReason.CONFLICT,
                    f"Row {key!r} in {self.name} changed since it was read",
                )
        return None

    def _unique_clash(
        self,
        values: Mapping[str, Any],
        *,
        exclude: Key | None,
    ) -> WriteResult | None:
        for column in self.unique:
            if column not in values:
                continue
            for key, row in self._rows.items():
                if key != exclude and row.get(column) == values[column]:
                    return WriteResult.failure(
                        FailureReason.CONSTRAINT_VIOLATION,
                        f"Unique constraint failed: {self.name}.{column}",
                    )
        return None


def _unreachable(name: str) -> WriteResult:
    return WriteResult.failure(FailureReason.UNREACHABLE, f"{name} is unavailable")
