"""Rows and record sets — the in-memory side of an entity.

A :class:`RecordSet` is an ordered collection of :class:`Row` objects of one
entity type, keyed by identity. It never talks to a backing store.

INVARIANT: no two rows in a RecordSet share an identity, and a row's
identity values cannot change once it has been added.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, MutableMapping
from typing import Any

from entitykit.domain.errors import (
    DuplicateIdentityError,
    IdentityMutationError,
    MissingIdentityError,
    RowNotFoundError,
)

Identity = tuple[Any, ...]


def identity_of(values: Mapping[str, Any], identity_fields: tuple[str, ...]) -> Identity:
    """Extract the identity tuple from *values*.

    Raises:
        MissingIdentityError: If any identity field is absent.
    """
    missing = [name for name in identity_fields if name not in values]
    if missing:
        raise MissingIdentityError(missing)
    return tuple(values[name] for name in identity_fields)


def normalize_identity(key: Any, identity_fields: tuple[str, ...]) -> Identity:
    """Accept a scalar, tuple, or mapping and return an identity tuple.

    Examples:
        >>> normalize_identity(1, ("id",))
        (1,)
        >>> normalize_identity({"a": 1, "b": 2}, ("a", "b"))
        (1, 2)
    """
    if isinstance(key, Mapping):
        return identity_of(key, identity_fields)
    if isinstance(key, tuple):
        return key
    return (key,)


def identity_dict(identity: Identity, identity_fields: tuple[str, ...]) -> dict[str, Any]:
    """Pair identity values back up with their field names."""
    return dict(zip(identity_fields, identity, strict=True))


class Row(MutableMapping[str, Any]):
    """A mapping of field name to value with write-protected identity fields."""

    __slots__ = ("_identity_fields", "_locked", "_values")

    def __init__(
        self,
        values: Mapping[str, Any] | None = None,
        *,
        identity_fields: tuple[str, ...] = (),
    ) -> None:
        self._values: dict[str, Any] = dict(values or {})
        self._identity_fields = identity_fields
        self._locked = False

    @property
    def identity(self) -> Identity:
        return identity_of(self._values, self._identity_fields)

    @property
    def identity_fields(self) -> tuple[str, ...]:
        return self._identity_fields

    def lock_identity(self) -> None:
        """Freeze identity fields (called when the row joins a RecordSet)."""
        self._locked = True

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if self._locked and key in self._identity_fields and self._values.get(key) != value:
            raise IdentityMutationError(key)
        self._values[key] = value

    def __delitem__(self, key: str) -> None:
        if self._locked and key in self._identity_fields:
            raise IdentityMutationError(key)
        del self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Row({self._values!r})"

    def to_dict(self) -> dict[str, Any]:
        return dict(self._values)


class RecordSet:
    """Ordered, identity-keyed container of rows for one entity type.

    Usage::

        records = RecordSet(("id",))
        records.load([{"id": 1, "name": "A"}, {"id": 2, "name": "B"}])
        records[1]["name"] = "A2"
        records.remove(2)
        records.add({"id": 3, "name": "C"})
    """

    def __init__(
        self,
        identity_fields: Iterable[str],
        rows: Iterable[Mapping[str, Any]] | None = None,
    ) -> None:
        self.identity_fields: tuple[str, ...] = tuple(identity_fields)
        if not self.identity_fields:
            raise ValueError("A RecordSet needs at least one identity field")
        self._rows: dict[Identity, Row] = {}
        if rows is not None:
            self.load(rows)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def load(self, rows: Iterable[Mapping[str, Any]]) -> None:
        """Replace the current contents with *rows*.

        All-or-nothing: if any identity repeats, the set is left unchanged.
        """
        loaded: dict[Identity, Row] = {}
        for values in rows:
            row = self._make_row(values)
            key = row.identity
            if key in loaded:
                raise DuplicateIdentityError(key)
            row.lock_identity()
            loaded[key] = row
        self._rows = loaded

    def add(self, values: Mapping[str, Any]) -> Row:
        """Append a row; returns the stored :class:`Row`."""
        row = self._make_row(values)
        key = row.identity
        if key in self._rows:
            raise DuplicateIdentityError(key)
        row.lock_identity()
        self._rows[key] = row
        return row

    def remove(self, key: Any) -> Row:
        """Remove and return the row with identity *key*."""
        identity = normalize_identity(key, self.identity_fields)
        try:
            return self._rows.pop(identity)
        except KeyError:
            raise RowNotFoundError(identity) from None

    def clear(self) -> None:
        self._rows.clear()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, key: Any, default: Row | None = None) -> Row | None:
        """Return the row for *key*, or *default* when absent."""
        return self._rows.get(normalize_identity(key, self.identity_fields), default)

    def __getitem__(self, key: Any) -> Row:
        identity = normalize_identity(key, self.identity_fields)
        try:
            return self._rows[identity]
        except KeyError:
            raise RowNotFoundError(identity) from None

    def __contains__(self, key: object) -> bool:
        try:
            identity = normalize_identity(key, self.identity_fields)
        except MissingIdentityError:
            return False
        return identity in self._rows

    def __iter__(self) -> Iterator[Row]:
        return iter(list(self._rows.values()))

    def __len__(self) -> int:
        return len(self._rows)

    def __repr__(self) -> str:
        return f"RecordSet(identity={self.identity_fields!r}, rows={len(self._rows)})"

    def identities(self) -> list[Identity]:
        """Identities in insertion order."""
        return list(self._rows)

    def to_dicts(self) -> list[dict[str, Any]]:
        """Plain-dict copies of every row, in insertion order."""
        return [row.to_dict() for row in self._rows.values()]

    def _make_row(self, values: Mapping[str, Any]) -> Row:
        if isinstance(values, Row):
            values = values.to_dict()
        return Row(values, identity_fields=self.identity_fields)
