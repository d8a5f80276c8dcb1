"""Backing-store contract.

A store answers queries with plain row dicts and performs identity-keyed
writes. Row-level write failures are *returned* as a :class:`WriteResult`
with a typed reason; only query failures raise.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel

from entitykit.domain.types import FailureReason


class StoreError(Exception):
    """Base class for query-side store failures."""

    reason = FailureReason.ERROR


class StoreQueryError(StoreError):
    """The store rejected the query (bad filter, missing column, ...)."""


class StoreUnreachableError(StoreError):
    """The store could not be contacted."""

    reason = FailureReason.UNREACHABLE


class StoreTimeoutError(StoreError):
    """The store cancelled the query at its statement timeout."""

    reason = FailureReason.TIMEOUT


class WriteResult(BaseModel):
    """Outcome of a single insert/update/delete call."""

    model_config = {"frozen": True}

    ok: bool
    reason: FailureReason | None = None
    message: str | None = None

    @classmethod
    def success(cls) -> WriteResult:
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: FailureReason, message: str) -> WriteResult:
        return cls(ok=False, reason=reason, message=message)


@runtime_checkable
class BackingStore(Protocol):
    """What a binding needs from each of its targets.

    ``identity`` arguments map identity field names to values. ``expected``
    optionally carries last-known values of conflict-guard fields; a store
    reports ``CONFLICT`` when the stored row no longer matches them.
    """

    name: str

    def query(self, filter: Any = None) -> list[dict[str, Any]]: ...

    def insert(self, values: Mapping[str, Any]) -> WriteResult: ...

    def update(
        self,
        identity: Mapping[str, Any],
        values: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> WriteResult: ...

    def delete(
        self,
        identity: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> WriteResult: ...
