"""Persistence binding — an entity type expressed as configuration.

A :class:`Binding` ties an entity type to its identity fields, one or more
backing-store targets, and the skip list of fields never written. It
translates classified rows into identity-keyed write commands and runs
them against every target.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Any

from entitykit.domain.errors import (
    BackingStoreUnreachable,
    OperationTimeout,
    QueryFailed,
    RowApplyFailed,
)
from entitykit.domain.outcome import RowOutcome
from entitykit.domain.records import RecordSet, identity_dict
from entitykit.domain.types import FailureReason, RowChange, WriteKind
from entitykit.infrastructure.stores.base import StoreError
from entitykit.services._helpers import call_with_timeout, settle

if TYPE_CHECKING:
    from entitykit.domain.changes import RowDiff
    from entitykit.infrastructure.stores.base import BackingStore, WriteResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WriteCommand:
    """One identity-keyed write, ready to send to a store.

    Attributes:
        kind: insert, update, or delete.
        identity: Identity field → value.
        values: Fields to write (insert/update).
        expected: Read-time values of conflict-guard fields.
    """

    kind: WriteKind
    identity: dict[str, Any]
    values: dict[str, Any] = field(default_factory=dict)
    expected: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Binding:
    """Static association of an entity type with its stores and skip list.

    Attributes:
        entity_type: Registry key, e.g. ``"customer"``.
        identity: Identity field names.
        targets: Write targets in order; the first one also serves reads.
        skip: Fields excluded from inserts and updates.
        conflict: Fields whose snapshot values guard updates and deletes.
        query_builder: Optional translation of a caller filter into the
            primary store's filter.
    """

    entity_type: str
    identity: tuple[str, ...]
    targets: tuple[BackingStore, ...]
    skip: frozenset[str] = frozenset()
    conflict: tuple[str, ...] = ()
    query_builder: Callable[[Any], Any] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "identity", tuple(self.identity))
        object.__setattr__(self, "targets", tuple(self.targets))
        object.__setattr__(self, "skip", frozenset(self.skip))
        object.__setattr__(self, "conflict", tuple(self.conflict))
        if not self.identity:
            msg = f"Binding {self.entity_type!r} needs at least one identity field"
            raise ValueError(msg)
        if not self.targets:
            msg = f"Binding {self.entity_type!r} needs at least one target"
            raise ValueError(msg)

    @property
    def primary(self) -> BackingStore:
        return self.targets[0]

    def new_record_set(self, rows: Iterable[Mapping[str, Any]] | None = None) -> RecordSet:
        """An empty (or pre-loaded) record set keyed by this binding's identity."""
        return RecordSet(self.identity, rows)

    def coerce(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Convert serialized field values to the types the targets store.

        Targets without a ``coerce_values`` hook leave values untouched.
        """
        result = dict(values)
        for store in self.targets:
            converter = getattr(store, "coerce_values", None)
            if converter is not None:
                result = converter(result)
        return result

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def query(self, filter: Any = None, *, timeout: float | None = None) -> list[dict[str, Any]]:
        """Run *filter* against the primary target.

        Raises:
            QueryFailed: On rejection, unreachable store, or timeout.
        """
        store = self.primary
        try:
            store_filter = self.query_builder(filter) if self.query_builder else filter
        except Exception as exc:
            msg = f"{self.entity_type}: cannot build query from {filter!r}: {exc}"
            raise QueryFailed(msg) from exc

        try:
            return call_with_timeout(
                lambda: store.query(store_filter),
                timeout,
                what=f"query on {store.name}",
            )
        except OperationTimeout as exc:
            raise QueryFailed(str(exc), reason=FailureReason.TIMEOUT) from exc
        except StoreError as exc:
            raise QueryFailed(str(exc), reason=exc.reason) from exc
        except Exception as exc:
            raise QueryFailed(f"query on {store.name} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def build_command(self, diff: RowDiff) -> WriteCommand | None:
        """Translate a classified row into a write.

        Returns None when a modified row changed only skip-listed fields.
        """
        identity = identity_dict(diff.identity, self.identity)

        if diff.change == RowChange.ADDED:
            assert diff.row is not None
            values = {
                name: value
                for name, value in diff.row.items()
                if name in identity or name not in self.skip
            }
            return WriteCommand(WriteKind.INSERT, identity, values)

        if diff.change == RowChange.MODIFIED:
            values = {
                name: value
                for name, value in diff.changes().items()
                if name not in self.skip and name not in identity
            }
            if not values:
                return None
            return WriteCommand(WriteKind.UPDATE, identity, values, self._expected(diff))

        if diff.change == RowChange.DELETED:
            return WriteCommand(WriteKind.DELETE, identity, expected=self._expected(diff))

        msg = f"Unchanged row {diff.identity!r} has no write"
        raise ValueError(msg)

    def _expected(self, diff: RowDiff) -> dict[str, Any]:
        if not self.conflict or diff.snapshot is None:
            return {}
        return {name: diff.snapshot[name] for name in self.conflict if name in diff.snapshot}

    def apply(self, diff: RowDiff, *, timeout: float | None = None) -> RowOutcome:
        """Write one classified row to every target.

        Raises:
            BackingStoreUnreachable: If any target reports it is unreachable.
        """
        identity = identity_dict(diff.identity, self.identity)
        command = self.build_command(diff)
        if command is None:
            return RowOutcome.skipped(
                identity,
                diff.change,
                FailureReason.SKIP_LIST,
                "Only skip-listed fields changed",
            )

        done: list[BackingStore] = []
        try:
            for store in self._targets_for(command.kind):
                try:
                    self._execute(store, command, timeout)
                except RowApplyFailed as exc:
                    if exc.committed:
                        done.append(store)
                    raise
                done.append(store)
        except RowApplyFailed as exc:
            logger.warning(
                "%s %s failed on %s: %s", self.entity_type, identity, exc.target, exc.reason
            )
            self._compensate(done, command, diff, timeout)
            return RowOutcome.failed(
                identity, diff.change, exc.reason, str(exc), target=exc.target
            )
        except BackingStoreUnreachable:
            self._compensate(done, command, diff, timeout)
            raise
        return RowOutcome.applied(identity, diff.change)

    def _targets_for(self, kind: WriteKind) -> tuple[BackingStore, ...]:
        # Dependent targets go first on delete so foreign keys hold.
        if kind == WriteKind.DELETE:
            return tuple(reversed(self.targets))
        return self.targets

    def _execute(self, store: BackingStore, command: WriteCommand, timeout: float | None) -> None:
        try:
            result = call_with_timeout(
                lambda: _dispatch(store, command),
                timeout,
                what=f"{command.kind} on {store.name}",
            )
        except OperationTimeout as exc:
            # Every write is accounted for before the row is reported.
            late = settle(exc)
            committed = late is not None and late.ok
            raise RowApplyFailed(
                FailureReason.TIMEOUT, str(exc), target=store.name, committed=committed
            ) from exc

        if result.ok:
            return
        reason = result.reason or FailureReason.ERROR
        message = result.message or f"{command.kind} failed"
        if reason == FailureReason.UNREACHABLE:
            raise BackingStoreUnreachable(store.name, message)
        raise RowApplyFailed(reason, message, target=store.name)

    def _compensate(
        self,
        done: list[BackingStore],
        command: WriteCommand,
        diff: RowDiff,
        timeout: float | None,
    ) -> None:
        """Undo *command* on targets that already accepted it (best-effort)."""
        if not done:
            return
        undo = _undo(command, diff)
        if undo is None:
            logger.error(
                "Cannot roll back %s %s: no snapshot", self.entity_type, command.identity
            )
            return
        for store in reversed(done):
            try:
                result = call_with_timeout(
                    partial(_dispatch, store, undo),
                    timeout,
                    what=f"rollback {undo.kind} on {store.name}",
                )
            except OperationTimeout as exc:
                logger.error(
                    "Failed to roll back %s %s on %s: %s",
                    self.entity_type,
                    command.identity,
                    store.name,
                    exc,
                )
                continue
            if not result.ok:
                logger.error(
                    "Failed to roll back %s %s on %s: %s",
                    self.entity_type,
                    command.identity,
                    store.name,
                    result.message,
                )


def _undo(command: WriteCommand, diff: RowDiff) -> WriteCommand | None:
    """The write that reverses *command*, rebuilt from the snapshot."""
    if command.kind == WriteKind.INSERT:
        return WriteCommand(WriteKind.DELETE, command.identity)
    if diff.snapshot is None:
        return None
    if command.kind == WriteKind.UPDATE:
        previous = {name: diff.snapshot[name] for name in command.values if name in diff.snapshot}
        return WriteCommand(WriteKind.UPDATE, command.identity, previous)
    return WriteCommand(WriteKind.INSERT, command.identity, dict(diff.snapshot))


def _dispatch(store: BackingStore, command: WriteCommand) -> WriteResult:
    expected = command.expected or None
    if command.kind == WriteKind.INSERT:
        return store.insert(command.values)
    if command.kind == WriteKind.UPDATE:
        return store.update(command.identity, command.values, expected)
    return store.delete(command.identity, expected)
