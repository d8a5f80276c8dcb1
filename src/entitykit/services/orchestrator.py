"""EntityOrchestrator — read and reconcile one entity type.

Pipeline per operation:
  read:   QUERYING → POPULATED | QUERY_FAILED
  update: DIFFING → APPLYING → RECONCILED | PARTIALLY_FAILED | ABORTED | CANCELLED

The orchestrator owns the entity's Snapshot Store between a read and the
update that follows it. It is not safe for concurrent use: overlapping
calls on one instance raise :class:`OrchestratorBusyError`.
"""

from __future__ import annotations

import contextvars
import logging
import threading
from collections.abc import Iterable, Iterator, Mapping
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from entitykit.domain.changes import RowDiff, classify
from entitykit.domain.errors import (
    BackingStoreUnreachable,
    EntityError,
    IdentityMismatchError,
    OrchestratorBusyError,
    QueryFailed,
)
from entitykit.domain.outcome import OperationOutcome, RowOutcome
from entitykit.domain.records import RecordSet, identity_dict
from entitykit.domain.snapshots import SnapshotStore
from entitykit.domain.types import (
    FailureReason,
    OrchestratorState,
    OutcomeStatus,
    RowChange,
)

if TYPE_CHECKING:
    from entitykit.services.binding import Binding

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadResult:
    """Rows returned by :meth:`EntityOrchestrator.read`."""

    found: bool
    records: RecordSet

    @property
    def count(self) -> int:
        return len(self.records)


class EntityOrchestrator:
    """Generic entity engine parameterized by a :class:`Binding`.

    Usage::

        orchestrator = EntityOrchestrator(binding)
        result = orchestrator.read({"region": "EU"})
        result.records[1]["name"] = "A2"
        outcome = orchestrator.update(result.records)
    """

    def __init__(
        self,
        binding: Binding,
        *,
        max_workers: int = 1,
        query_timeout: float | None = None,
        apply_timeout: float | None = None,
    ) -> None:
        if max_workers < 1:
            msg = "max_workers must be at least 1"
            raise ValueError(msg)
        self.binding = binding
        self.snapshots = SnapshotStore()
        self.max_workers = max_workers
        self.query_timeout = query_timeout
        self.apply_timeout = apply_timeout
        self._state = OrchestratorState.IDLE
        self._busy = threading.Lock()

    @property
    def entity_type(self) -> str:
        return self.binding.entity_type

    @property
    def state(self) -> OrchestratorState:
        return self._state

    def _transition(self, state: OrchestratorState) -> None:
        logger.debug("%s: %s -> %s", self.entity_type, self._state, state)
        self._state = state

    @contextmanager
    def _exclusive(self, op: str) -> Iterator[None]:
        if not self._busy.acquire(blocking=False):
            msg = f"{self.entity_type}: {op} started while another operation is in flight"
            raise OrchestratorBusyError(msg)
        try:
            with structlog.contextvars.bound_contextvars(entity=self.entity_type, op=op):
                yield
        finally:
            self._busy.release()

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def read(self, filter: Any = None, *, timeout: float | None = None) -> ReadResult:
        """Query the primary target and make the result the new baseline.

        On failure the existing Snapshot Store is left untouched.

        Raises:
            QueryFailed: Store rejected the query, was unreachable, timed
                out, or returned rows with missing or repeated identities.
            OrchestratorBusyError: Another call is in flight.
        """
        with self._exclusive("read"):
            self._transition(OrchestratorState.QUERYING)
            try:
                rows = self.binding.query(
                    filter,
                    timeout=timeout if timeout is not None else self.query_timeout,
                )
                records = self.binding.new_record_set(rows)
            except QueryFailed:
                self._transition(OrchestratorState.QUERY_FAILED)
                raise
            except EntityError as exc:
                self._transition(OrchestratorState.QUERY_FAILED)
                raise QueryFailed(f"{self.entity_type}: {exc}") from exc

            self.snapshots.reset((row.identity, row) for row in records)
            self._transition(OrchestratorState.POPULATED)
            logger.info("%s: read %d row(s)", self.entity_type, len(records))
            return ReadResult(found=len(records) > 0, records=records)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(
        self,
        records: RecordSet | Iterable[Mapping[str, Any]],
        *,
        timeout: float | None = None,
        max_workers: int | None = None,
        cancel: threading.Event | None = None,
    ) -> OperationOutcome:
        """Diff *records* against the snapshots and apply every change.

        Every write started by this call has finished (applied, skipped,
        or failed) by the time it returns. A timed-out write is waited for
        and undone if it landed; only a rollback that itself times out may
        still be running.

        Args:
            records: Desired state of the rows previously read. Rows missing
                from it are deleted; rows without a snapshot are inserted.
            timeout: Per-store-call timeout in seconds.
            max_workers: Parallel writes; 1 applies strictly in diff order.
            cancel: Set to stop submitting further writes.

        Raises:
            DuplicateIdentityError: *records* repeats an identity.
            IdentityMismatchError: *records* is keyed by other identity fields.
            OrchestratorBusyError: Another call is in flight.
        """
        with self._exclusive("update"):
            current = self._coerce(records)

            self._transition(OrchestratorState.DIFFING)
            diffs = classify(current, self.snapshots)
            pending = [diff for diff in diffs if diff.change != RowChange.UNCHANGED]
            unchanged = len(diffs) - len(pending)

            self._transition(OrchestratorState.APPLYING)
            outcome = self._apply_all(
                pending,
                unchanged=unchanged,
                timeout=timeout if timeout is not None else self.apply_timeout,
                workers=max_workers or self.max_workers,
                cancel=cancel,
            )

            if outcome.aborted:
                self._transition(OrchestratorState.ABORTED)
            elif outcome.cancelled:
                self._transition(OrchestratorState.CANCELLED)
            elif outcome.failed:
                self._transition(OrchestratorState.PARTIALLY_FAILED)
            else:
                self._transition(OrchestratorState.RECONCILED)

            logger.info(
                "%s: update applied=%d skipped=%d failed=%d unchanged=%d",
                self.entity_type,
                len(outcome.applied),
                len(outcome.skipped),
                len(outcome.failed),
                outcome.unchanged,
            )
            return outcome

    def _coerce(self, records: RecordSet | Iterable[Mapping[str, Any]]) -> RecordSet:
        if isinstance(records, RecordSet):
            if records.identity_fields != self.binding.identity:
                raise IdentityMismatchError(self.binding.identity, records.identity_fields)
            return records
        return self.binding.new_record_set(self.binding.coerce(row) for row in records)

    def _apply_all(
        self,
        pending: list[RowDiff],
        *,
        unchanged: int,
        timeout: float | None,
        workers: int,
        cancel: threading.Event | None,
    ) -> OperationOutcome:
        results: list[RowOutcome | None] = [None] * len(pending)
        stop: FailureReason | None = None
        error: str | None = None
        aborted = False
        next_index = 0

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="entitykit-apply") as pool:
            in_flight: dict[Future[RowOutcome], int] = {}
            while True:
                while stop is None and next_index < len(pending) and len(in_flight) < workers:
                    if cancel is not None and cancel.is_set():
                        stop = FailureReason.CANCELLED
                        error = f"{self.entity_type}: update cancelled"
                        break
                    ctx = contextvars.copy_context()
                    future = pool.submit(ctx.run, self._apply_one, pending[next_index], timeout)
                    in_flight[future] = next_index
                    next_index += 1

                if not in_flight:
                    break

                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    index = in_flight.pop(future)
                    diff = pending[index]
                    try:
                        row_outcome = future.result()
                    except BackingStoreUnreachable as exc:
                        logger.error("%s: aborting batch: %s", self.entity_type, exc)
                        aborted = True
                        stop = stop or FailureReason.ABORTED
                        error = error or str(exc)
                        row_outcome = self._skipped(diff, FailureReason.ABORTED, str(exc))
                    results[index] = row_outcome
                    self._rebaseline(diff, row_outcome)

        for index in range(next_index, len(pending)):
            assert stop is not None
            results[index] = self._skipped(pending[index], stop, error)

        return OperationOutcome(
            entity_type=self.entity_type,
            rows=[row for row in results if row is not None],
            unchanged=unchanged,
            aborted=aborted,
            cancelled=stop == FailureReason.CANCELLED,
            error=error,
        )

    def _apply_one(self, diff: RowDiff, timeout: float | None) -> RowOutcome:
        try:
            return self.binding.apply(diff, timeout=timeout)
        except BackingStoreUnreachable:
            raise
        except Exception as exc:
            logger.exception("%s: unexpected error applying %s", self.entity_type, diff.identity)
            return RowOutcome.failed(
                identity_dict(diff.identity, self.binding.identity),
                diff.change,
                FailureReason.ERROR,
                str(exc) or type(exc).__name__,
            )

    def _skipped(self, diff: RowDiff, reason: FailureReason, message: str | None) -> RowOutcome:
        return RowOutcome.skipped(
            identity_dict(diff.identity, self.binding.identity),
            diff.change,
            reason,
            message,
        )

    def _rebaseline(self, diff: RowDiff, outcome: RowOutcome) -> None:
        """Move the snapshot forward for rows whose write is settled."""
        settled = outcome.status == OutcomeStatus.APPLIED or (
            outcome.status == OutcomeStatus.SKIPPED and outcome.reason == FailureReason.SKIP_LIST
        )
        if not settled:
            return
        if diff.change == RowChange.DELETED:
            self.snapshots.discard(diff.identity)
        elif diff.row is not None:
            # Fields absent from the row keep their snapshot values.
            merged = {**diff.snapshot, **diff.row} if diff.snapshot is not None else diff.row
            self.snapshots.capture(diff.identity, merged)
