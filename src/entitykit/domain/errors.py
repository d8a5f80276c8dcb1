"""Exception taxonomy for the entity engine.

Fatal errors (``QueryFailed``, ``DuplicateIdentityError``,
``BackingStoreUnreachable``) abort the current operation and surface to the
caller as a single error. ``RowApplyFailed`` is per-row: it is caught by the
binding and recorded in the operation outcome, never propagated.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from entitykit.domain.types import FailureReason

if TYPE_CHECKING:
    from concurrent.futures import Future


class EntityError(Exception):
    """Base class for all engine errors."""

    code = "ENTITY_ERROR"


class DuplicateIdentityError(EntityError):
    """A record set would contain two rows with the same identity."""

    code = "DUPLICATE_IDENTITY"

    def __init__(self, identity: tuple[Any, ...]) -> None:
        self.identity = identity
        super().__init__(f"Duplicate identity: {identity!r}")


class MissingIdentityError(EntityError):
    """A row lacks one or more of its identity fields."""

    code = "MISSING_IDENTITY"

    def __init__(self, fields: list[str]) -> None:
        self.fields = fields
        super().__init__(f"Row is missing identity field(s): {', '.join(fields)}")


class IdentityMutationError(EntityError):
    """An identity field was assigned or removed after the row was added."""

    code = "IDENTITY_MUTATION"

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Identity field {field!r} is immutable")


class IdentityMismatchError(EntityError, ValueError):
    """An input record set is keyed by different identity fields than its binding."""

    code = "IDENTITY_MISMATCH"

    def __init__(self, expected: tuple[str, ...], actual: tuple[str, ...]) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Record set identity {actual} does not match {expected}")


class RowNotFoundError(EntityError, KeyError):
    """No row with the requested identity exists in the record set."""

    code = "NOT_FOUND"

    def __init__(self, identity: tuple[Any, ...]) -> None:
        self.identity = identity
        super().__init__(f"No row with identity {identity!r}")

    def __str__(self) -> str:
        return str(self.args[0])


class QueryFailed(EntityError):
    """The read query was rejected, timed out, or the store was unreachable."""

    code = "QUERY_FAILED"

    def __init__(self, message: str, *, reason: FailureReason = FailureReason.ERROR) -> None:
        self.reason = reason
        super().__init__(message)


class RowApplyFailed(EntityError):
    """A single row's write failed (constraint, conflict, not-found, timeout)."""

    code = "ROW_APPLY_FAILED"

    def __init__(
        self,
        reason: FailureReason,
        message: str,
        *,
        target: str | None = None,
        committed: bool = False,
    ) -> None:
        self.reason = reason
        self.target = target
        # The write landed on *target* after all (a late, timed-out call).
        self.committed = committed
        super().__init__(message)


class BackingStoreUnreachable(EntityError):
    """A write target stopped responding; fatal for the rest of the batch."""

    code = "BACKING_STORE_UNREACHABLE"

    def __init__(self, target: str, message: str) -> None:
        self.target = target
        super().__init__(f"{target}: {message}")


class OperationTimeout(EntityError):
    """A backing-store call exceeded the caller-supplied timeout.

    ``pending`` is the abandoned call's future; it may still complete.
    """

    code = "TIMEOUT"

    def __init__(self, message: str, *, pending: Future[Any] | None = None) -> None:
        self.pending = pending
        super().__init__(message)


class OrchestratorBusyError(EntityError):
    """A read or update was started while another is still in flight."""

    code = "BUSY"


class UnknownEntityError(EntityError, KeyError):
    """The registry has no binding for the requested entity type."""

    code = "UNKNOWN_ENTITY"

    def __init__(self, entity_type: str) -> None:
        self.entity_type = entity_type
        super().__init__(f"Unknown entity type: {entity_type!r}")

    def __str__(self) -> str:
        return str(self.args[0])
