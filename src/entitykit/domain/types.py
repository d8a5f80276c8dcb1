"""Classification enums shared by the classifier, bindings, and outcomes."""

from __future__ import annotations

from enum import StrEnum


class RowChange(StrEnum):
    """How a row differs from its last-known-persisted snapshot."""

    UNCHANGED = "unchanged"
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


class OutcomeStatus(StrEnum):
    """Per-row result of an update operation."""

    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


class FailureReason(StrEnum):
    """Typed reasons reported by backing stores and the apply loop."""

    CONSTRAINT_VIOLATION = "constraint_violation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNREACHABLE = "unreachable"
    TIMEOUT = "timeout"
    ERROR = "error"
    # Skip reasons (no write issued)
    SKIP_LIST = "skip_list"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


class WriteKind(StrEnum):
    """Backing-store write operations."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class OrchestratorState(StrEnum):
    """Per-operation states of an entity orchestrator."""

    IDLE = "idle"
    QUERYING = "querying"
    POPULATED = "populated"
    QUERY_FAILED = "query_failed"
    DIFFING = "diffing"
    APPLYING = "applying"
    RECONCILED = "reconciled"
    PARTIALLY_FAILED = "partially_failed"
    ABORTED = "aborted"
    CANCELLED = "cancelled"
