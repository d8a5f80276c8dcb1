"""Per-row and aggregate results of an update operation."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from entitykit.domain.types import FailureReason, OutcomeStatus, RowChange


class RowOutcome(BaseModel):
    """Result of applying one classified row."""

    model_config = {"frozen": True}

    identity: dict[str, Any]
    change: RowChange
    status: OutcomeStatus
    reason: FailureReason | None = None
    message: str | None = None
    target: str | None = None

    @classmethod
    def applied(cls, identity: dict[str, Any], change: RowChange) -> RowOutcome:
        return cls(identity=identity, change=change, status=OutcomeStatus.APPLIED)

    @classmethod
    def skipped(
        cls,
        identity: dict[str, Any],
        change: RowChange,
        reason: FailureReason,
        message: str | None = None,
    ) -> RowOutcome:
        return cls(
            identity=identity,
            change=change,
            status=OutcomeStatus.SKIPPED,
            reason=reason,
            message=message,
        )

    @classmethod
    def failed(
        cls,
        identity: dict[str, Any],
        change: RowChange,
        reason: FailureReason,
        message: str,
        *,
        target: str | None = None,
    ) -> RowOutcome:
        return cls(
            identity=identity,
            change=change,
            status=OutcomeStatus.FAILED,
            reason=reason,
            message=message,
            target=target,
        )


class OperationOutcome(BaseModel):
    """Aggregate result of one update call.

    Attributes:
        entity_type: Entity the update ran against.
        rows: Per-row outcomes in diff order (UNCHANGED rows are not listed).
        unchanged: Number of rows that needed no write.
        aborted: A target became unreachable mid-batch.
        cancelled: The caller cancelled the update before it finished.
        error: Message of the condition that stopped the batch early.
    """

    model_config = {"frozen": True}

    entity_type: str
    rows: list[RowOutcome] = Field(default_factory=list)
    unchanged: int = 0
    aborted: bool = False
    cancelled: bool = False
    error: str | None = None

    def _with_status(self, status: OutcomeStatus) -> list[RowOutcome]:
        return [row for row in self.rows if row.status == status]

    @property
    def applied(self) -> list[RowOutcome]:
        return self._with_status(OutcomeStatus.APPLIED)

    @property
    def skipped(self) -> list[RowOutcome]:
        return self._with_status(OutcomeStatus.SKIPPED)

    @property
    def failed(self) -> list[RowOutcome]:
        return self._with_status(OutcomeStatus.FAILED)

    @property
    def ok(self) -> bool:
        """True when nothing failed and the batch ran to completion."""
        return not self.failed and not self.aborted and not self.cancelled

    def summary(self, max_failures: int = 10) -> dict[str, Any]:
        """Counts per status plus the first *max_failures* failures."""
        failed = self.failed
        return {
            "applied": len(self.applied),
            "skipped": len(self.skipped),
            "failed": len(failed),
            "unchanged": self.unchanged,
            "aborted": self.aborted,
            "cancelled": self.cancelled,
            "failures": [
                {
                    "identity": row.identity,
                    "change": str(row.change),
                    "reason": str(row.reason) if row.reason else None,
                    "message": row.message,
                }
                for row in failed[:max_failures]
            ],
        }
