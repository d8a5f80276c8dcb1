"""EntityService — the caller-facing read/update contract.

read:   (entity_type, filter)  → ServiceResult{found, count, records}
update: (entity_type, records) → ServiceResult{outcome, summary}

Fatal conditions come back as ``ok=False`` with one ServiceError. Per-row
write failures keep ``ok=True``; they are listed in the outcome and echoed
as warnings.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from typing import Any

from entitykit.domain.errors import (
    DuplicateIdentityError,
    IdentityMismatchError,
    MissingIdentityError,
    OrchestratorBusyError,
    QueryFailed,
    UnknownEntityError,
)
from entitykit.domain.records import RecordSet
from entitykit.services.base import BaseService
from entitykit.services.result import ServiceError, ServiceResult


class EntityService(BaseService):
    """Reads and reconciles entities resolved through the registry."""

    def read(
        self,
        entity_type: str,
        filter: Any = None,
        *,
        timeout: float | None = None,
    ) -> ServiceResult:
        """Load rows matching *filter* and make them the entity's baseline."""
        op = "read"
        try:
            orchestrator = self._registry.get_entity(entity_type)
            result = orchestrator.read(filter, timeout=timeout)
        except QueryFailed as exc:
            return self._failure(op, entity_type, exc, reason=str(exc.reason))
        except (UnknownEntityError, OrchestratorBusyError) as exc:
            return self._failure(op, entity_type, exc)

        return ServiceResult(
            ok=True,
            op=op,
            entity=entity_type,
            data={"found": result.found, "count": result.count, "records": result.records},
        )

    def update(
        self,
        entity_type: str,
        records: RecordSet | Iterable[Mapping[str, Any]],
        *,
        timeout: float | None = None,
        max_workers: int | None = None,
        cancel: threading.Event | None = None,
    ) -> ServiceResult:
        """Apply the difference between *records* and the last read."""
        op = "update"
        try:
            orchestrator = self._registry.get_entity(entity_type)
            outcome = orchestrator.update(
                records,
                timeout=timeout,
                max_workers=max_workers,
                cancel=cancel,
            )
        except DuplicateIdentityError as exc:
            return self._failure(op, entity_type, exc, identity=list(exc.identity))
        except MissingIdentityError as exc:
            return self._failure(op, entity_type, exc, fields=exc.fields)
        except IdentityMismatchError as exc:
            return self._failure(
                op, entity_type, exc, expected=list(exc.expected), actual=list(exc.actual)
            )
        except (UnknownEntityError, OrchestratorBusyError) as exc:
            return self._failure(op, entity_type, exc)

        limit = self._registry.max_reported_failures
        warnings = [
            f"{row.identity}: {row.change} failed ({row.reason}): {row.message}"
            for row in outcome.failed[:limit]
        ]
        data = {"outcome": outcome, "summary": outcome.summary(limit)}

        error: ServiceError | None = None
        if outcome.aborted:
            error = ServiceError(
                code="BACKING_STORE_UNREACHABLE",
                message=outcome.error or "Backing store unreachable",
            )
        elif outcome.cancelled:
            error = ServiceError(code="CANCELLED", message=outcome.error or "Update cancelled")

        return ServiceResult(
            ok=error is None,
            op=op,
            entity=entity_type,
            data=data,
            warnings=warnings,
            error=error,
        )
