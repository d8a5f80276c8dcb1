"""ServiceResult and ServiceError — the caller-facing contract.

INVARIANT: every caller-facing entity operation returns ServiceResult.
Fatal errors set ``ok=False`` with a single ServiceError; per-row write
failures leave ``ok=True`` and live inside the operation outcome.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Universal return type for entity operations.

    Attributes:
        ok: Whether the operation completed without a fatal error.
        op: Name of the operation (``"read"`` or ``"update"``).
        entity: Entity type the operation ran against.
        data: Operation-specific payload.
        warnings: Non-fatal issues (one per reported row failure).
        error: Structured error if ``ok`` is False.
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    entity: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
