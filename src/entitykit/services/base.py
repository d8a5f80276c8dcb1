"""BaseService — foundation for caller-facing services.

Every service receives an :class:`EntityRegistry` at construction time and
resolves orchestrators through it; no service holds entity state itself.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from entitykit.services.result import ServiceError, ServiceResult

if TYPE_CHECKING:
    from entitykit.domain.errors import EntityError
    from entitykit.services.registry import EntityRegistry


class BaseService:
    """Base for service-layer classes.

    Usage::

        class ExportService(BaseService):
            def export(self, entity_type: str) -> ServiceResult:
                orchestrator = self._registry.get_entity(entity_type)
                ...
    """

    def __init__(self, registry: EntityRegistry) -> None:
        self._registry = registry

    @staticmethod
    def _failure(op: str, entity_type: str, exc: EntityError, **detail: object) -> ServiceResult:
        """Wrap a fatal engine error as a failed ServiceResult."""
        return ServiceResult(
            ok=False,
            op=op,
            entity=entity_type,
            error=ServiceError(code=exc.code, message=str(exc), detail=dict(detail)),
        )
