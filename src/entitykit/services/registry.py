"""EntityRegistry — explicit, process-scoped map of entity type → orchestrator.

The registry is an ordinary object handed to whoever needs entities (no
module-level singleton). Orchestrators are built lazily on first
:meth:`EntityRegistry.get_entity` and the same instance is returned for the
lifetime of the registry.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from entitykit.domain.errors import UnknownEntityError
from entitykit.services.binding import Binding
from entitykit.services.orchestrator import EntityOrchestrator

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from entitykit.config.settings import EntitySettings

logger = logging.getLogger(__name__)


class EntityRegistry:
    """Bindings plus lazily-created orchestrators, keyed by entity type."""

    def __init__(
        self,
        bindings: list[Binding] | None = None,
        *,
        max_workers: int = 1,
        query_timeout: float | None = None,
        apply_timeout: float | None = None,
        max_reported_failures: int = 10,
    ) -> None:
        self.max_workers = max_workers
        self.query_timeout = query_timeout
        self.apply_timeout = apply_timeout
        self.max_reported_failures = max_reported_failures
        self.engine: Engine | None = None
        self._bindings: dict[str, Binding] = {}
        self._instances: dict[str, EntityOrchestrator] = {}
        self._lock = threading.Lock()
        for binding in bindings or []:
            self.register(binding)

    @classmethod
    def from_settings(cls, settings: EntitySettings) -> EntityRegistry:
        """Build a registry with SQL-table bindings for every configured entity."""
        from entitykit.infrastructure.database.engine import create_db_engine, reflect_tables
        from entitykit.infrastructure.stores.sql import SqlTableStore

        registry = cls(
            max_workers=settings.update.max_workers,
            query_timeout=settings.read.query_timeout,
            apply_timeout=settings.update.apply_timeout,
            max_reported_failures=settings.update.max_reported_failures,
        )
        engine = create_db_engine(
            settings.database.url,
            echo=settings.database.echo,
            busy_timeout=settings.database.busy_timeout,
            statement_timeout=(
                settings.database.statement_timeout or settings.update.apply_timeout
            ),
        )
        registry.engine = engine

        for entity_type, config in settings.entities.items():
            tables = reflect_tables(engine, config.write_targets)
            identity = tuple(config.identity)
            targets = tuple(
                SqlTableStore(engine, tables[name], identity) for name in config.write_targets
            )
            registry.register(
                Binding(
                    entity_type=entity_type,
                    identity=identity,
                    targets=targets,
                    skip=frozenset(config.skip),
                    conflict=tuple(config.conflict),
                )
            )
        return registry

    def register(self, binding: Binding) -> None:
        """Add *binding*. Re-registering a type replaces it and its orchestrator."""
        with self._lock:
            self._bindings[binding.entity_type] = binding
            self._instances.pop(binding.entity_type, None)
        logger.debug("Registered entity %s", binding.entity_type)

    def binding(self, entity_type: str) -> Binding:
        try:
            return self._bindings[entity_type]
        except KeyError:
            raise UnknownEntityError(entity_type) from None

    def get_entity(self, entity_type: str) -> EntityOrchestrator:
        """Return the orchestrator for *entity_type*, creating it on first use.

        Raises:
            UnknownEntityError: If no binding is registered for the type.
        """
        with self._lock:
            instance = self._instances.get(entity_type)
            if instance is None:
                instance = EntityOrchestrator(
                    self.binding(entity_type),
                    max_workers=self.max_workers,
                    query_timeout=self.query_timeout,
                    apply_timeout=self.apply_timeout,
                )
                self._instances[entity_type] = instance
            return instance

    def entity_types(self) -> list[str]:
        return sorted(self._bindings)

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._bindings

    def close(self) -> None:
        """Dispose of the engine created by :meth:`from_settings`, if any."""
        if self.engine is not None:
            self.engine.dispose()
