"""Tests for EntityRegistry."""

from __future__ import annotations

import pytest
from sqlalchemy.engine import Engine

from entitykit.config.models import DatabaseConfig, EntityConfig, UpdateConfig
from entitykit.config.settings import EntitySettings
from entitykit.domain.errors import UnknownEntityError
from entitykit.infrastructure.stores.sql import SqlTableStore
from entitykit.services.binding import Binding
from entitykit.services.registry import EntityRegistry
from tests.conftest import RecordingStore


class TestEntityRegistry:
    def test_get_entity_is_cached(self, binding: Binding) -> None:
        registry = EntityRegistry([binding])
        first = registry.get_entity("customer")
        assert registry.get_entity("customer") is first
        assert first.binding is binding

    def test_unknown_entity(self) -> None:
        registry = EntityRegistry()
        with pytest.raises(UnknownEntityError) as exc_info:
            registry.get_entity("ghost")
        assert exc_info.value.code == "UNKNOWN_ENTITY"
        assert "ghost" in str(exc_info.value)

    def test_register_replaces_orchestrator(self, binding: Binding) -> None:
        registry = EntityRegistry([binding])
        first = registry.get_entity("customer")
        store = RecordingStore("other", ("id",))
        registry.register(Binding("customer", ("id",), (store,)))
        assert registry.get_entity("customer") is not first

    def test_defaults_flow_into_orchestrators(self, binding: Binding) -> None:
        registry = EntityRegistry([binding], max_workers=3, query_timeout=2.0, apply_timeout=1.0)
        orchestrator = registry.get_entity("customer")
        assert orchestrator.max_workers == 3
        assert orchestrator.query_timeout == 2.0
        assert orchestrator.apply_timeout == 1.0

    def test_entity_types_sorted(self) -> None:
        store = RecordingStore("s", ("id",))
        registry = EntityRegistry(
            [Binding("zebra", ("id",), (store,)), Binding("apple", ("id",), (store,))]
        )
        assert registry.entity_types() == ["apple", "zebra"]
        assert "apple" in registry
        assert "pear" not in registry


class TestFromSettings:
    def test_builds_sql_bindings(self, db_engine: Engine, db_url: str) -> None:
        settings = EntitySettings(
            database=DatabaseConfig(url=db_url),
            update=UpdateConfig(max_workers=2),
            entities={
                "customer": EntityConfig(
                    table="customers",
                    skip=["created"],
                    conflict=["version"],
                    targets=["customers", "customer_profiles"],
                ),
            },
        )
        registry = EntityRegistry.from_settings(settings)
        try:
            binding = registry.binding("customer")
            assert [store.name for store in binding.targets] == [
                "customers",
                "customer_profiles",
            ]
            assert all(isinstance(store, SqlTableStore) for store in binding.targets)
            assert binding.skip == frozenset({"created"})
            assert binding.conflict == ("version",)
            assert registry.get_entity("customer").max_workers == 2

            records = registry.get_entity("customer").read().records
            assert len(records) == 2
        finally:
            registry.close()
