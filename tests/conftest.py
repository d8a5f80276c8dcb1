"""Shared pytest fixtures and test helpers for entitykit tests."""

from __future__ import annotations

import threading
from collections.abc import Generator, Mapping
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner
from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    Table,
    Text,
    insert,
)
from sqlalchemy.engine import Engine

from entitykit.infrastructure.database.engine import create_db_engine
from entitykit.infrastructure.stores.base import WriteResult
from entitykit.infrastructure.stores.memory import MemoryStore
from entitykit.services.binding import Binding
from entitykit.services.orchestrator import EntityOrchestrator

SEED_ROWS = [
    {"id": 1, "name": "A"},
    {"id": 2, "name": "B"},
]


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


# ---------------------------------------------------------------------------
# Recording store: a MemoryStore that logs every call and can inject failures
# ---------------------------------------------------------------------------


class RecordingStore(MemoryStore):
    """MemoryStore that records writes and fails on demand.

    ``failures`` maps ``(kind, identity-tuple)`` to the WriteResult to
    return instead of performing the write. ``delays`` maps an identity tuple,
    or a ``(kind, identity-tuple)`` pair, to seconds slept before the write
    (timeout tests).
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.calls: list[tuple[str, dict[str, Any], dict[str, Any]]] = []
        self.failures: dict[tuple[str, tuple[Any, ...]], WriteResult] = {}
        self.delays: dict[tuple[Any, ...], float] = {}
        self._calls_lock = threading.Lock()

    def _record(self, kind: str, identity: Mapping[str, Any], values: Mapping[str, Any]) -> None:
        with self._calls_lock:
            self.calls.append((kind, dict(identity), dict(values)))

    def _intercept(self, kind: str, identity: Mapping[str, Any]) -> WriteResult | None:
        key = tuple(identity[name] for name in self.identity_fields)
        delay = self.delays.get((kind, key), self.delays.get(key))
        if delay:
            threading.Event().wait(delay)
        return self.failures.get((kind, key))

    def insert(self, values: Mapping[str, Any]) -> WriteResult:
        identity = {name: values[name] for name in self.identity_fields}
        self._record("insert", identity, values)
        return self._intercept("insert", identity) or super().insert(values)

    def update(
        self,
        identity: Mapping[str, Any],
        values: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> WriteResult:
        self._record("update", identity, values)
        return self._intercept("update", identity) or super().update(identity, values, expected)

    def delete(
        self,
        identity: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> WriteResult:
        self._record("delete", identity, {})
        return self._intercept("delete", identity) or super().delete(identity, expected)


@pytest.fixture
def store() -> RecordingStore:
    """Recording store seeded with ids 1 ("A") and 2 ("B")."""
    return RecordingStore("customers", ("id",), SEED_ROWS)


@pytest.fixture
def binding(store: RecordingStore) -> Binding:
    return Binding(entity_type="customer", identity=("id",), targets=(store,))


@pytest.fixture
def orchestrator(binding: Binding) -> EntityOrchestrator:
    return EntityOrchestrator(binding)


# ---------------------------------------------------------------------------
# SQLite fixtures
# ---------------------------------------------------------------------------


def build_metadata() -> tuple[MetaData, Table, Table]:
    """Customer table plus a dependent profile table sharing its key."""
    metadata = MetaData()
    customers = Table(
        "customers",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("name", Text, nullable=False),
        Column("email", Text, unique=True),
        Column("version", Integer, nullable=False, server_default="1"),
        Column("created", Text, server_default="2026-01-01"),
    )
    profiles = Table(
        "customer_profiles",
        metadata,
        Column("id", Integer, ForeignKey("customers.id"), primary_key=True),
        Column("bio", Text),
    )
    return metadata, customers, profiles


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'entities.db'}"


@pytest.fixture
def db_engine(db_url: str) -> Generator[Engine]:
    """SQLite engine with the customer tables created and seeded."""
    engine = create_db_engine(db_url)
    metadata, customers, profiles = build_metadata()
    metadata.create_all(engine)
    with engine.begin() as conn:
        conn.execute(
            insert(customers),
            [
                {"id": 1, "name": "A", "email": "a@example.com"},
                {"id": 2, "name": "B", "email": "b@example.com"},
            ],
        )
        conn.execute(insert(profiles), [{"id": 1, "bio": "first"}, {"id": 2, "bio": "second"}])
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def tables(db_engine: Engine) -> dict[str, Table]:
    from entitykit.infrastructure.database.engine import reflect_tables

    return reflect_tables(db_engine, ["customers", "customer_profiles"])


# ---------------------------------------------------------------------------
# CLI project fixture
# ---------------------------------------------------------------------------

PROJECT_TOML = """\
[database]
url = "{url}"

[update]
max_reported_failures = 5

[entities.customer]
table = "customers"
skip = ["created"]
conflict = ["version"]
targets = ["customers", "customer_profiles"]

[entities.profile]
table = "customer_profiles"
"""


@pytest.fixture
def _isolated_project(
    tmp_path: Path, db_engine: Engine, db_url: str, monkeypatch: pytest.MonkeyPatch
) -> Path:
    """Seeded database plus an entitykit.toml in CWD binding it."""
    monkeypatch.delenv("ENTITYKIT_CONFIG", raising=False)
    config = tmp_path / "entitykit.toml"
    config.write_text(PROJECT_TOML.format(url=db_url), encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    return config
