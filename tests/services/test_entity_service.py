"""Tests for EntityService — the ServiceResult contract over orchestrators."""

from __future__ import annotations

import threading

import pytest

from entitykit.domain.outcome import OperationOutcome
from entitykit.domain.records import RecordSet
from entitykit.domain.types import FailureReason
from entitykit.infrastructure.stores.base import WriteResult
from entitykit.services.binding import Binding
from entitykit.services.entity import EntityService
from entitykit.services.registry import EntityRegistry
from tests.conftest import RecordingStore


@pytest.fixture
def registry(binding: Binding) -> EntityRegistry:
    return EntityRegistry([binding], max_reported_failures=1)


@pytest.fixture
def svc(registry: EntityRegistry) -> EntityService:
    return EntityService(registry)


class TestRead:
    def test_read_ok(self, svc: EntityService) -> None:
        result = svc.read("customer")
        assert result.ok
        assert result.op == "read"
        assert result.entity == "customer"
        assert result.data["found"] is True
        assert result.data["count"] == 2
        assert isinstance(result.data["records"], RecordSet)

    def test_read_unknown_entity(self, svc: EntityService) -> None:
        result = svc.read("ghost")
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "UNKNOWN_ENTITY"

    def test_read_unreachable(self, svc: EntityService, store: RecordingStore) -> None:
        store.available = False
        result = svc.read("customer")
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "QUERY_FAILED"
        assert result.error.detail["reason"] == "unreachable"


class TestUpdate:
    def test_update_ok(self, svc: EntityService) -> None:
        records = svc.read("customer").data["records"]
        records[1]["name"] = "A2"
        result = svc.update("customer", records)
        assert result.ok
        assert isinstance(result.data["outcome"], OperationOutcome)
        assert result.data["summary"]["applied"] == 1
        assert result.warnings == []

    def test_row_failures_are_warnings(self, svc: EntityService, store: RecordingStore) -> None:
        records = svc.read("customer").data["records"]
        records[1]["name"] = "A2"
        records[2]["name"] = "B2"
        for key in ((1,), (2,)):
            store.failures[("update", key)] = WriteResult.failure(
                FailureReason.CONSTRAINT_VIOLATION, "nope"
            )

        result = svc.update("customer", records)

        assert result.ok
        assert result.data["summary"]["failed"] == 2
        assert len(result.data["summary"]["failures"]) == 1
        assert len(result.warnings) == 1
        assert "constraint_violation" in result.warnings[0]

    def test_duplicate_identity(self, svc: EntityService) -> None:
        svc.read("customer")
        result = svc.update("customer", [{"id": 1}, {"id": 1}])
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "DUPLICATE_IDENTITY"
        assert result.error.detail["identity"] == [1]

    def test_missing_identity(self, svc: EntityService) -> None:
        result = svc.update("customer", [{"name": "no id"}])
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "MISSING_IDENTITY"
        assert result.error.detail["fields"] == ["id"]

    def test_identity_mismatch(self, svc: EntityService) -> None:
        svc.read("customer")
        result = svc.update("customer", RecordSet(("uuid",), [{"uuid": "x"}]))
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "IDENTITY_MISMATCH"
        assert result.error.detail == {"expected": ["id"], "actual": ["uuid"]}

    def test_unreachable_aborts(self, svc: EntityService, store: RecordingStore) -> None:
        records = svc.read("customer").data["records"]
        records[1]["name"] = "A2"
        store.available = False
        result = svc.update("customer", records)
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "BACKING_STORE_UNREACHABLE"
        assert result.data["outcome"].aborted

    def test_cancelled(self, svc: EntityService) -> None:
        records = svc.read("customer").data["records"]
        records.remove(1)
        cancel = threading.Event()
        cancel.set()
        result = svc.update("customer", records, cancel=cancel)
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "CANCELLED"
