"""Tests for the format_result dispatcher and plain-data conversion."""

from __future__ import annotations

import json

from entitykit.domain.outcome import OperationOutcome, RowOutcome
from entitykit.domain.records import RecordSet
from entitykit.domain.types import FailureReason, RowChange
from entitykit.output.formatters import format_result, to_plain
from entitykit.services.result import ServiceError, ServiceResult


def _ok(op: str = "test", **data: object) -> ServiceResult:
    return ServiceResult(ok=True, op=op, data=dict(data))


class TestToPlain:
    def test_record_set(self) -> None:
        records = RecordSet(("id",), [{"id": 1, "name": "A"}])
        assert to_plain(records) == [{"id": 1, "name": "A"}]

    def test_nested(self) -> None:
        outcome = OperationOutcome(
            entity_type="customer",
            rows=[RowOutcome.applied({"id": 1}, RowChange.ADDED)],
        )
        plain = to_plain({"outcome": outcome, "items": (1, 2)})
        assert plain["outcome"]["rows"][0]["status"] == "applied"
        assert plain["items"] == [1, 2]

    def test_scalars_pass_through(self) -> None:
        assert to_plain("x") == "x"
        assert to_plain(None) is None


class TestFormatResultJSON:
    def test_json_mode_returns_valid_json(self) -> None:
        records = RecordSet(("id",), [{"id": 1}])
        output = format_result(_ok("read", records=records, count=1), json_output=True)
        data = json.loads(output)
        assert data["ok"] is True
        assert data["op"] == "read"
        assert data["data"]["records"] == [{"id": 1}]

    def test_json_error(self) -> None:
        result = ServiceResult(
            ok=False, op="read", error=ServiceError(code="QUERY_FAILED", message="boom")
        )
        data = json.loads(format_result(result, json_output=True))
        assert data["error"]["code"] == "QUERY_FAILED"


class TestFormatResultHuman:
    def test_human_mode_uses_renderer(self) -> None:
        output = format_result(_ok("other", answer=42))
        assert "OK" in output
        assert "answer: 42" in output

    def test_human_update(self) -> None:
        outcome = OperationOutcome(
            entity_type="customer",
            rows=[
                RowOutcome.failed(
                    {"id": 3}, RowChange.ADDED, FailureReason.CONSTRAINT_VIOLATION, "dup"
                )
            ],
            unchanged=2,
        )
        output = format_result(_ok("update", outcome=outcome, summary=outcome.summary()))
        assert "constraint_violation" in output
        assert "applied=0 skipped=0 failed=1 unchanged=2" in output
