"""JSON / human output selection.

Result payloads carry live objects (RecordSet, OperationOutcome); they are
converted to plain data here, at the edge, before serialization.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from entitykit.domain.records import RecordSet

if TYPE_CHECKING:
    from entitykit.services.result import ServiceResult


def to_plain(value: Any) -> Any:
    """Recursively convert record sets and models into JSON-ready data."""
    if isinstance(value, RecordSet):
        return value.to_dicts()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return value


def format_result(result: ServiceResult, *, json_output: bool = False) -> str:
    """Format a ServiceResult for display."""
    if json_output:
        plain = result.model_copy(update={"data": to_plain(result.data)})
        return plain.model_dump_json(indent=2)

    from entitykit.output.renderers import render_result

    return render_result(result)
