"""Operation-specific Rich renderers for ServiceResult.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from entitykit.domain.outcome import OperationOutcome
from entitykit.domain.records import RecordSet
from entitykit.output.console import create_console, get_output, style_for_status

if TYPE_CHECKING:
    from rich.console import Console

    from entitykit.services.result import ServiceResult


def render_result(result: ServiceResult) -> str:
    """Render a ServiceResult to a styled string via Rich."""
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console)
    else:
        _render_error(result, console)

    return get_output(console).rstrip("\n")


# ── Helpers ───────────────────────────────────────────────────────────


def _status_line(console: Console, result: ServiceResult) -> None:
    label = Text("OK", style="ek.ok")
    op = Text(f"  {result.op}", style="ek.op")
    entity = Text(f"  {result.entity}" if result.entity else "", style="ek.key")
    console.print(label, op, entity, sep="")


def _identity_text(identity: dict[str, Any]) -> str:
    return ", ".join(f"{key}={value}" for key, value in identity.items())


def _render_outcome(console: Console, outcome: OperationOutcome) -> None:
    if not outcome.rows:
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("Identity")
    table.add_column("Change")
    table.add_column("Status")
    table.add_column("Reason")
    table.add_column("Message")
    for row in outcome.rows:
        table.add_row(
            _identity_text(row.identity),
            str(row.change),
            Text(str(row.status), style=style_for_status(str(row.status))),
            str(row.reason) if row.reason else "",
            row.message or "",
        )
    console.print(table)


# ── Per-op renderers ──────────────────────────────────────────────────


def _render_read(result: ServiceResult, console: Console) -> None:
    _status_line(console, result)
    records = result.data.get("records")
    if not isinstance(records, RecordSet) or not len(records):
        console.print(Text("  No rows found", style="ek.key"))
        return

    columns: list[str] = []
    for row in records:
        columns.extend(name for name in row if name not in columns)

    table = Table(show_header=True, header_style="bold")
    for name in columns:
        table.add_column(name)
    for row in records:
        table.add_row(*("" if row.get(name) is None else str(row.get(name)) for name in columns))
    console.print(table)
    console.print(Text(f"  {len(records)} row(s)", style="ek.key"))


def _render_update(result: ServiceResult, console: Console) -> None:
    _status_line(console, result)
    outcome = result.data.get("outcome")
    if isinstance(outcome, OperationOutcome):
        _render_outcome(console, outcome)
    summary = result.data.get("summary") or {}
    counts = " ".join(
        f"{key}={summary.get(key, 0)}" for key in ("applied", "skipped", "failed", "unchanged")
    )
    console.print(Text(f"  {counts}", style="ek.key"))


def _render_generic(result: ServiceResult, console: Console) -> None:
    _status_line(console, result)
    for key, value in result.data.items():
        console.print(Text(f"  {key}: ", style="ek.key"), str(value), sep="")


def _render_error(result: ServiceResult, console: Console) -> None:
    label = Text("ERROR", style="ek.error")
    message = result.error.message if result.error else "Unknown error"
    code = f" [{result.error.code}]" if result.error else ""
    console.print(label, Text(f"  {result.op}{code}", style="ek.op"), f"  {message}", sep="")
    outcome = result.data.get("outcome")
    if isinstance(outcome, OperationOutcome):
        _render_outcome(console, outcome)


_OP_RENDERERS = {
    "read": _render_read,
    "update": _render_update,
}
