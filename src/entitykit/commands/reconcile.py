"""Command: make a slice of an entity match a JSON document."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from entitykit.commands._base import EntityCommand, parse_where, timeout_option, where_option

if TYPE_CHECKING:
    from entitykit.commands._context import AppContext


def load_rows(path: Path) -> list[dict[str, Any]]:
    """Read a JSON list of rows, or an object with a ``rows`` list."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        msg = f"Invalid JSON in {path}: {exc}"
        raise click.ClickException(msg) from exc
    if isinstance(payload, dict):
        payload = payload.get("rows")
    if not isinstance(payload, list) or not all(isinstance(row, dict) for row in payload):
        msg = f"{path} must contain a list of row objects"
        raise click.ClickException(msg)
    return payload


@click.command(
    cls=EntityCommand,
    examples="""\
  entitykit reconcile customer desired.json
  entitykit reconcile customer eu.json --where region=EU
  entitykit --json reconcile customer desired.json --workers 4 --timeout 5""",
)
@click.argument("entity")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@where_option
@timeout_option
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Parallel writes.")
@click.pass_obj
def reconcile(
    app: AppContext,
    entity: str,
    file: Path,
    where: tuple[str, ...],
    timeout: float | None,
    workers: int | None,
) -> None:
    """Reconcile ENTITY rows selected by --where with the rows in FILE.

    Rows in FILE but not in the store are inserted, rows in both are
    updated where they differ, and selected rows absent from FILE are
    deleted.
    """
    from entitykit.services.entity import EntityService

    rows = load_rows(file)
    svc = EntityService(app.registry)

    loaded = svc.read(entity, parse_where(where), timeout=timeout)
    if not loaded.ok:
        app.emit(loaded)
        return

    app.emit(svc.update(entity, rows, timeout=timeout, max_workers=workers))
