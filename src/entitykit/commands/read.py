"""Command: read rows of an entity."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from entitykit.commands._base import EntityCommand, parse_where, timeout_option, where_option

if TYPE_CHECKING:
    from entitykit.commands._context import AppContext


@click.command(
    cls=EntityCommand,
    examples="""\
  entitykit read customer
  entitykit read customer --where region=EU
  entitykit --json read customer --where id=3 --timeout 2.5""",
)
@click.argument("entity")
@where_option
@timeout_option
@click.pass_obj
def read(app: AppContext, entity: str, where: tuple[str, ...], timeout: float | None) -> None:
    """Read ENTITY rows matching the --where filter."""
    from entitykit.services.entity import EntityService

    result = EntityService(app.registry).read(entity, parse_where(where), timeout=timeout)
    app.emit(result)
