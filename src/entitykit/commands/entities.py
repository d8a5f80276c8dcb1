"""Command: list configured entity types."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from entitykit.commands._base import EntityCommand
from entitykit.services.result import ServiceResult

if TYPE_CHECKING:
    from entitykit.commands._context import AppContext


@click.command(
    cls=EntityCommand,
    examples="""\
  entitykit entities
  entitykit --json entities""",
)
@click.pass_obj
def entities(app: AppContext) -> None:
    """List entity types bound in the configuration."""
    registry = app.registry
    items = []
    for entity_type in registry.entity_types():
        binding = registry.binding(entity_type)
        items.append(
            {
                "entity": entity_type,
                "identity": list(binding.identity),
                "targets": [store.name for store in binding.targets],
                "skip": sorted(binding.skip),
            }
        )
    app.emit(ServiceResult(ok=True, op="entities", data={"count": len(items), "items": items}))
