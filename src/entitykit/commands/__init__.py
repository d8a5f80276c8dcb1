"""Subcommand modules for entitykit.

Provides register_commands() which uses deferred imports to keep
``entitykit --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all standalone commands on the root CLI group."""
    from entitykit.commands.entities import entities
    from entitykit.commands.read import read
    from entitykit.commands.reconcile import reconcile

    cli.add_command(entities)
    cli.add_command(read)
    cli.add_command(reconcile)
