"""Custom Click command class with --examples support, plus shared options."""

from __future__ import annotations

import json
from typing import Any

import click


def _add_examples_option(cmd: click.Command, examples: str) -> None:
    """Attach an eager ``--examples`` flag to a Click command."""

    def show_examples(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
        if not value:
            return
        click.echo(f"Examples for '{ctx.command_path}':\n")
        click.echo(examples)
        ctx.exit(0)

    cmd.params.append(
        click.Option(
            ["--examples"],
            is_flag=True,
            expose_value=False,
            is_eager=True,
            callback=show_examples,
            help="Show usage examples.",
        )
    )


class EntityCommand(click.Command):
    """Click Command subclass that supports an ``--examples`` flag."""

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            _add_examples_option(self, examples)


def parse_where(pairs: tuple[str, ...]) -> dict[str, Any] | None:
    """Turn ``FIELD=VALUE`` pairs into an equality filter.

    Values are read as JSON literals when possible (``id=3`` → ``3``,
    ``active=true`` → ``True``) and as plain strings otherwise.

    Examples:
        >>> parse_where(("id=3", "name=Ann"))
        {'id': 3, 'name': 'Ann'}
        >>> parse_where(()) is None
        True
    """
    if not pairs:
        return None
    result: dict[str, Any] = {}
    for pair in pairs:
        name, sep, raw = pair.partition("=")
        if not sep or not name:
            msg = f"Expected FIELD=VALUE, got {pair!r}"
            raise click.BadParameter(msg, param_hint="--where")
        try:
            result[name] = json.loads(raw)
        except json.JSONDecodeError:
            result[name] = raw
    return result


where_option = click.option(
    "--where",
    "where",
    multiple=True,
    metavar="FIELD=VALUE",
    help="Equality filter; repeat for several fields.",
)

timeout_option = click.option(
    "--timeout",
    type=float,
    default=None,
    help="Per-call backing-store timeout in seconds.",
)
