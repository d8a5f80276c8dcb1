"""AppContext — shared Click context for all commands.

Created once by the root CLI group and flows to all subcommands via
``@click.pass_obj``. Provides lazy registry construction and centralized
result emission (stdout/stderr routing + exit codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from entitykit.output.formatters import format_result

if TYPE_CHECKING:
    from entitykit.config.settings import EntitySettings
    from entitykit.services.registry import EntityRegistry
    from entitykit.services.result import ServiceResult


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    The registry (and its database engine) is created on first use so
    ``--help`` and ``--version`` never touch the database.
    """

    def __init__(self, settings: EntitySettings) -> None:
        self.settings = settings
        self._registry: EntityRegistry | None = None

        from entitykit.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

    @property
    def registry(self) -> EntityRegistry:
        """The entity registry (created lazily on first access)."""
        if self._registry is None:
            from entitykit.services.registry import EntityRegistry

            try:
                self._registry = EntityRegistry.from_settings(self.settings)
            except Exception as exc:
                msg = f"Cannot load entity bindings: {exc}"
                raise click.ClickException(msg) from exc
        return self._registry

    def close(self) -> None:
        if self._registry is not None:
            self._registry.close()

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success (``result.ok``): writes to stdout, returns normally.
          Warnings go to stderr so they don't pollute piped output.
        * Failure: writes to stderr, exits with code 1.
        """
        json_output = self.settings.json_output
        output = format_result(result, json_output=json_output)
        if result.ok:
            click.echo(output)
            if not json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
