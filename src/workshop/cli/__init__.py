"""Command-line interface for :mod:`workshop`.

Example:
    >>> import typer
    >>> from workshop.cli import create_app
    >>> isinstance(create_app(), typer.Typer)
    True
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import typer

from workshop.core.config import (
    AppConfig,
    ConfigError,
    load_app_config,
    render_user_config,
)
from workshop.core.logging import Logger, configure_logging, get_logger
from workshop.core.paths import HOME_ENV_VAR, WorkshopPaths, resolve_home
from workshop.errors import WorkshopError
from workshop.manifest import Package, Workshop, force_unlock
from workshop.service import WorkshopService

_app_help = (
    "Fetch and record the DSL packages a project depends on."
    "\n\n"
    "Use `workshop get github.com/org/repo` inside a project to add a package."
)


@dataclass(slots=True)
class CLIContext:
    """State shared by every ``workshop`` command."""

    paths: WorkshopPaths
    config: AppConfig
    logger: Logger


def _build_service(paths: WorkshopPaths, config: AppConfig) -> WorkshopService:
    return WorkshopService.with_git(paths=paths, config=config)


def _require_context(ctx: typer.Context) -> CLIContext:
    context = getattr(ctx, "obj", None)
    if not isinstance(context, CLIContext):
        typer.secho("Internal error: CLI context not initialized.", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    return context


def _handle_failure(context: CLIContext, *, action: str, error: Exception) -> None:
    typer.secho(f"{action} failed: {error}", fg=typer.colors.RED)
    context.logger.error(
        "workshop-command-failed",
        action=action,
        error=str(error),
        error_type=type(error).__name__,
    )
    raise typer.Exit(code=1) from error


class _ProgressPrinter:
    """Echo fetch progress, skipping repeated messages per package."""

    def __init__(self) -> None:
        self._last: dict[str, str] = {}

    def __call__(self, total: int, package: Package, message: str) -> None:
        if self._last.get(package.unique_id) == message:
            return
        self._last[package.unique_id] = message
        suffix = f" ({total})" if total else ""
        typer.echo(f"  {package.pinned_spec}: {message}{suffix}")


def _format_package(package: Package) -> str:
    line = f"  {package.alias:<20} {package.pinned_spec}"
    if package.replaced and package.local_path is not None:
        line += f" => {package.local_path}"
    return line


def create_app() -> "typer.Typer":
    """Return the Typer application powering the ``workshop`` CLI."""

    app = typer.Typer(
        help=_app_help,
        no_args_is_help=True,
        invoke_without_command=False,
    )

    @app.callback()
    def main_callback(
        ctx: typer.Context,
        home: Path | None = typer.Option(
            None,
            "--home",
            help=f"Workshop home directory (defaults to ${HOME_ENV_VAR} or ~/.workshop).",
        ),
        log_level: str | None = typer.Option(
            None,
            "--log-level",
            "-l",
            help="Override the logging level (DEBUG/INFO/WARNING/ERROR).",
        ),
    ) -> None:
        env_home = os.environ.get(HOME_ENV_VAR)
        try:
            paths = resolve_home(
                home_override=home,
                env_override=Path(env_home) if env_home else None,
            )
        except ValueError as exc:
            typer.secho(f"Home error: {exc}", fg=typer.colors.RED)
            raise typer.Exit(code=1) from exc

        overrides = {"log_level": log_level} if log_level else None
        try:
            config = load_app_config(paths, cli_overrides=overrides)
        except ConfigError as exc:
            typer.secho(str(exc), fg=typer.colors.RED)
            raise typer.Exit(code=1) from exc

        logs_dir = paths.logs_dir if paths.home.is_dir() else None
        configure_logging(level=config.log_level, logs_dir=logs_dir)
        ctx.obj = CLIContext(
            paths=paths,
            config=config,
            logger=get_logger(__name__, command=ctx.invoked_subcommand),
        )

    @app.command("init", help="Create the home directory and workshop.toml.")
    def init_command(ctx: typer.Context) -> None:
        context = _require_context(ctx)
        paths = context.paths
        paths.ensure()
        if paths.config_file.exists():
            typer.echo(f"Config already present at {paths.config_file}")
            return
        paths.config_file.write_text(
            render_user_config(context.config),
            encoding="utf-8",
        )
        context.logger.info("home-initialized", home=str(paths.home))
        typer.secho(f"Initialized {paths.home}", fg=typer.colors.GREEN)

    @app.command("get", help="Add a package and its dependencies to a project.")
    def get_command(
        ctx: typer.Context,
        spec: str = typer.Argument(
            ...,
            help="Package coordinate: host/org/repo[/path][@version].",
        ),
        alias: str | None = typer.Option(
            None,
            "--alias",
            "-a",
            help="Local name for the package (defaults to its last path segment).",
        ),
        project: Path = typer.Option(
            Path("."),
            "--project",
            "-p",
            help="Project directory holding the manifest.",
        ),
    ) -> None:
        context = _require_context(ctx)
        service = _build_service(context.paths, context.config)
        try:
            result = service.get(
                project,
                spec,
                alias=alias,
                progress=_ProgressPrinter(),
            )
        except WorkshopError as exc:
            _handle_failure(context, action="get", error=exc)
            return

        if result.already_present:
            typer.echo(f"{result.package.pinned_spec} is already required")
            return

        typer.secho(
            f"Added {result.package.pinned_spec} as {result.package.alias}",
            fg=typer.colors.GREEN,
        )
        for package in result.added:
            if package.indirect:
                typer.echo(f"  + {package.pinned_spec} (indirect)")

    @app.command("list", help="Show the packages recorded in a project manifest.")
    def list_command(
        ctx: typer.Context,
        project: Path = typer.Option(
            Path("."),
            "--project",
            "-p",
            help="Project directory holding the manifest.",
        ),
        as_json: bool = typer.Option(
            False,
            "--json",
            help="Print the manifest view, derived fields included, as JSON.",
        ),
    ) -> None:
        context = _require_context(ctx)
        try:
            workshop = Workshop.open(project, settings=context.config.manifest)
        except WorkshopError as exc:
            _handle_failure(context, action="list", error=exc)
            return

        if as_json:
            typer.echo(json.dumps(workshop.snapshot(), indent=2))
            return

        if not len(workshop):
            typer.echo(f"No packages required in {workshop.file}")
            return

        ordered = workshop.ordered()
        direct = [package for package in ordered if not package.indirect]
        indirect = [package for package in ordered if package.indirect]
        typer.secho(f"{workshop.file}", fg=typer.colors.CYAN, bold=True)
        typer.echo("require:")
        for package in direct:
            typer.echo(_format_package(package))
        if indirect:
            typer.echo("indirect:")
            for package in indirect:
                typer.echo(_format_package(package))

    @app.command("unlock", help="Remove a stale manifest lock marker.")
    def unlock_command(
        ctx: typer.Context,
        project: Path = typer.Option(
            Path("."),
            "--project",
            "-p",
            help="Project directory holding the manifest.",
        ),
        force: bool = typer.Option(
            False,
            "--force",
            help="Confirm that no other workshop process is running.",
        ),
    ) -> None:
        context = _require_context(ctx)
        if not force:
            typer.secho(
                "Refusing to unlock without --force; make sure no other "
                "workshop process is running first.",
                fg=typer.colors.YELLOW,
            )
            raise typer.Exit(code=1)

        settings = context.config.manifest
        try:
            removed = force_unlock(
                Workshop.manifest_path(project, settings),
                suffix=settings.lock_suffix,
            )
        except WorkshopError as exc:
            _handle_failure(context, action="unlock", error=exc)
            return

        if removed:
            typer.secho("Lock removed.", fg=typer.colors.GREEN)
        else:
            typer.echo("No lock present.")

    return app


__all__ = ["CLIContext", "create_app"]
