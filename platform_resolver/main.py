"""platform-resolver CLI: resolve specifiers and explain pipeline decisions."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict
from pathlib import Path

import click
from pydantic import ValidationError
from rich.logging import RichHandler
from rich.table import Table

from .commands.config import config as config_group
from .console import console
from .console import error_console
from .errors import ResolutionError
from .externals import setup_node_externals
from .factory import create_resolution_pipeline
from .logging_setup import ResolveTraceFilter
from .logging_setup import init_json_logging
from .models import ENVIRONMENTS
from .models import PLATFORMS
from .models import ResolutionRequest
from .models import describe_resolution
from .pipeline import FALLBACK
from .pipeline import ResolutionPipeline
from .polyfills import setup_shim_files
from .settings import ResolverSettings
from .settings import get_settings
from .utils.error_format import escape_markup
from .utils.error_format import format_error_message
from .utils.error_format import format_resolution_error
from .virtual_modules import SHIMS_FOLDER
from .virtual_modules import VirtualModuleRegistry

logger = logging.getLogger(__name__)


def _configure_console_logging(verbose: int) -> None:
    """-v shows debug logs without per-specifier traces, -vv shows everything."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)
    if verbose <= 0:
        return
    handler = RichHandler(console=error_console, show_path=False)
    handler.setLevel(logging.DEBUG)
    if verbose == 1:
        handler.addFilter(ResolveTraceFilter())
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)


def _load_settings(ctx: click.Context, **overrides) -> ResolverSettings:
    project_root = ctx.obj.get("project_root")
    try:
        return get_settings(project_root).load(project_root=project_root, **overrides)
    except ValidationError as e:
        error_console.print(f"[red]Invalid settings:[/red] {escape_markup(e)}")
        ctx.exit(1)


def _build_request(
    settings: ResolverSettings,
    specifier: str,
    origin: Path,
    platform: str | None,
    environment: str | None,
    client_boundary: bool,
    production: bool,
) -> ResolutionRequest:
    origin_path = origin if origin.is_absolute() else settings.resolved_root() / origin
    options: dict = {"exporting": settings.exporting, "clientboundary": client_boundary}
    if environment:
        options["environment"] = environment
    return ResolutionRequest.from_options(specifier, origin_path, platform, options, dev=not production)


def _resolve_or_exit(ctx: click.Context, pipeline: ResolutionPipeline, request: ResolutionRequest):
    try:
        return pipeline.resolve_with_strategy(request)
    except ResolutionError as e:
        error_console.print(format_resolution_error(e))
        ctx.exit(1)


def request_options(func):
    """Options shared by ``resolve`` and ``explain``."""
    decorators = [
        click.argument("specifier"),
        click.option(
            "--from",
            "origin",
            default="index.js",
            show_default=True,
            type=click.Path(path_type=Path),
            help="File the specifier is imported from (relative to the project root)",
        ),
        click.option("--platform", "-p", type=click.Choice(PLATFORMS), default=None, help="Target platform"),
        click.option("--environment", "-e", type=click.Choice(ENVIRONMENTS), default=None, help="Bundle environment"),
        click.option("--exporting", is_flag=True, help="Resolve for an export bundle"),
        click.option("--client-boundary", is_flag=True, help="Request comes from an async client-boundary chunk"),
        click.option("--production", is_flag=True, help="Resolve for a production (non-dev) bundle"),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


@click.group()
@click.version_option(package_name="platform-resolver")
@click.option(
    "--project-root",
    "-C",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory)",
)
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Write JSONL logs to this file")
@click.option("--verbose", "-v", count=True, help="Show debug logs (-vv includes per-specifier traces)")
@click.pass_context
def cli(ctx: click.Context, project_root: Path | None, log_file: str | None, verbose: int):
    """platform-resolver - multi-platform module resolution for JavaScript bundles."""
    ctx.ensure_object(dict)
    ctx.obj["project_root"] = project_root.resolve() if project_root is not None else None
    if log_file or os.environ.get("PLATFORM_RESOLVER_LOG_PATH"):
        init_json_logging(log_file)
    _configure_console_logging(verbose)


@cli.command()
@request_options
@click.option("--json", "as_json", is_flag=True, help="Print the resolution as JSON")
@click.pass_context
def resolve(
    ctx: click.Context,
    specifier: str,
    origin: Path,
    platform: str | None,
    environment: str | None,
    exporting: bool,
    client_boundary: bool,
    production: bool,
    as_json: bool,
):
    """Resolve SPECIFIER and print the result."""
    settings = _load_settings(ctx, exporting=exporting or None)
    request = _build_request(settings, specifier, origin, platform, environment, client_boundary, production)

    with create_resolution_pipeline(settings) as pipeline:
        resolution, strategy = _resolve_or_exit(ctx, pipeline, request)

    if as_json:
        payload = asdict(resolution)
        payload["strategy"] = strategy
        click.echo(json.dumps(payload, default=str))
        return
    console.print(escape_markup(describe_resolution(resolution)))


@cli.command()
@request_options
@click.pass_context
def explain(
    ctx: click.Context,
    specifier: str,
    origin: Path,
    platform: str | None,
    environment: str | None,
    exporting: bool,
    client_boundary: bool,
    production: bool,
):
    """Show which pipeline step decided how SPECIFIER resolves."""
    settings = _load_settings(ctx, exporting=exporting or None)
    request = _build_request(settings, specifier, origin, platform, environment, client_boundary, production)

    with create_resolution_pipeline(settings) as pipeline:
        resolution, strategy = _resolve_or_exit(ctx, pipeline, request)
        steps = pipeline.strategy_names

    decider, *rewrites = strategy.split("+")
    decided_at = steps.index(decider)
    table = Table(title=f"Resolving {escape_markup(specifier)}", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Step")
    table.add_column("Outcome")
    for index, name in enumerate(steps):
        if name == decider:
            outcome = "[green]resolved[/green]" if name == FALLBACK else "[green]decided[/green]"
            table.add_row(str(index + 1), f"[bold]{name}[/bold]", outcome)
        elif name in rewrites:
            table.add_row(str(index + 1), f"[bold]{name}[/bold]", "[green]rewrote[/green]")
        elif index < decided_at:
            table.add_row(str(index + 1), name, "[dim]passed[/dim]")
        elif decider == FALLBACK:
            table.add_row(str(index + 1), name, "[dim]no change[/dim]")
        else:
            table.add_row(str(index + 1), f"[dim]{name}[/dim]", "[dim]not reached[/dim]")

    console.print(table)
    console.print(f"[bold]Result:[/bold] {escape_markup(describe_resolution(resolution))}")
    console.print(f"[dim]Platform: {request.platform or 'none'}, environment: {request.environment or 'none'}[/dim]")


@cli.command()
@click.pass_context
def setup(ctx: click.Context):
    """Materialize Node.js externals, shims and polyfills in the project."""
    settings = _load_settings(ctx)
    project_root = settings.resolved_root()
    registry = VirtualModuleRegistry(project_root)
    try:
        setup_shim_files(
            registry,
            shims_source=settings.shims_source_dir,
            canary_source=settings.canary_source_dir,
            canary=settings.react_canary_enabled,
        )
        externals = setup_node_externals(registry)
    except OSError as e:
        error_console.print(f"[red]Setup failed:[/red] {escape_markup(format_error_message(e))}")
        ctx.exit(1)

    console.print(f"[green]✓ Prepared {len(externals)} Node.js externals in {escape_markup(registry.base_dir)}[/green]")
    console.print(f"[dim]Shims: {escape_markup(project_root / SHIMS_FOLDER)}[/dim]")


cli.add_command(config_group)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
