"""Settings commands: show and edit scope-aware resolver settings."""

from __future__ import annotations

from typing import Any
from typing import cast

import click
import yaml
from pydantic import ValidationError
from rich.table import Table

from ..console import console
from ..settings import ResolverSettings
from ..settings import Scope
from ..settings import get_settings
from ..utils.error_format import escape_markup

SCOPES = ("local", "project", "global")


def _parse_value(raw: str) -> Any:
    """Interpret a command-line value as YAML (``true``, ``1.5``, ``null`` ...)."""
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


@click.group(name="config")
def config():
    """Show and edit resolver settings.

    Settings merge from three scopes (local > project > global).

    Examples:
        platform-resolver config show
        platform-resolver config set react_canary_enabled true --scope local
        platform-resolver config unset watch_config
    """
    pass


@config.command("show")
@click.pass_context
def show(ctx: click.Context):
    """Show the effective settings."""
    project_root = ctx.obj.get("project_root") if ctx.obj else None
    app_settings = get_settings(project_root)
    try:
        settings = app_settings.load(project_root=project_root)
    except ValidationError as e:
        console.print(f"[red]Invalid settings:[/red] {escape_markup(e)}")
        ctx.exit(1)

    explicit = app_settings.get_merged_settings()
    table = Table(title="Resolver Settings", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="green")
    table.add_column("Value")
    table.add_column("Source", style="dim")
    for name in ResolverSettings.model_fields:
        source = "settings" if name in explicit else "default"
        table.add_row(name, escape_markup(getattr(settings, name)), source)
    console.print(table)


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.option("--scope", type=click.Choice(SCOPES), default="project", help="Settings scope to write")
@click.pass_context
def set_value(ctx: click.Context, key: str, value: str, scope: str):
    """Set KEY to VALUE in the given scope."""
    project_root = ctx.obj.get("project_root") if ctx.obj else None
    parsed = _parse_value(value)
    try:
        ResolverSettings.model_validate({key: parsed})
    except ValidationError as e:
        console.print(f"[red]Invalid value for {escape_markup(key)}:[/red] {escape_markup(e.errors()[0]['msg'])}")
        ctx.exit(1)

    app_settings = get_settings(project_root)
    try:
        app_settings.set(key, parsed, scope=cast(Scope, scope))
    except KeyError as e:
        console.print(f"[red]Error:[/red] {escape_markup(e.args[0])}")
        ctx.exit(1)
    console.print(f"[green]✓ Set {escape_markup(key)} = {escape_markup(parsed)} ({scope})[/green]")


@config.command("unset")
@click.argument("key")
@click.option("--scope", type=click.Choice(SCOPES), default="project", help="Settings scope to edit")
@click.pass_context
def unset_value(ctx: click.Context, key: str, scope: str):
    """Remove KEY from the given scope."""
    project_root = ctx.obj.get("project_root") if ctx.obj else None
    get_settings(project_root).unset(key, scope=cast(Scope, scope))
    console.print(f"[green]✓ Removed {escape_markup(key)} ({scope})[/green]")
