"""Configuration-related CLI commands."""

from __future__ import annotations

import json

import typer

from tfansible.cli._shared import USAGE_ERROR, fail, show_help_if_no_subcommand
from tfansible.config import SETTING_KEYS, ConfigStore, SSHSettings

config_app = typer.Typer(help="Manage stored SSH settings")


@config_app.callback(invoke_without_command=True)
def config_root(ctx: typer.Context) -> None:
    """Display contextual help when no subcommand is provided."""

    show_help_if_no_subcommand(ctx)


@config_app.command("show")
def show_config() -> None:
    """Display the current SSH settings."""

    store = ConfigStore()
    settings = store.load()
    typer.echo(json.dumps(settings.to_payload(), indent=2))


@config_app.command("set")
def set_config_value(
    key: str = typer.Argument(
        ...,
        metavar="KEY",
        help=f"Setting to change: {', '.join(SETTING_KEYS)}.",
    ),
    value: str = typer.Argument(..., metavar="VALUE", help="New value for the setting."),
) -> None:
    """Persist a single SSH setting in the config file."""

    store = ConfigStore()
    settings = store.load()
    try:
        updated = settings.with_value(key, value)
    except ValueError as exc:
        fail(exc, USAGE_ERROR)
    store.save(updated)
    typer.echo(f"Updated {key}.")


@config_app.command("reset")
def reset_config() -> None:
    """Restore the default SSH settings."""

    store = ConfigStore()
    store.save(SSHSettings())
    typer.echo("SSH settings reset to defaults.")
