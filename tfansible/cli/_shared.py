"""Shared helpers for Typer-based CLI components."""

from __future__ import annotations

from typing import NoReturn

import typer

USAGE_ERROR = 2
RUN_FAILED = 1


def show_help_if_no_subcommand(ctx: typer.Context) -> None:
    """Emit contextual help when a subcommand is not provided."""

    if ctx.invoked_subcommand or ctx.resilient_parsing:
        return
    typer.echo(ctx.get_help())
    raise typer.Exit()


def fail(exc: Exception, code: int) -> NoReturn:
    """Report ``exc`` on stderr and leave the command with ``code``."""

    typer.echo(str(exc), err=True)
    raise typer.Exit(code) from exc
