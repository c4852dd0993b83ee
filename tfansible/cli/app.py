"""Command-line entry point for running plays against a machine."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping, Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any

import typer

from tfansible import __version__
from tfansible.cli._shared import RUN_FAILED, USAGE_ERROR, fail, show_help_if_no_subcommand
from tfansible.cli.config import config_app
from tfansible.config import ConfigStore, SSHSettings
from tfansible.core.errors import ProvisionError
from tfansible.core.local_mode import LocalMode
from tfansible.core.plays import Playbook

app = typer.Typer(help="Provision machines by running Ansible plays from this host")
app.add_typer(config_app, name="config", help="Inspect and adjust stored SSH settings")

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class RunFileError(ValueError):
    """Raised when the run file cannot be read or has the wrong shape."""


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=_LOG_FORMAT,
    )
    # paramiko is chatty at INFO
    logging.getLogger("paramiko").setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback(invoke_without_command=True)
def cli(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the application's version and exit.",
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Emit debug diagnostics.",
    ),
) -> None:
    """Handle top-level options for the CLI."""
    if version:
        typer.echo(__version__)
        raise typer.Exit()

    _configure_logging(verbose)
    show_help_if_no_subcommand(ctx)


def _stringify_attributes(raw: Mapping[str, Any]) -> dict[str, str]:
    """Convert JSON connection values to the string attributes the resolver expects."""

    attributes: dict[str, str] = {}
    for key, value in raw.items():
        if value is None:
            continue
        if isinstance(value, bool):
            attributes[key] = "true" if value else "false"
        else:
            attributes[key] = str(value)
    return attributes


def load_run_file(path: Path) -> tuple[dict[str, str], list[Playbook]]:
    """Read a run file holding ``connection`` attributes and ``plays``."""

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise RunFileError(f"unable to read run file '{path}': {exc}") from exc
    except json.JSONDecodeError as exc:
        raise RunFileError(f"run file '{path}' is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise RunFileError("run file must contain a JSON object")

    connection = payload.get("connection", {})
    if not isinstance(connection, dict):
        raise RunFileError("'connection' must be an object")
    plays = payload.get("plays", [])
    if not isinstance(plays, list) or not all(isinstance(item, dict) for item in plays):
        raise RunFileError("'plays' must be a list of objects")
    return _stringify_attributes(connection), [Playbook.from_payload(item) for item in plays]


def _merge_settings(
    stored: SSHSettings,
    *,
    insecure: bool,
    user_known_hosts_file: str | None,
    keyscan_timeout: int | None,
) -> SSHSettings:
    settings = stored
    if insecure:
        settings = settings.with_strict_checking_disabled()
    if user_known_hosts_file is not None:
        settings = replace(settings, user_known_hosts_file=user_known_hosts_file)
    if keyscan_timeout is not None:
        settings = replace(settings, ssh_keyscan_timeout_seconds=keyscan_timeout)
    return settings


@app.command("run")
def run_plays(
    run_file: Path = typer.Argument(
        ...,
        metavar="RUN_FILE",
        help="JSON file with 'connection' attributes and a list of 'plays'.",
    ),
    insecure: bool = typer.Option(
        False,
        "--insecure-no-strict-host-key-checking",
        help="Do not verify host keys for this run.",
    ),
    user_known_hosts_file: str | None = typer.Option(
        None,
        "--user-known-hosts-file",
        help="Use this known hosts file instead of discovering host keys.",
    ),
    keyscan_timeout: int | None = typer.Option(
        None,
        "--ssh-keyscan-timeout",
        min=0,
        help="Seconds to keep retrying host key discovery.",
    ),
) -> None:
    """Apply the plays of RUN_FILE to the machine it describes."""

    try:
        attributes, plays = load_run_file(run_file)
    except (RunFileError, ProvisionError) as exc:
        fail(exc, USAGE_ERROR)

    settings = _merge_settings(
        ConfigStore().load(),
        insecure=insecure,
        user_known_hosts_file=user_known_hosts_file,
        keyscan_timeout=keyscan_timeout,
    )
    try:
        LocalMode.from_attributes(attributes).run(plays, settings)
    except ProvisionError as exc:
        fail(exc, RUN_FAILED)
    typer.echo(f"Applied {sum(1 for play in plays if play.enabled)} play(s).")


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the tfansible CLI."""

    args = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        result = app(args=args, standalone_mode=False)
    except typer.Exit as exc:  # exit path already handled by Typer
        return exc.exit_code
    except Exception as exc:  # pragma: no cover - unexpected errors bubble to the shell
        typer.echo(str(exc), err=True)
        return 1
    # Without standalone mode click hands typer.Exit codes back as the return value.
    return result if isinstance(result, int) else 0


if __name__ == "__main__":  # pragma: no cover - manual execution only
    raise SystemExit(main())
