"""Assemble known hosts file content from trust lines."""

from __future__ import annotations

from collections.abc import Iterable

__all__ = ["build_known_hosts", "known_hosts_name", "trust_line"]

_DEFAULT_SSH_PORT = 22


def known_hosts_name(host: str, port: int) -> str:
    """Return the host pattern OpenSSH uses to look up ``host:port``."""

    if port == _DEFAULT_SSH_PORT:
        return host
    return f"[{host}]:{port}"


def trust_line(name: str, host_key: str) -> str:
    """Combine a host pattern and a ``<key-type> <base64>`` key into one record."""

    return f"{name} {host_key.strip()}"


def build_known_hosts(lines: Iterable[str]) -> str:
    """Join trimmed trust lines into known hosts file content.

    The result always ends with a newline, so an empty input yields ``"\\n"``.
    """

    return "\n".join(line.strip() for line in lines) + "\n"
