"""Exceptions raised while provisioning a machine."""

from __future__ import annotations

__all__ = [
    "ApplyError",
    "BastionScanError",
    "ConfigError",
    "NoHostKeyReceived",
    "ProvisionError",
    "RenderError",
    "StagingError",
    "TrustDiscoveryTimeout",
]


class ProvisionError(Exception):
    """Base exception type for failures that abort a provisioning run."""


class ConfigError(ProvisionError):
    """Raised for missing or contradictory input, before any I/O happens."""


class StagingError(ProvisionError):
    """Raised when a temporary key, inventory or known hosts file cannot be written."""


class TrustDiscoveryTimeout(ProvisionError, TimeoutError):
    """Raised when the target never answered within the keyscan timeout."""


class NoHostKeyReceived(ProvisionError):
    """Raised when the target answered but never offered a usable host key."""


class BastionScanError(ProvisionError):
    """Raised when ssh-keyscan through the bastion fails."""


class RenderError(ProvisionError):
    """Raised when an inventory template cannot be rendered."""


class ApplyError(ProvisionError):
    """Raised when a local command exits unsuccessfully."""

    def __init__(self, command: str, exit_code: int | None, message: str | None = None) -> None:
        self.command = command
        self.exit_code = exit_code
        if message is None:
            message = f"command exited with status {exit_code}: {command}"
        super().__init__(message)
