"""SSH settings models and persistence helpers for tfansible."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from tfansible.paths import data_dir

__all__ = ["ConfigStore", "SSHSettings", "default_config_path", "SETTING_KEYS"]

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_FILENAME = "config.json"
_DEFAULT_KEYSCAN_TIMEOUT_SECONDS = 60

SETTING_KEYS = (
    "insecure_no_strict_host_key_checking",
    "user_known_hosts_file",
    "ssh_keyscan_timeout_seconds",
)


@dataclass(frozen=True, slots=True)
class SSHSettings:
    """Host key verification settings applied to a provisioning run."""

    insecure_no_strict_host_key_checking: bool = False
    user_known_hosts_file: str = ""
    ssh_keyscan_timeout_seconds: int = _DEFAULT_KEYSCAN_TIMEOUT_SECONDS

    def to_payload(self) -> dict[str, Any]:
        """Serialize the settings into a JSON-compatible structure."""

        return {
            "insecure_no_strict_host_key_checking": self.insecure_no_strict_host_key_checking,
            "user_known_hosts_file": self.user_known_hosts_file,
            "ssh_keyscan_timeout_seconds": self.ssh_keyscan_timeout_seconds,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> SSHSettings:
        """Create settings from serialized data, ignoring malformed values."""

        defaults = cls()
        insecure = payload.get("insecure_no_strict_host_key_checking")
        if not isinstance(insecure, bool):
            insecure = defaults.insecure_no_strict_host_key_checking
        known_hosts = payload.get("user_known_hosts_file")
        if not isinstance(known_hosts, str):
            known_hosts = defaults.user_known_hosts_file
        timeout = payload.get("ssh_keyscan_timeout_seconds")
        if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout < 0:
            timeout = defaults.ssh_keyscan_timeout_seconds
        return cls(
            insecure_no_strict_host_key_checking=insecure,
            user_known_hosts_file=known_hosts.strip(),
            ssh_keyscan_timeout_seconds=timeout,
        )

    def with_strict_checking_disabled(self) -> SSHSettings:
        """Return a copy that skips host key verification entirely."""

        return replace(self, insecure_no_strict_host_key_checking=True)

    def with_value(self, key: str, raw: str) -> SSHSettings:
        """Return a copy with one setting parsed from its string form."""

        if key == "insecure_no_strict_host_key_checking":
            normalized = raw.strip().lower()
            if normalized in {"1", "true", "yes", "on"}:
                return replace(self, insecure_no_strict_host_key_checking=True)
            if normalized in {"0", "false", "no", "off"}:
                return replace(self, insecure_no_strict_host_key_checking=False)
            msg = f"expected a boolean value, got {raw!r}"
            raise ValueError(msg)
        if key == "user_known_hosts_file":
            return replace(self, user_known_hosts_file=raw.strip())
        if key == "ssh_keyscan_timeout_seconds":
            try:
                seconds = int(raw)
            except ValueError as exc:
                raise ValueError(f"expected a number of seconds, got {raw!r}") from exc
            if seconds < 0:
                msg = "ssh_keyscan_timeout_seconds must not be negative"
                raise ValueError(msg)
            return replace(self, ssh_keyscan_timeout_seconds=seconds)
        msg = f"unknown setting {key!r}; expected one of: {', '.join(SETTING_KEYS)}"
        raise ValueError(msg)


def default_config_path() -> Path:
    """Return the default location for the application's configuration file."""

    return data_dir() / _DEFAULT_CONFIG_FILENAME


class ConfigStore:
    """Manage persistence of the SSH settings file."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path if path is not None else default_config_path()

    @property
    def path(self) -> Path:
        """Expose the backing configuration file path."""

        return self._path

    def load(self) -> SSHSettings:
        """Load settings from disk, returning defaults when absent or unreadable."""

        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return SSHSettings()
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable settings file '%s': %s", self._path, exc)
            return SSHSettings()
        return SSHSettings.from_payload(payload if isinstance(payload, dict) else {})

    def save(self, settings: SSHSettings) -> None:
        """Persist the provided settings to disk atomically."""

        staging = self._path.with_name(f".{self._path.name}.tmp")
        staging.parent.mkdir(parents=True, exist_ok=True)
        staging.write_text(
            json.dumps(settings.to_payload(), indent=2, sort_keys=True) + "\n", encoding="utf-8"
        )
        staging.replace(self._path)
        logger.debug("Saved settings to '%s'", self._path)
