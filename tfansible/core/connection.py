"""Typed view over the raw connection attributes of a compute resource."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from tfansible.core.errors import ConfigError

__all__ = [
    "DEFAULT_CONNECT_TIMEOUT",
    "BastionInfo",
    "ConnectionInfo",
    "ConnectionType",
    "parse_connection_info",
]

_DEFAULT_SSH_USER = "root"
_DEFAULT_WINRM_USER = "Administrator"
_DEFAULT_SSH_PORT = 22
_DEFAULT_WINRM_HTTP_PORT = 5985
_DEFAULT_WINRM_HTTPS_PORT = 5986
DEFAULT_CONNECT_TIMEOUT = 10.0
_TRUE_VALUES = frozenset({"1", "t", "true", "y", "yes", "on"})


class ConnectionType(str, Enum):
    """Remote management protocols understood by the provisioner."""

    SSH = "ssh"
    WINRM = "winrm"


@dataclass(frozen=True, slots=True)
class BastionInfo:
    """Connection details for the jump host in front of the target."""

    host: str
    port: int = _DEFAULT_SSH_PORT
    user: str = _DEFAULT_SSH_USER
    password: str = ""
    private_key: str = ""
    host_key: str = ""


@dataclass(frozen=True, slots=True)
class ConnectionInfo:
    """Resolved connection details for a single provisioning run.

    An empty ``host`` describes a resource-less run: the plays name their own
    hosts instead.
    """

    type: ConnectionType
    host: str = ""
    port: int | None = None
    user: str = _DEFAULT_SSH_USER
    password: str = ""
    private_key: str = ""
    host_key: str = ""
    cacert: str = ""
    use_ntlm: bool = False
    https: bool = False
    timeout: int | None = None
    bastion: BastionInfo | None = None

    @property
    def compute_resource(self) -> bool:
        """Whether the run is attached to a concrete machine address."""

        return self.host != ""

    @property
    def effective_port(self) -> int:
        """Return the explicit port or the protocol default."""

        if self.port is not None:
            return self.port
        if self.type is ConnectionType.WINRM:
            return _DEFAULT_WINRM_HTTPS_PORT if self.https else _DEFAULT_WINRM_HTTP_PORT
        return _DEFAULT_SSH_PORT

    @property
    def connect_timeout(self) -> float:
        """Seconds allowed for each SSH connection attempt."""

        if self.timeout is None or self.timeout <= 0:
            return DEFAULT_CONNECT_TIMEOUT
        return float(self.timeout)


def _parse_int(attributes: Mapping[str, str], key: str) -> int | None:
    raw = attributes.get(key, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        msg = f"connection attribute '{key}' must be an integer, got {raw!r}"
        raise ConfigError(msg) from exc


def _parse_bool(attributes: Mapping[str, str], key: str) -> bool:
    return attributes.get(key, "").strip().lower() in _TRUE_VALUES


def _parse_bastion(
    attributes: Mapping[str, str],
    *,
    user: str,
    password: str,
    private_key: str,
    port: int,
) -> BastionInfo | None:
    host = attributes.get("bastion_host", "").strip()
    if not host:
        return None
    bastion_port = _parse_int(attributes, "bastion_port")
    return BastionInfo(
        host=host,
        port=bastion_port if bastion_port is not None else port,
        user=attributes.get("bastion_user") or user,
        password=attributes.get("bastion_password") or password,
        private_key=attributes.get("bastion_private_key") or private_key,
        host_key=attributes.get("bastion_host_key", "").strip(),
    )


def parse_connection_info(attributes: Mapping[str, str]) -> ConnectionInfo:
    """Build a :class:`ConnectionInfo` from raw connection attributes.

    Missing values receive the same defaults the resource system applies:
    ``root`` or ``Administrator`` as the user depending on the protocol, and
    bastion credentials inherited from the target when not given.
    """

    raw_type = attributes.get("type", "").strip().lower()
    if not raw_type:
        raise ConfigError("Connection type can not be empty")
    try:
        connection_type = ConnectionType(raw_type)
    except ValueError as exc:
        msg = f"unsupported connection type {raw_type!r}; expected 'ssh' or 'winrm'"
        raise ConfigError(msg) from exc

    default_user = (
        _DEFAULT_WINRM_USER if connection_type is ConnectionType.WINRM else _DEFAULT_SSH_USER
    )
    user = attributes.get("user") or default_user
    password = attributes.get("password", "")
    private_key = attributes.get("private_key", "")
    port = _parse_int(attributes, "port")

    bastion = None
    if connection_type is ConnectionType.SSH:
        bastion = _parse_bastion(
            attributes,
            user=user,
            password=password,
            private_key=private_key,
            port=port if port is not None else _DEFAULT_SSH_PORT,
        )

    return ConnectionInfo(
        type=connection_type,
        host=attributes.get("host", "").strip(),
        port=port,
        user=user,
        password=password,
        private_key=private_key,
        host_key=attributes.get("host_key", "").strip(),
        cacert=attributes.get("cacert", ""),
        use_ntlm=_parse_bool(attributes, "use_ntlm"),
        https=_parse_bool(attributes, "https"),
        timeout=_parse_int(attributes, "timeout"),
        bastion=bastion,
    )
