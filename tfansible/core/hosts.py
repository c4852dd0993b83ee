"""Connectable endpoints for the target machine and its bastion."""

from __future__ import annotations

import io
import logging
import shlex
import socket
from dataclasses import dataclass

import paramiko

from tfansible.core.connection import DEFAULT_CONNECT_TIMEOUT, ConnectionInfo
from tfansible.core.errors import BastionScanError, ConfigError
from tfansible.core.known_hosts import known_hosts_name

__all__ = ["HostEndpoint", "keyscan", "load_private_key"]

logger = logging.getLogger(__name__)

_KEY_LOADERS: tuple[type[paramiko.PKey], ...] = (
    paramiko.Ed25519Key,
    paramiko.ECDSAKey,
    paramiko.RSAKey,
)


def load_private_key(material: str) -> paramiko.PKey:
    """Parse PEM or OpenSSH private key material, trying each key type."""

    for loader in _KEY_LOADERS:
        try:
            return loader.from_private_key(io.StringIO(material))
        except (paramiko.SSHException, ValueError):
            continue
    raise ConfigError("unable to parse private key material")


def _format_key(key: paramiko.PKey) -> str:
    return f"{key.get_name()} {key.get_base64()}"


@dataclass(slots=True)
class HostEndpoint:
    """A host reachable over SSH, either the target or the bastion.

    ``host_key`` holds ``"<key-type> <base64>"`` and is filled in lazily by
    :meth:`fetch_host_key` or :meth:`connect` when it was not declared.
    """

    host: str = ""
    port: int = 22
    user: str = ""
    password: str = ""
    host_key: str = ""
    private_key: str = ""

    @classmethod
    def target(cls, connection: ConnectionInfo) -> HostEndpoint:
        """Build the endpoint for the machine being provisioned."""

        return cls(
            host=connection.host,
            port=connection.effective_port,
            user=connection.user,
            password=connection.password,
            host_key=connection.host_key,
            private_key=connection.private_key,
        )

    @classmethod
    def bastion(cls, connection: ConnectionInfo) -> HostEndpoint:
        """Build the bastion endpoint; its host is empty when none is configured."""

        info = connection.bastion
        if info is None:
            return cls()
        return cls(
            host=info.host,
            port=info.port,
            user=info.user,
            password=info.password,
            host_key=info.host_key,
            private_key=info.private_key,
        )

    def in_use(self) -> bool:
        """Whether this endpoint was configured at all."""

        return self.host != ""

    @property
    def known_hosts_name(self) -> str:
        """Host pattern under which this endpoint appears in known hosts files."""

        return known_hosts_name(self.host, self.port)

    def fetch_host_key(self, timeout: float = DEFAULT_CONNECT_TIMEOUT) -> str:
        """Perform a bare SSH handshake and record the host key offered.

        Raises ``OSError`` when nothing answers and ``paramiko.SSHException``
        when the handshake itself fails.
        """

        sock = socket.create_connection((self.host, self.port), timeout=timeout)
        try:
            transport = paramiko.Transport(sock)
        except Exception:
            sock.close()
            raise
        try:
            transport.banner_timeout = timeout
            transport.start_client(timeout=timeout)
            key = transport.get_remote_server_key()
        finally:
            transport.close()
        self.host_key = _format_key(key) if key is not None else ""
        return self.host_key

    def connect(self, timeout: float = DEFAULT_CONNECT_TIMEOUT) -> paramiko.SSHClient:
        """Open an authenticated session.

        A declared host key is enforced; otherwise the key offered by the
        server is accepted and recorded.
        """

        client = paramiko.SSHClient()
        if self.host_key:
            try:
                entry = paramiko.hostkeys.HostKeyEntry.from_line(
                    f"{self.known_hosts_name} {self.host_key}"
                )
            except (paramiko.hostkeys.InvalidHostKey, paramiko.SSHException) as exc:
                client.close()
                msg = f"invalid host key declared for '{self.host}'"
                raise ConfigError(msg) from exc
            if entry is None or entry.key is None:
                client.close()
                msg = f"invalid host key declared for '{self.host}'"
                raise ConfigError(msg)
            client.get_host_keys().add(self.known_hosts_name, entry.key.get_name(), entry.key)
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        pkey = load_private_key(self.private_key) if self.private_key else None
        logger.info("Connecting to %s@%s:%d", self.user, self.host, self.port)
        try:
            client.connect(
                self.host,
                port=self.port,
                username=self.user,
                password=self.password or None,
                pkey=pkey,
                timeout=timeout,
                banner_timeout=timeout,
                look_for_keys=False,
                allow_agent=pkey is None,
            )
        except Exception:
            client.close()
            raise

        transport = client.get_transport()
        if not self.host_key and transport is not None:
            self.host_key = _format_key(transport.get_remote_server_key())
        return client


def keyscan(session: paramiko.SSHClient, host: str, port: int, timeout: int) -> str:
    """Run ``ssh-keyscan`` against ``host:port`` from the bastion session.

    The emitted known hosts lines are returned verbatim.
    """

    command = f"ssh-keyscan -T {int(timeout)} -p {int(port)} {shlex.quote(host)}"
    logger.debug("Running on bastion: %s", command)
    try:
        _, stdout, stderr = session.exec_command(command, timeout=timeout + 5)
        output = stdout.read().decode("utf-8", errors="replace")
        errors = stderr.read().decode("utf-8", errors="replace")
        exit_status = stdout.channel.recv_exit_status()
    except (paramiko.SSHException, EOFError, OSError) as exc:
        msg = f"ssh-keyscan of {host}:{port} through the bastion failed: {exc}"
        raise BastionScanError(msg) from exc

    if exit_status != 0:
        msg = f"ssh-keyscan of {host}:{port} exited with status {exit_status}: {errors.strip()}"
        raise BastionScanError(msg)
    if not output.strip():
        msg = f"ssh-keyscan of {host}:{port} returned no host keys"
        raise BastionScanError(msg)
    return output
