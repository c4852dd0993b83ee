"""Decide which SSH host keys a provisioning run should trust."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from contextlib import closing
from functools import partial
from dataclasses import dataclass, field
from enum import Enum

import paramiko

from tfansible.config import SSHSettings
from tfansible.core.connection import DEFAULT_CONNECT_TIMEOUT, ConnectionType
from tfansible.core.errors import BastionScanError, NoHostKeyReceived, TrustDiscoveryTimeout
from tfansible.core.hosts import HostEndpoint, keyscan
from tfansible.core.known_hosts import trust_line

__all__ = [
    "DEFAULT_RETRY_INTERVAL",
    "HostKeyPoller",
    "ResolvedTrust",
    "TrustMode",
    "TrustPolicy",
    "TrustResolver",
    "select_policy",
]

logger = logging.getLogger(__name__)

DEFAULT_RETRY_INTERVAL = 5.0


class TrustMode(str, Enum):
    """How the host key of one hop is established."""

    DISABLED = "disabled"
    USER_FILE = "user-file"
    DECLARED = "declared"
    DISCOVER = "discover"


@dataclass(frozen=True, slots=True)
class TrustPolicy:
    """The single trust strategy chosen for a hop.

    ``known_hosts_file`` is set for :attr:`TrustMode.USER_FILE`; ``line`` is
    set for :attr:`TrustMode.DECLARED` when a host key was given, and stays
    ``None`` when only a password was.
    """

    mode: TrustMode
    known_hosts_file: str | None = None
    line: str | None = None


def select_policy(
    endpoint: HostEndpoint,
    settings: SSHSettings,
    *,
    compute_resource: bool = True,
) -> TrustPolicy:
    """Pick the trust policy for ``endpoint``; exactly one applies."""

    if settings.insecure_no_strict_host_key_checking or not compute_resource:
        return TrustPolicy(TrustMode.DISABLED)
    if settings.user_known_hosts_file:
        return TrustPolicy(TrustMode.USER_FILE, known_hosts_file=settings.user_known_hosts_file)
    if endpoint.host_key:
        return TrustPolicy(
            TrustMode.DECLARED,
            line=trust_line(endpoint.known_hosts_name, endpoint.host_key),
        )
    if endpoint.password:
        return TrustPolicy(TrustMode.DECLARED)
    return TrustPolicy(TrustMode.DISCOVER)


class HostKeyPoller:
    """Retry a host key handshake until it succeeds or the budget runs out.

    The target is often still booting, so failed attempts are only reported.
    After each failure the poller sleeps ``interval`` seconds and adds it to
    the elapsed time; once the elapsed time exceeds ``timeout_seconds`` the
    run is aborted.
    """

    def __init__(
        self,
        fetch: Callable[[], str],
        *,
        host: str,
        timeout_seconds: int,
        interval: float = DEFAULT_RETRY_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._fetch = fetch
        self._host = host
        self._timeout_seconds = timeout_seconds
        self._timeout_ms = timeout_seconds * 1000
        self._interval = interval
        self._interval_ms = int(interval * 1000)
        self._sleep = sleep
        self.attempts = 0
        self.elapsed_ms = 0
        self.responded = False

    def poll(self) -> str:
        """Return the ``"<key-type> <base64>"`` host key of the target."""

        while True:
            self.attempts += 1
            try:
                host_key = self._fetch()
            except (paramiko.SSHException, EOFError) as exc:
                # The SSH layer answered (banner or later), but no usable key came back.
                self.responded = True
                error: Exception = exc
            except OSError as exc:
                error = exc
            else:
                if not host_key:
                    msg = (
                        f"expected to receive the host key for '{self._host}', "
                        "but no host key arrived"
                    )
                    raise NoHostKeyReceived(msg)
                return host_key

            logger.warning(
                "Host key for '%s' not received yet (attempt %d: %s); retrying...",
                self._host,
                self.attempts,
                error,
            )
            self._sleep(self._interval)
            self.elapsed_ms += self._interval_ms
            if self.elapsed_ms > self._timeout_ms:
                logger.error(
                    "Host key for '%s' not received within %d seconds",
                    self._host,
                    self._timeout_seconds,
                )
                if self.responded:
                    msg = (
                        f"'{self._host}' answered but offered no usable host key "
                        f"within {self._timeout_seconds} seconds"
                    )
                    raise NoHostKeyReceived(msg) from error
                msg = f"'{self._host}' did not respond within {self._timeout_seconds} seconds"
                raise TrustDiscoveryTimeout(msg) from error


@dataclass(slots=True)
class ResolvedTrust:
    """Trust lines to write for the target and the bastion."""

    target_lines: list[str] = field(default_factory=list)
    bastion_lines: list[str] = field(default_factory=list)


class TrustResolver:
    """Resolve host key trust for the target and, when present, the bastion."""

    def __init__(
        self,
        settings: SSHSettings,
        *,
        interval: float = DEFAULT_RETRY_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        self._settings = settings
        self._interval = interval
        self._sleep = sleep
        self._connect_timeout = connect_timeout

    def resolve(
        self,
        target: HostEndpoint,
        bastion: HostEndpoint,
        *,
        protocol: ConnectionType,
        compute_resource: bool,
    ) -> ResolvedTrust:
        if protocol is ConnectionType.WINRM:
            return ResolvedTrust()
        if bastion.in_use():
            return self._resolve_through_bastion(target, bastion, compute_resource)
        return self._resolve_direct(target, compute_resource)

    def _resolve_through_bastion(
        self,
        target: HostEndpoint,
        bastion: HostEndpoint,
        compute_resource: bool,
    ) -> ResolvedTrust:
        try:
            session = bastion.connect(timeout=self._connect_timeout)
        except (paramiko.SSHException, EOFError, OSError) as exc:
            msg = f"unable to connect to bastion {bastion.user}@{bastion.host}:{bastion.port}: {exc}"
            raise BastionScanError(msg) from exc

        resolved = ResolvedTrust()
        with closing(session):
            policy = select_policy(target, self._settings, compute_resource=compute_resource)
            if policy.mode is TrustMode.DISABLED:
                logger.info(
                    "Target host StrictHostKeyChecking=no, not verifying host keys on bastion: "
                    "%s@%s:%d",
                    bastion.user,
                    bastion.host,
                    bastion.port,
                )
            elif policy.mode is TrustMode.USER_FILE:
                logger.info(
                    "Bastion %s@%s:%d will use '%s' as a user known hosts file",
                    bastion.user,
                    bastion.host,
                    bastion.port,
                    policy.known_hosts_file,
                )
            elif policy.mode is TrustMode.DECLARED:
                if policy.line is not None:
                    resolved.target_lines.append(policy.line)
            else:
                logger.info(
                    "Host key not given, executing ssh-keyscan on bastion: %s@%s:%d",
                    bastion.user,
                    bastion.host,
                    bastion.port,
                )
                # ssh-keyscan emits complete "<host> <key-type> <key>" lines, one per key type.
                scanned = keyscan(
                    session,
                    target.host,
                    target.port,
                    self._settings.ssh_keyscan_timeout_seconds,
                )
                resolved.target_lines.append(scanned)

        resolved.bastion_lines.append(trust_line(bastion.known_hosts_name, bastion.host_key))
        return resolved

    def _resolve_direct(self, target: HostEndpoint, compute_resource: bool) -> ResolvedTrust:
        resolved = ResolvedTrust()
        policy = select_policy(target, self._settings, compute_resource=compute_resource)
        if policy.mode is TrustMode.DISABLED:
            if compute_resource:
                logger.info("StrictHostKeyChecking=no specified, not verifying host keys")
            else:
                logger.info("No compute resource, not verifying host keys")
        elif policy.mode is TrustMode.USER_FILE:
            logger.info("Using '%s' as a known hosts file", policy.known_hosts_file)
        elif policy.mode is TrustMode.DECLARED:
            if policy.line is not None:
                resolved.target_lines.append(policy.line)
            else:
                logger.info("Password given for '%s', skipping host key discovery", target.host)
        else:
            logger.info("Host key or password for '%s' not passed, fetching host key", target.host)
            poller = HostKeyPoller(
                partial(target.fetch_host_key, self._connect_timeout),
                host=target.host,
                timeout_seconds=self._settings.ssh_keyscan_timeout_seconds,
                interval=self._interval,
                sleep=self._sleep,
            )
            host_key = poller.poll()
            resolved.target_lines.append(trust_line(target.known_hosts_name, host_key))
        return resolved
