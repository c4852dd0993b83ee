"""Drive a provisioning run: stage credentials, resolve trust, apply plays."""

from __future__ import annotations

import logging
import shlex
import time
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

from tfansible.config import SSHSettings
from tfansible.core.connection import ConnectionInfo, ConnectionType, parse_connection_info
from tfansible.core.ephemeral import EphemeralFiles
from tfansible.core.errors import ConfigError
from tfansible.core.hosts import HostEndpoint
from tfansible.core.interfaces import Applier, Play, PlayParameters
from tfansible.core.inventory import InventoryGenerator
from tfansible.core.known_hosts import build_known_hosts
from tfansible.core.local_exec import run_local_command
from tfansible.core.trust import DEFAULT_RETRY_INTERVAL, TrustResolver

__all__ = ["LocalMode", "readiness_command"]

logger = logging.getLogger(__name__)

_KNOWN_HOSTS_PREFIX = "tfansible-known-hosts-"


def readiness_command(inventory_file: str) -> str:
    """Command that waits until every host in the inventory accepts connections."""

    return (
        f"ansible all -i {shlex.quote(inventory_file)} "
        "-m wait_for_connection -a 'timeout=600'"
    )


class LocalMode:
    """Provision one machine, or a set of declared hosts, from this machine.

    Every temporary file the run creates is removed when :meth:`run` returns,
    whether it succeeds or fails.
    """

    def __init__(
        self,
        connection: ConnectionInfo,
        *,
        temp_dir: Path | None = None,
        apply: Applier = run_local_command,
        discovery_interval: float = DEFAULT_RETRY_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._connection = connection
        self._temp_dir = temp_dir
        self._apply = apply
        self._discovery_interval = discovery_interval
        self._sleep = sleep

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, str], **kwargs: Any) -> LocalMode:
        """Resolve the connection attributes and build a run for them."""

        return cls(parse_connection_info(attributes), **kwargs)

    @property
    def connection(self) -> ConnectionInfo:
        return self._connection

    @property
    def compute_resource(self) -> bool:
        """Whether the run targets a concrete machine address."""

        return self._connection.compute_resource

    def run(self, plays: Sequence[Play], settings: SSHSettings) -> None:
        """Apply ``plays`` in order, stopping at the first failure."""

        if not self.compute_resource:
            for play in plays:
                if not play.hosts and not play.inventory_file:
                    raise ConfigError(
                        "Hosts or inventory file must be specified on each play "
                        "when there is no compute resource"
                    )
            settings = settings.with_strict_checking_disabled()

        connection = self._connection
        with EphemeralFiles(self._temp_dir) as files:
            bastion_pem_file = None
            if connection.bastion is not None:
                bastion_pem_file = files.stage(connection.bastion.private_key)
            target_pem_file = files.stage(connection.private_key)
            cacert_file = files.stage(connection.cacert)

            bastion = HostEndpoint.bastion(connection)
            target = HostEndpoint.target(connection)

            resolver = TrustResolver(
                settings,
                interval=self._discovery_interval,
                sleep=self._sleep,
                connect_timeout=connection.connect_timeout,
            )
            trust = resolver.resolve(
                target,
                bastion,
                protocol=connection.type,
                compute_resource=self.compute_resource,
            )

            bastion_known_hosts = self._write_known_hosts(files, trust.bastion_lines)
            target_known_hosts = self._write_known_hosts(files, trust.target_lines)

            params = PlayParameters(
                username=connection.user,
                port=connection.effective_port,
                pem_file=target_pem_file,
                known_hosts_file=target_known_hosts,
                bastion_known_hosts_file=bastion_known_hosts,
                bastion_host=bastion.host,
                bastion_port=bastion.port,
                bastion_username=bastion.user,
                bastion_pem_file=bastion_pem_file,
            )
            inventory = InventoryGenerator(connection, cacert_file=cacert_file)

            for play in plays:
                if not play.enabled:
                    continue

                inventory_file = inventory.write(play, files)
                if inventory_file != play.inventory_file:
                    play.set_override_inventory_file(inventory_file)
                    files.callback(play.set_override_inventory_file, "")

                if connection.type is ConnectionType.WINRM:
                    readiness = readiness_command(inventory_file)
                    logger.info("Running module to verify windows machine is available: %s", readiness)
                    self._apply(readiness)

                command = play.to_command(params, settings)
                logger.info("Running local command: %s", command)
                self._apply(command)

    def _write_known_hosts(self, files: EphemeralFiles, lines: Sequence[str]) -> Path:
        content = build_known_hosts(lines)
        path = files.write_text(content, prefix=_KNOWN_HOSTS_PREFIX)
        logger.info("Wrote known hosts to '%s' (%d entries)", path, len(lines))
        return path
