"""Playbook plays and the ansible-playbook command they render to."""

from __future__ import annotations

import json
import shlex
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from tfansible.config import SSHSettings
from tfansible.core.errors import ConfigError
from tfansible.core.interfaces import PlayParameters

__all__ = ["Playbook", "ssh_extra_args"]

_NO_KNOWN_HOSTS = "/dev/null"


def _known_hosts_options(known_hosts_file: str, settings: SSHSettings) -> list[str]:
    if settings.insecure_no_strict_host_key_checking:
        return ["-o", f"UserKnownHostsFile={_NO_KNOWN_HOSTS}", "-o", "StrictHostKeyChecking=no"]
    known_hosts = settings.user_known_hosts_file or known_hosts_file or _NO_KNOWN_HOSTS
    return ["-o", f"UserKnownHostsFile={known_hosts}", "-o", "StrictHostKeyChecking=yes"]


def ssh_extra_args(params: PlayParameters, settings: SSHSettings) -> str:
    """Build the value of ``--ssh-extra-args`` for the target connection."""

    target_known_hosts = str(params.known_hosts_file) if params.known_hosts_file else ""
    args = ["-p", str(params.port), *_known_hosts_options(target_known_hosts, settings)]
    if params.uses_bastion:
        proxy = ["ssh", "-p", str(params.bastion_port), "-W", "%h:%p"]
        if params.bastion_pem_file is not None:
            proxy.extend(["-i", str(params.bastion_pem_file)])
        bastion_known_hosts = (
            str(params.bastion_known_hosts_file) if params.bastion_known_hosts_file else ""
        )
        proxy.extend(_known_hosts_options(bastion_known_hosts, settings))
        proxy.append(f"{params.bastion_username}@{params.bastion_host}")
        args.extend(["-o", f'ProxyCommand="{" ".join(proxy)}"'])
    return " ".join(args)


def _string_list(payload: Mapping[str, Any], key: str) -> list[str]:
    value = payload.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        msg = f"play attribute '{key}' must be a list of strings"
        raise ConfigError(msg)
    return list(value)


def _flag(payload: Mapping[str, Any], key: str, default: bool) -> bool:
    value = payload.get(key, default)
    if not isinstance(value, bool):
        msg = f"play attribute '{key}' must be a boolean"
        raise ConfigError(msg)
    return value


@dataclass(slots=True)
class Playbook:
    """An ``ansible-playbook`` run against the provisioned machine."""

    file_path: str
    hosts: list[str] = field(default_factory=list)
    groups: list[str] = field(default_factory=list)
    declared_inventory_file: str = ""
    enabled: bool = True
    extra_vars: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    skip_tags: list[str] = field(default_factory=list)
    become: bool = False
    become_user: str = ""
    forks: int | None = None
    verbose: bool = False
    _override_inventory_file: str = field(default="", init=False, repr=False)

    @property
    def inventory_file(self) -> str:
        """The generated inventory when set, otherwise the declared one."""

        return self._override_inventory_file or self.declared_inventory_file

    def set_override_inventory_file(self, path: str) -> None:
        self._override_inventory_file = path

    def to_command(self, params: PlayParameters, settings: SSHSettings) -> str:
        """Render the full ``ansible-playbook`` invocation."""

        if not self.inventory_file:
            msg = f"no inventory available for playbook '{self.file_path}'"
            raise ConfigError(msg)

        command = [
            "ansible-playbook",
            shlex.quote(self.file_path),
            f"--inventory={shlex.quote(self.inventory_file)}",
        ]
        if self.become:
            command.append("--become")
            if self.become_user:
                command.append(f"--become-user={shlex.quote(self.become_user)}")
        if self.forks is not None:
            command.append(f"--forks={self.forks}")
        if self.tags:
            command.append(f"--tags={shlex.quote(','.join(self.tags))}")
        if self.skip_tags:
            command.append(f"--skip-tags={shlex.quote(','.join(self.skip_tags))}")
        if self.extra_vars:
            command.append(f"--extra-vars={shlex.quote(json.dumps(self.extra_vars))}")
        if self.verbose:
            command.append("-vvv")
        command.append(f"--user={shlex.quote(params.username)}")
        if params.pem_file is not None:
            command.append(f"--private-key={shlex.quote(str(params.pem_file))}")
        command.append(f"--ssh-extra-args={shlex.quote(ssh_extra_args(params, settings))}")
        return " ".join(command)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Playbook:
        """Create a playbook play from its run file representation."""

        file_path = payload.get("playbook")
        if not isinstance(file_path, str) or not file_path.strip():
            raise ConfigError("every play needs a 'playbook' path")
        extra_vars = payload.get("extra_vars", {})
        if not isinstance(extra_vars, dict):
            raise ConfigError("play attribute 'extra_vars' must be a mapping")
        forks = payload.get("forks")
        if forks is not None and (isinstance(forks, bool) or not isinstance(forks, int)):
            raise ConfigError("play attribute 'forks' must be an integer")
        inventory_file = payload.get("inventory_file", "")
        if not isinstance(inventory_file, str):
            raise ConfigError("play attribute 'inventory_file' must be a string")
        return cls(
            file_path=file_path.strip(),
            hosts=_string_list(payload, "hosts"),
            groups=_string_list(payload, "groups"),
            declared_inventory_file=inventory_file.strip(),
            enabled=_flag(payload, "enabled", True),
            extra_vars=dict(extra_vars),
            tags=_string_list(payload, "tags"),
            skip_tags=_string_list(payload, "skip_tags"),
            become=_flag(payload, "become", False),
            become_user=str(payload.get("become_user", "")),
            forks=forks,
            verbose=_flag(payload, "verbose", False),
        )
