"""Protocol definitions for the collaborators of a provisioning run."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from tfansible.config import SSHSettings


@dataclass(frozen=True, slots=True)
class PlayParameters:
    """Flat bundle of resolved connection details handed to a play.

    Plays never see the bastion or target handles, only these values.
    """

    username: str
    port: int
    pem_file: Path | None = None
    known_hosts_file: Path | None = None
    bastion_known_hosts_file: Path | None = None
    bastion_host: str = ""
    bastion_port: int = 22
    bastion_username: str = ""
    bastion_pem_file: Path | None = None

    @property
    def uses_bastion(self) -> bool:
        """Whether the play must hop through a bastion."""

        return self.bastion_host != ""


class Play(Protocol):
    """One ordered unit of configuration work."""

    @property
    def enabled(self) -> bool:
        """Whether the play should run at all."""

    @property
    def hosts(self) -> Sequence[str]:
        """Host aliases declared by the play."""

    @property
    def groups(self) -> Sequence[str]:
        """Inventory groups declared by the play."""

    @property
    def inventory_file(self) -> str:
        """Inventory path in effect, empty when one must be generated."""

    def set_override_inventory_file(self, path: str) -> None:
        """Use a generated inventory for subsequent commands."""

    def to_command(self, params: PlayParameters, settings: SSHSettings) -> str:
        """Render the shell command that applies the play."""


class Applier(Protocol):
    """Executes a shell command on the local machine."""

    def __call__(self, command: str) -> None:
        """Run ``command``, raising ``ApplyError`` on failure."""
