"""Render the temporary Ansible inventory for a play."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateError

from tfansible.core.connection import ConnectionInfo, ConnectionType
from tfansible.core.ephemeral import EphemeralFiles
from tfansible.core.errors import RenderError
from tfansible.core.interfaces import Play

__all__ = ["InventoryGenerator", "InventoryHost", "INVENTORY_PREFIX"]

logger = logging.getLogger(__name__)

INVENTORY_PREFIX = "temporary-ansible-inventory"

_SSH_TEMPLATE = """\
{% macro host_line(host) -%}
{{ host.alias }}{{ (" ansible_host=" ~ host.ansible_host) if host.ansible_host else "" }}
{%- endmacro %}
[host]
{% for host in hosts %}
{{ host_line(host) }}
{% endfor %}

[host:vars]
 ansible_user={{ user }}
 ansible_ssh_common_args='-o StrictHostKeyChecking=no'
{% if password %}
 ansible_password={{ password }}
{% endif %}
{% for group in groups %}

[{{ group }}]
{% for host in hosts %}
{{ host_line(host) }}
{% endfor %}
{% endfor %}
"""

_WINRM_TEMPLATE = """\
[windows]
{% for host in hosts %}
{{ host.alias }}
{% endfor %}

[windows:vars]
{% if user %}
 ansible_user={{ user }}
{% endif %}
{% if password %}
 ansible_password={{ password }}
{% endif %}
{% if port is not none %}
 ansible_port={{ port }}
{% endif %}
 ansible_connection=winrm
{% if ntlm %}
 ansible_winrm_transport=ntlm
{% endif %}
{% if cacert %}
 ansible_winrm_ca_trust_path={{ cacert }}
{% else %}
 ansible_winrm_server_cert_validation=ignore
{% endif %}
 ansible_winrm_read_timeout_sec=900
 ansible_winrm_operation_timeout_sec=800
"""

_ENVIRONMENT = Environment(
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    autoescape=False,  # INI text, not HTML
    undefined=StrictUndefined,
)


@dataclass(frozen=True, slots=True)
class InventoryHost:
    """One inventory entry: the alias and, when it differs, the real address."""

    alias: str
    ansible_host: str = ""


class InventoryGenerator:
    """Build the inventory for each play from the resolved connection."""

    def __init__(self, connection: ConnectionInfo, *, cacert_file: Path | None = None) -> None:
        self._connection = connection
        self._cacert_file = cacert_file

    def hosts_for(self, play: Play) -> list[InventoryHost]:
        """Select the inventory hosts for ``play``.

        With a machine address the first play alias points at it, or the
        address stands alone when the play declares none. Without an address
        every declared host is its own entry.
        """

        address = self._connection.host
        declared = list(play.hosts)
        if address:
            if declared and declared[0]:
                return [InventoryHost(alias=declared[0], ansible_host=address)]
            return [InventoryHost(alias=address)]
        return [InventoryHost(alias=host) for host in declared if host]

    def render(self, play: Play) -> str:
        """Render the inventory text for ``play``."""

        if self._connection.type is ConnectionType.WINRM:
            name, source, context = "windows", _WINRM_TEMPLATE, self._winrm_context(play)
        else:
            name, source, context = "hosts", _SSH_TEMPLATE, self._ssh_context(play)
        try:
            return _ENVIRONMENT.from_string(source).render(**context)
        except TemplateError as exc:
            msg = f"error executing '{name}' inventory template: {exc}"
            raise RenderError(msg) from exc

    def write(self, play: Play, files: EphemeralFiles) -> str:
        """Return the inventory path for ``play``, writing one when needed.

        A play that brings its own inventory file is used verbatim.
        """

        if play.inventory_file:
            return play.inventory_file
        content = self.render(play)
        path = files.write_text(content, prefix=INVENTORY_PREFIX)
        logger.info("Wrote temporary ansible inventory to '%s'", path)
        return str(path)

    def _ssh_context(self, play: Play) -> dict[str, Any]:
        return {
            "hosts": self.hosts_for(play),
            "groups": list(play.groups),
            "user": self._connection.user,
            "password": self._connection.password,
        }

    def _winrm_context(self, play: Play) -> dict[str, Any]:
        address = self._connection.host
        if address:
            hosts = [InventoryHost(alias=address)]
        else:
            hosts = [InventoryHost(alias=host) for host in play.hosts if host]
        return {
            "hosts": hosts,
            "user": self._connection.user,
            "password": self._connection.password,
            "port": self._connection.port,
            "ntlm": self._connection.use_ntlm,
            "cacert": str(self._cacert_file) if self._cacert_file is not None else "",
        }
