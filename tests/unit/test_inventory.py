"""Tests for temporary inventory rendering."""

from __future__ import annotations

from pathlib import Path

import pytest

from tfansible.core import inventory as inventory_module
from tfansible.core.connection import ConnectionInfo, ConnectionType
from tfansible.core.ephemeral import EphemeralFiles
from tfansible.core.errors import RenderError
from tfansible.core.inventory import InventoryGenerator, InventoryHost
from tfansible.core.plays import Playbook


def _ssh(host: str = "10.0.0.5", **kwargs: object) -> ConnectionInfo:
    return ConnectionInfo(type=ConnectionType.SSH, host=host, **kwargs)  # type: ignore[arg-type]


def _winrm(**kwargs: object) -> ConnectionInfo:
    values: dict[str, object] = {
        "host": "10.0.0.9",
        "user": "Administrator",
        "password": "p@ss",
    }
    values.update(kwargs)
    return ConnectionInfo(type=ConnectionType.WINRM, **values)  # type: ignore[arg-type]


def test_ssh_inventory_with_alias() -> None:
    """The first alias is paired with the machine address."""

    play = Playbook(file_path="site.yml", hosts=["web1"])

    rendered = InventoryGenerator(_ssh(user="root")).render(play)

    assert rendered == (
        "[host]\n"
        "web1 ansible_host=10.0.0.5\n"
        "\n"
        "[host:vars]\n"
        " ansible_user=root\n"
        " ansible_ssh_common_args='-o StrictHostKeyChecking=no'\n"
    )
    assert "ansible_password" not in rendered


def test_ssh_inventory_includes_password_when_given() -> None:
    play = Playbook(file_path="site.yml", hosts=["web1"])

    rendered = InventoryGenerator(_ssh(user="root", password="hunter2")).render(play)

    assert " ansible_password=hunter2\n" in rendered


def test_ssh_inventory_without_alias_uses_address() -> None:
    play = Playbook(file_path="site.yml")

    rendered = InventoryGenerator(_ssh()).render(play)

    assert rendered.startswith("[host]\n10.0.0.5\n\n[host:vars]\n")


def test_empty_first_alias_falls_back_to_address() -> None:
    play = Playbook(file_path="site.yml", hosts=["", "web2"])

    hosts = InventoryGenerator(_ssh()).hosts_for(play)

    assert hosts == [InventoryHost(alias="10.0.0.5")]


def test_resource_less_inventory_lists_every_declared_host() -> None:
    play = Playbook(file_path="site.yml", hosts=["web1", "", "web2"])

    rendered = InventoryGenerator(_ssh(host="")).render(play)

    assert rendered.startswith("[host]\nweb1\nweb2\n\n[host:vars]\n")
    assert "ansible_host=" not in rendered


def test_groups_repeat_the_host_block() -> None:
    play = Playbook(file_path="site.yml", hosts=["web1"], groups=["web", "prod"])

    rendered = InventoryGenerator(_ssh()).render(play)

    assert rendered.endswith(
        "\n[web]\nweb1 ansible_host=10.0.0.5\n\n[prod]\nweb1 ansible_host=10.0.0.5\n"
    )


def test_winrm_inventory_without_ca_ignores_certificate_validation() -> None:
    play = Playbook(file_path="site.yml")

    rendered = InventoryGenerator(_winrm()).render(play)

    assert rendered == (
        "[windows]\n"
        "10.0.0.9\n"
        "\n"
        "[windows:vars]\n"
        " ansible_user=Administrator\n"
        " ansible_password=p@ss\n"
        " ansible_connection=winrm\n"
        " ansible_winrm_server_cert_validation=ignore\n"
        " ansible_winrm_read_timeout_sec=900\n"
        " ansible_winrm_operation_timeout_sec=800\n"
    )
    assert "ansible_winrm_ca_trust_path" not in rendered


def test_winrm_inventory_with_ca_trusts_it_instead() -> None:
    play = Playbook(file_path="site.yml")
    generator = InventoryGenerator(_winrm(), cacert_file=Path("/tmp/ca.pem"))

    rendered = generator.render(play)

    assert " ansible_winrm_ca_trust_path=/tmp/ca.pem\n" in rendered
    assert "server_cert_validation" not in rendered


def test_winrm_port_and_ntlm_only_when_set() -> None:
    play = Playbook(file_path="site.yml")

    rendered = InventoryGenerator(_winrm(port=5986, use_ntlm=True)).render(play)

    assert " ansible_port=5986\n" in rendered
    assert " ansible_winrm_transport=ntlm\n" in rendered


def test_winrm_ignores_play_aliases() -> None:
    play = Playbook(file_path="site.yml", hosts=["dc01"])

    rendered = InventoryGenerator(_winrm()).render(play)

    assert rendered.startswith("[windows]\n10.0.0.9\n\n")


def test_render_failure_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    """Template failures abort instead of producing a truncated inventory."""

    monkeypatch.setattr(inventory_module, "_SSH_TEMPLATE", "[host]\n{{ missing_value }}\n")

    with pytest.raises(RenderError, match="'hosts' inventory template"):
        InventoryGenerator(_ssh()).render(Playbook(file_path="site.yml"))


def test_write_uses_play_inventory_verbatim(tmp_path: Path) -> None:
    play = Playbook(file_path="site.yml", declared_inventory_file="/etc/ansible/hosts")

    with EphemeralFiles(tmp_path) as files:
        path = InventoryGenerator(_ssh()).write(play, files)

        assert path == "/etc/ansible/hosts"
        assert files.paths == ()


def test_write_persists_rendered_inventory(tmp_path: Path) -> None:
    play = Playbook(file_path="site.yml", hosts=["web1"])
    generator = InventoryGenerator(_ssh())

    with EphemeralFiles(tmp_path) as files:
        path = Path(generator.write(play, files))

        assert path.name.startswith("temporary-ansible-inventory")
        assert path.read_text(encoding="utf-8") == generator.render(play)

    assert not path.exists()
