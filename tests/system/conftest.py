"""Fixtures supporting system tests against the CLI and a local OpenSSH daemon."""

from __future__ import annotations

import os
import subprocess
import sys
from collections.abc import Callable, Iterator, Mapping, Sequence
from pathlib import Path

import pytest
from ssh_backend import OpenSSHBackend, SSHBackendUnavailable

RunCli = Callable[
    [Sequence[str] | None, Mapping[str, str] | None],
    subprocess.CompletedProcess[str],
]


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the repository root."""

    return Path(__file__).resolve().parents[2]


@pytest.fixture
def system_environment(
    tmp_path,
    project_root: Path,
) -> tuple[dict[str, str], Path]:
    """Provide an isolated environment for invoking the CLI as a subprocess."""

    data_dir = tmp_path / "data"
    env = os.environ.copy()
    env["TFANSIBLE_DATA_DIR"] = str(data_dir)
    env["TFANSIBLE_TEMP_DIR"] = str(tmp_path / "run-files")

    existing_path = env.get("PYTHONPATH")
    components = [str(project_root)]
    if existing_path:
        components.append(existing_path)
    env["PYTHONPATH"] = os.pathsep.join(components)

    return env, data_dir


@pytest.fixture
def run_cli(
    system_environment: tuple[dict[str, str], Path],
    project_root: Path,
) -> RunCli:
    """Return a helper that executes the CLI via ``python -m tfansible``."""

    base_env, _ = system_environment

    def _run(
        args: Sequence[str] | None,
        extra_env: Mapping[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        command = [sys.executable, "-m", "tfansible"]
        if args:
            command.extend(args)

        env = base_env.copy()
        if extra_env:
            env.update(extra_env)

        return subprocess.run(
            command,
            cwd=project_root,
            env=env,
            text=True,
            capture_output=True,
            check=False,
        )

    return _run


@pytest.fixture
def system_data_dir(system_environment: tuple[dict[str, str], Path]) -> Path:
    """Expose the data directory used during system tests."""

    _, data_dir = system_environment
    return data_dir


@pytest.fixture
def system_temp_dir(system_environment: tuple[dict[str, str], Path]) -> Path:
    """Expose the directory receiving the run's temporary files."""

    env, _ = system_environment
    return Path(env["TFANSIBLE_TEMP_DIR"])


@pytest.fixture
def ssh_backend(tmp_path: Path) -> Iterator[OpenSSHBackend]:
    """Start an OpenSSH daemon on the loopback interface, skipping when impossible."""

    try:
        backend = OpenSSHBackend(tmp_path / "sshd")
        backend.start()
    except SSHBackendUnavailable as exc:
        pytest.skip(f"OpenSSH backend unavailable: {exc}")
    try:
        yield backend
    finally:
        backend.stop()
