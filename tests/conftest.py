"""Shared pytest configuration for the test suite."""

from __future__ import annotations

from pathlib import Path

import pytest


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Tag every test that is not marked as system as a unit test."""

    for item in items:
        if "system" not in item.keywords:
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def isolated_dirs(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Keep configuration and temporary files of every test inside ``tmp_path``."""

    monkeypatch.setenv("TFANSIBLE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("TFANSIBLE_TEMP_DIR", str(tmp_path / "tmp"))
    return tmp_path
