"""Utilities for resolving filesystem locations used by tfansible."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from platformdirs import user_data_path

__all__ = ["data_dir", "temp_dir"]


def data_dir() -> Path:
    """Return the base directory for mutable application data.

    The path defaults to the platform-specific user data directory exposed by
    :mod:`platformdirs`. When the ``TFANSIBLE_DATA_DIR`` environment variable
    is set the value is treated as an override, allowing tests or alternative
    deployments to isolate their state.
    """

    override = os.getenv("TFANSIBLE_DATA_DIR")
    path = Path(override).expanduser() if override else user_data_path("tfansible")

    path.mkdir(parents=True, exist_ok=True)
    return path


def temp_dir() -> Path:
    """Return the directory that receives short-lived key and inventory files.

    ``TFANSIBLE_TEMP_DIR`` overrides the interpreter's temporary directory.
    """

    override = os.getenv("TFANSIBLE_TEMP_DIR")
    path = Path(override).expanduser() if override else Path(tempfile.gettempdir())

    path.mkdir(parents=True, exist_ok=True)
    return path
