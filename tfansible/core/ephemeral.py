"""Short-lived files holding key material, known hosts and inventories."""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Callable
from contextlib import ExitStack, suppress
from pathlib import Path
from types import TracebackType

from tfansible.core.errors import StagingError
from tfansible.paths import temp_dir

__all__ = ["EphemeralFiles", "KEY_FILE_MODE", "TEXT_FILE_MODE"]

logger = logging.getLogger(__name__)

KEY_FILE_MODE = 0o600
TEXT_FILE_MODE = 0o644
_KEY_PREFIX = "tfansible-key-"


def _remove(path: Path) -> None:
    with suppress(FileNotFoundError):
        path.unlink()
        logger.debug("Removed temporary file '%s'", path)


class EphemeralFiles:
    """Own every temporary file created during a provisioning run.

    Files are registered for removal the moment they are created and are
    deleted in reverse creation order when the context exits, whether the run
    succeeded or not.
    """

    def __init__(self, directory: Path | None = None) -> None:
        self._directory = directory
        self._stack = ExitStack()
        self._paths: list[Path] = []

    @property
    def directory(self) -> Path:
        """Directory receiving the temporary files."""

        if self._directory is None:
            self._directory = temp_dir()
        return self._directory

    @property
    def paths(self) -> tuple[Path, ...]:
        """Files created so far, in creation order."""

        return tuple(self._paths)

    def __enter__(self) -> EphemeralFiles:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Remove every file created through this instance."""

        self._stack.close()
        self._paths.clear()

    def callback(self, fn: Callable[..., object], *args: object) -> None:
        """Run ``fn(*args)`` on close, before any file created so far is removed."""

        self._stack.callback(fn, *args)

    def stage(self, material: str) -> Path | None:
        """Write key or certificate material to an owner-only file.

        Empty material is a valid absence: nothing is written and ``None`` is
        returned.
        """

        if not material:
            return None
        path = self._create(material, prefix=_KEY_PREFIX, mode=KEY_FILE_MODE)
        logger.info("Wrote temporary PEM to '%s'", path)
        return path

    def write_text(self, content: str, *, prefix: str, mode: int = TEXT_FILE_MODE) -> Path:
        """Write ``content`` to a new temporary file with the given permissions."""

        return self._create(content, prefix=prefix, mode=mode)

    def _create(self, content: str, *, prefix: str, mode: int) -> Path:
        try:
            fd, name = tempfile.mkstemp(prefix=prefix, dir=self.directory)
        except OSError as exc:
            msg = f"unable to create a temporary file in '{self.directory}'"
            raise StagingError(msg) from exc

        path = Path(name)
        self._stack.callback(_remove, path)
        self._paths.append(path)
        # mkstemp creates the file with mode 0600.
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(content)
            os.chmod(path, mode)
        except OSError as exc:
            msg = f"unable to write temporary file '{path}'"
            raise StagingError(msg) from exc
        return path
