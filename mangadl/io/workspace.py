"""Temporary workspace lifecycle and filesystem probes.

Responsibilities:
- Own one staging directory per chapter or volume job.
- Remove the staging directory on every exit path.
- Answer the "already downloaded" and "anything downloaded" questions.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
import shutil
from types import TracebackType

from ..telemetry.logger import RunLogger


def is_non_empty_file(path: Path) -> bool:
    """Return whether `path` is a regular file with at least one byte."""

    try:
        return path.is_file() and path.stat().st_size > 0
    except OSError:
        return False


def dir_has_any_file(directory: Path) -> bool:
    """Return whether any regular file exists below `directory` (links not followed)."""

    if not directory.is_dir():
        return False
    for _root, _dirs, files in os.walk(directory):
        if files:
            return True
    return False


class Workspace:
    """Staging directory created on enter and removed unconditionally on exit.

    Example:
        async with Workspace(out_dir / "temp-chap-1234") as staging:
            ...  # download into staging, then pack

    The async form removes the tree on a worker thread.
    """

    def __init__(self, path: Path, run_logger: RunLogger | None = None) -> None:
        self.path = path
        self._run_logger = run_logger

    def __enter__(self) -> Path:
        self.path.mkdir(parents=True, exist_ok=True)
        if self._run_logger is not None:
            self._run_logger.log_event("DEBUG", "workspace", "created", path=self.path.name)
        return self.path

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.cleanup()

    async def __aenter__(self) -> Path:
        return self.__enter__()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await asyncio.to_thread(self.cleanup)

    def cleanup(self) -> None:
        """Delete the staging tree; symlinks inside it are removed, never followed."""

        shutil.rmtree(self.path, ignore_errors=True)
        if self._run_logger is not None:
            self._run_logger.log_event("DEBUG", "workspace", "removed", path=self.path.name)
