"""
FileSystem — thin, mockable façade over the host filesystem.

Services never touch ``pathlib`` / ``os`` directly for host files like
``/etc/shells`` or ``/etc/passwd``; they go through a ``FileSystem`` so
tests can substitute ``MockFileSystem``.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)

_DEFAULT_DIR_MODE = 0o755


class FileSystem(ABC):
    """Host filesystem operations used by the core."""

    @abstractmethod
    def path_exists(self, path: str) -> bool:
        """True if a file or directory exists at ``path``."""

    @abstractmethod
    def is_executable(self, path: str) -> bool:
        """True if ``path`` exists and any execute bit is set."""

    @abstractmethod
    def read_file_contents(self, path: str) -> bytes:
        """Return the whole file (raises ``OSError`` subclasses)."""

    @abstractmethod
    def write_file(self, path: str, data: bytes) -> int:
        """Create/truncate ``path`` with ``data``; returns bytes written."""

    @abstractmethod
    def create_directory(self, path: str, mode: int = _DEFAULT_DIR_MODE) -> None:
        """Create ``path`` and any missing parents."""

    @abstractmethod
    def remove_path(self, path: str) -> None:
        """Remove a file, or a directory recursively."""

    @abstractmethod
    def create_temporary_file(self, dir: str | None = None, pattern: str = "tempfile-*.tmp") -> str:
        """Create an empty temp file and return its path."""

    @abstractmethod
    def create_temporary_directory(self, dir: str | None = None) -> str:
        """Create a temp directory and return its path."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


class DefaultFileSystem(FileSystem):
    """Real filesystem."""

    def path_exists(self, path: str) -> bool:
        return Path(path).exists()

    def is_executable(self, path: str) -> bool:
        try:
            mode = os.stat(path).st_mode
        except FileNotFoundError:
            return False
        return stat.S_ISREG(mode) and bool(mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))

    def read_file_contents(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def write_file(self, path: str, data: bytes) -> int:
        return Path(path).write_bytes(data)

    def create_file(self, path: str) -> str:
        """Create (or truncate) an empty file and return its path."""
        Path(path).write_bytes(b"")
        return str(path)

    def create_directory(self, path: str, mode: int = _DEFAULT_DIR_MODE) -> None:
        Path(path).mkdir(mode=mode, parents=True, exist_ok=True)

    def remove_path(self, path: str) -> None:
        target = Path(path)
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        elif target.exists() or target.is_symlink():
            target.unlink()

    def create_temporary_file(self, dir: str | None = None, pattern: str = "tempfile-*.tmp") -> str:
        """Create a temp file; ``*`` in ``pattern`` marks the random part."""
        prefix, _, suffix = pattern.partition("*")
        fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=dir or None)
        os.close(fd)
        logger.debug("Created temporary file %s", name)
        return name

    def create_temporary_directory(self, dir: str | None = None) -> str:
        return tempfile.mkdtemp(prefix="tempdir-", dir=dir or None)
