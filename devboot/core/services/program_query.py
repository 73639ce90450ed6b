"""
Program query — is a program on PATH, where, and which version.

Version extraction is delegated to a caller-supplied extractor so each
backend owns the shape of its own ``--version`` output.
"""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence

from devboot.adapters.shell.command import Commander, with_capture_output
from devboot.core.errors import ProgramNotFoundError, VersionParseError

logger = logging.getLogger(__name__)

VersionExtractor = Callable[[str], str]


class ProgramQuery(ABC):
    """PATH lookups plus version probing."""

    @abstractmethod
    def program_path(self, program: str) -> str:
        """Absolute path of ``program``; raises ``ProgramNotFoundError``."""

    @abstractmethod
    def program_exists(self, program: str) -> bool:
        """True if ``program`` resolves on PATH."""

    @abstractmethod
    def program_version(
        self,
        program: str,
        extractor: VersionExtractor,
        query_args: Sequence[str] = ("--version",),
    ) -> str:
        """Version of ``program`` as returned by ``extractor``."""


class DefaultProgramQuery(ProgramQuery):
    """``shutil.which`` lookups, versions read through the Commander."""

    def __init__(self, commander: Commander, search_path: str | None = None):
        self._commander = commander
        self._search_path = search_path

    def program_path(self, program: str) -> str:
        path = shutil.which(program, path=self._search_path)
        if path is None:
            raise ProgramNotFoundError(program)
        return path

    def program_exists(self, program: str) -> bool:
        exists = shutil.which(program, path=self._search_path) is not None
        logger.debug("Program %s %s", program, "found" if exists else "not found")
        return exists

    def program_version(
        self,
        program: str,
        extractor: VersionExtractor,
        query_args: Sequence[str] = ("--version",),
    ) -> str:
        """Run ``program <query_args>`` and pass stdout to ``extractor``.

        Raises:
            SpawnError: the program could not be started.
            CommandFailedError: it exited non-zero.
            VersionParseError: the extractor rejected the output.
        """
        result = self._commander.run(program, list(query_args), with_capture_output())
        result.check()
        try:
            return extractor(result.stdout.decode("utf-8", errors="replace"))
        except VersionParseError:
            raise
        except (ValueError, IndexError) as e:
            raise VersionParseError(f"failed to extract version of {program}: {e}") from e
