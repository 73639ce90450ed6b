"""
PackageManager — the uniform contract every backend implements.

Backends only supply command syntax and output parsing; output
suppression, escalation, cancellation and error wrapping live here.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence

from devboot.adapters.shell.command import (
    Commander,
    Option,
    Result,
    with_cancel,
    with_capture_output,
    with_discard_output,
    with_stream_output,
)
from devboot.core.errors import DevbootError, PackageManagerError, PackageNotInstalledError
from devboot.core.models.package import (
    DisplayMode,
    PackageInfo,
    PackageManagerInfo,
    RequestedPackageInfo,
)
from devboot.core.services.privilege import Escalator
from devboot.core.services.program_query import ProgramQuery

logger = logging.getLogger(__name__)


class PackageManager(ABC):
    """Install / uninstall / query packages through one OS package tool.

    Args:
        commander: Runs the package tool.
        program_query: Version lookups for ``info()``.
        escalator: Wraps mutating commands; ``None`` never escalates.
        display_mode: Whether child output is streamed or discarded.
        cancel: Forwarded to every child process this backend spawns.
            ``install``/``uninstall`` accept a per-call event that takes
            precedence.
    """

    #: Short backend identifier (``apt``, ``dnf``, ``brew``).
    name: str = ""

    def __init__(
        self,
        commander: Commander,
        program_query: ProgramQuery,
        escalator: Escalator | None = None,
        display_mode: DisplayMode = DisplayMode.PROGRESS,
        cancel: threading.Event | None = None,
    ):
        self._commander = commander
        self._program_query = program_query
        self._escalator = escalator
        self._display_mode = display_mode
        self._cancel = cancel

    @property
    def display_mode(self) -> DisplayMode:
        return self._display_mode

    # ── Contract ────────────────────────────────────────────────

    @abstractmethod
    def info(self) -> PackageManagerInfo:
        """Name and version of the package tool itself."""

    @abstractmethod
    def install(self, request: RequestedPackageInfo, cancel: threading.Event | None = None) -> None:
        """Install ``request.name`` (latest version when constraints are unsupported)."""

    @abstractmethod
    def uninstall(self, package: PackageInfo, cancel: threading.Event | None = None) -> None:
        """Remove ``package``."""

    @abstractmethod
    def list_installed(self) -> list[PackageInfo]:
        """Every installed package, in backend output order."""

    def is_installed(self, package: PackageInfo) -> bool:
        logger.debug("Checking if package %s is installed with %s", package.name, self.name)
        installed = any(p.name == package.name for p in self._list_or_raise())
        logger.debug(
            "Package %s is %sinstalled with %s", package.name, "" if installed else "not ", self.name,
        )
        return installed

    def package_version(self, package_name: str) -> str:
        for pkg in self._list_or_raise():
            if pkg.name == package_name:
                return pkg.version
        raise PackageNotInstalledError(package_name, self.name)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} display_mode={self._display_mode.value!r}>"

    # ── Helpers for backends ────────────────────────────────────

    def _output_option(self) -> Option:
        if self._display_mode.should_discard_output():
            return with_discard_output()
        return with_stream_output()

    def _cancel_options(self, cancel: threading.Event | None = None) -> list[Option]:
        event = cancel or self._cancel
        return [with_cancel(event)] if event is not None else []

    def _warn_unsupported_constraints(self, request: RequestedPackageInfo) -> None:
        if request.version_constraints is not None:
            logger.warning(
                "%s doesn't support version constraints, installing the latest version of package %s",
                self.name, request.name,
            )

    def _run_mutating(
        self,
        command: str,
        args: Sequence[str],
        failure: str,
        escalate: bool = True,
        cancel: threading.Event | None = None,
    ) -> Result:
        """Escalate (optionally), run honouring the display mode, fail on non-zero exit.

        ``failure`` is the message prefix, e.g. ``"failed to install package git"``.
        """
        if escalate and self._escalator is not None:
            try:
                escalated = self._escalator.escalate(command, args)
            except DevbootError as e:
                subject = " ".join([command, *args[:1]])
                raise PackageManagerError(
                    f"failed to determine privilege escalation for {subject}: {e}"
                ) from e
            command, args = escalated.command, escalated.args

        try:
            return self._commander.run(
                command, args, self._output_option(), *self._cancel_options(cancel),
            ).check()
        except DevbootError as e:
            raise PackageManagerError(f"{failure}: {e}") from e

    def _run_query(self, command: str, args: Sequence[str], failure: str) -> Result:
        """Run a read-only command with capture, fail on non-zero exit."""
        try:
            return self._commander.run(
                command, args, with_capture_output(), *self._cancel_options(),
            ).check()
        except DevbootError as e:
            raise PackageManagerError(f"{failure}: {e}") from e

    def _version_of(self, program: str, extractor) -> PackageManagerInfo:
        logger.debug("Getting info about %s", self.name)
        try:
            version = self._program_query.program_version(program, extractor)
        except DevbootError as e:
            logger.debug(
                "Could not determine %s version, reporting %s: %s",
                self.name, PackageManagerInfo.default(), e,
            )
            raise PackageManagerError(f"failed to get {self.name} version: {e}") from e
        return PackageManagerInfo(name=self.name, version=version)

    def _list_or_raise(self) -> list[PackageInfo]:
        try:
            return self.list_installed()
        except PackageManagerError:
            raise
        except DevbootError as e:
            raise PackageManagerError(f"failed to list installed packages: {e}") from e


def second_field_or_raw(output: str) -> str:
    """``"apt 2.4.8 (amd64)"`` → ``"2.4.8"``; unrecognised output is returned trimmed."""
    if not output.strip():
        return ""
    fields = output.strip().splitlines()[0].split()
    if len(fields) >= 2:
        return fields[1]
    return output.strip()
