"""
Homebrew backend (macOS, optionally Linuxbrew).

Homebrew refuses to run as root, so nothing here is escalated.
"""

from __future__ import annotations

import logging
import threading

from devboot.adapters.shell.command import Commander
from devboot.core.errors import PackageManagerError
from devboot.core.models.package import (
    DisplayMode,
    PackageInfo,
    PackageManagerInfo,
    RequestedPackageInfo,
)
from devboot.core.services.pkgmanager.base import PackageManager, second_field_or_raw
from devboot.core.services.program_query import ProgramQuery

logger = logging.getLogger(__name__)


class BrewPackageManager(PackageManager):
    """Homebrew package manager.

    Args:
        brew_path: Path (or name) of the ``brew`` binary to invoke.
    """

    name = "brew"

    def __init__(
        self,
        commander: Commander,
        program_query: ProgramQuery,
        brew_path: str = "brew",
        display_mode: DisplayMode = DisplayMode.PROGRESS,
        cancel: threading.Event | None = None,
    ):
        super().__init__(commander, program_query, escalator=None, display_mode=display_mode, cancel=cancel)
        self._brew_path = brew_path

    @property
    def brew_path(self) -> str:
        return self._brew_path

    def info(self) -> PackageManagerInfo:
        # "Homebrew 4.2.0"
        return self._version_of(self._brew_path, second_field_or_raw)

    def install(self, request: RequestedPackageInfo, cancel: threading.Event | None = None) -> None:
        logger.debug("Installing package %s with Homebrew", request.name)
        self._warn_unsupported_constraints(request)
        self._run_mutating(
            self._brew_path,
            ["install", request.name],
            f"failed to install package {request.name} with Homebrew",
            escalate=False,
            cancel=cancel,
        )
        logger.debug("Package %s installed successfully with Homebrew", request.name)

    def uninstall(self, package: PackageInfo, cancel: threading.Event | None = None) -> None:
        logger.debug("Uninstalling package %s with Homebrew", package.name)
        self._run_mutating(
            self._brew_path,
            ["uninstall", package.name],
            f"failed to uninstall package {package.name} with Homebrew",
            escalate=False,
            cancel=cancel,
        )
        logger.debug("Package %s uninstalled successfully", package.name)

    def list_installed(self) -> list[PackageInfo]:
        """``brew list --versions``: ``"<name> <v1> [<v2> ...]"``, first version wins."""
        logger.debug("Listing packages installed by Homebrew")
        result = self._run_query(
            self._brew_path, ["list", "--versions"],
            "failed to list installed packages with Homebrew",
        )

        packages: list[PackageInfo] = []
        for line in result.as_string().splitlines():
            if not line.strip():
                continue
            fields = line.split()
            if len(fields) < 2:
                raise PackageManagerError(
                    f"failed to list installed packages with Homebrew: cannot parse line {line!r}"
                )
            packages.append(PackageInfo(name=fields[0], version=fields[1]))
        return packages
