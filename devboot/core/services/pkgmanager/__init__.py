"""
Package managers — backend selection.

The driver asks ``create_package_manager`` for the backend matching the
host that passed the compatibility check; everything after that talks
to the ``PackageManager`` contract only.
"""

from __future__ import annotations

import logging
import threading

from devboot.adapters.shell.command import Commander
from devboot.core.errors import UnsupportedPlatformError
from devboot.core.models.package import DisplayMode
from devboot.core.models.system import SystemInfo
from devboot.core.services.pkgmanager.apt import AptPackageManager
from devboot.core.services.pkgmanager.base import PackageManager
from devboot.core.services.pkgmanager.brew import BrewPackageManager
from devboot.core.services.pkgmanager.dnf import DnfPackageManager
from devboot.core.services.privilege import Escalator
from devboot.core.services.program_query import ProgramQuery

logger = logging.getLogger(__name__)

APT_DISTROS = frozenset({"debian", "ubuntu", "linuxmint", "pop", "raspbian", "elementary", "kali"})
DNF_DISTROS = frozenset({"fedora", "rhel", "centos", "rocky", "almalinux", "ol"})

__all__ = [
    "APT_DISTROS",
    "AptPackageManager",
    "BrewPackageManager",
    "DNF_DISTROS",
    "DnfPackageManager",
    "PackageManager",
    "create_package_manager",
]


def create_package_manager(
    system_info: SystemInfo,
    commander: Commander,
    program_query: ProgramQuery,
    escalator: Escalator,
    display_mode: DisplayMode = DisplayMode.PROGRESS,
    brew_path: str | None = None,
    prefer_brew: bool = False,
    cancel: threading.Event | None = None,
) -> PackageManager:
    """Pick the backend for the detected host.

    macOS always uses Homebrew.  On Linux ``prefer_brew`` with a known
    ``brew_path`` wins; otherwise the distro family decides.  ``cancel``
    is forwarded to every command the backend runs.

    Raises:
        UnsupportedPlatformError: no backend fits the host.
    """
    if system_info.os_name == "darwin" or (prefer_brew and brew_path):
        logger.debug("Selected brew backend (%s)", brew_path or "brew")
        return BrewPackageManager(commander, program_query, brew_path or "brew", display_mode, cancel)

    if system_info.os_name == "linux":
        if system_info.distro_name in APT_DISTROS:
            logger.debug("Selected apt backend for %s", system_info.distro_name)
            return AptPackageManager(commander, program_query, escalator, display_mode, cancel)
        if system_info.distro_name in DNF_DISTROS:
            logger.debug("Selected dnf backend for %s", system_info.distro_name)
            return DnfPackageManager(commander, program_query, escalator, display_mode, cancel)

    raise UnsupportedPlatformError(
        f"no package manager available for {system_info.os_name}/{system_info.distro_name or 'unknown'}"
    )
