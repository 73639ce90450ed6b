"""
OS detection — name, distribution, version and architecture of the host.

Names are normalised to the keys used in compatibility.yaml:
``linux`` / ``darwin`` / ``windows`` and ``amd64`` / ``arm64``.
"""

from __future__ import annotations

import logging
import platform
import sys
from abc import ABC, abstractmethod

import distro

from devboot.core.models.system import SystemInfo

logger = logging.getLogger(__name__)

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "armv7l": "arm",
    "armv6l": "arm",
}


def normalize_os_name(platform_name: str) -> str:
    """Map a ``sys.platform`` value to linux / darwin / windows."""
    if platform_name.startswith("linux"):
        return "linux"
    if platform_name == "darwin":
        return "darwin"
    if platform_name in ("win32", "cygwin", "msys"):
        return "windows"
    return platform_name


def normalize_arch(machine: str) -> str:
    return _ARCH_ALIASES.get(machine.lower(), machine.lower())


class OSDetector(ABC):
    """Reports facts about the running host."""

    @abstractmethod
    def detect_system(self) -> SystemInfo:
        """Return os_name, distro_name, distro_version and arch (no prerequisites)."""


class DefaultOSDetector(OSDetector):
    """Detector backed by ``sys.platform``, ``platform`` and ``distro``.

    Args:
        platform_name: Override for ``sys.platform`` (tests).
        machine: Override for ``platform.machine()`` (tests).
    """

    def __init__(self, platform_name: str | None = None, machine: str | None = None):
        self._platform_name = platform_name or sys.platform
        self._machine = machine

    def detect_system(self) -> SystemInfo:
        os_name = normalize_os_name(self._platform_name)
        info = SystemInfo(
            os_name=os_name,
            arch=normalize_arch(self._machine or platform.machine()),
        )

        if os_name == "linux":
            info.distro_name = (distro.id() or "unknown").lower()
            info.distro_version = distro.version(best=True)
        elif os_name == "darwin":
            info.distro_name = "mac"
            info.distro_version = platform.mac_ver()[0]

        logger.debug(
            "Detected %s/%s %s (%s)",
            info.os_name, info.distro_name or "-", info.distro_version or "-", info.arch,
        )
        return info
