"""
APT backend (Debian, Ubuntu and derivatives).
"""

from __future__ import annotations

import logging
import threading

from devboot.core.models.package import PackageInfo, PackageManagerInfo, RequestedPackageInfo
from devboot.core.services.pkgmanager.base import PackageManager, second_field_or_raw

logger = logging.getLogger(__name__)

# One "<name> <version>" line per installed package.
_DPKG_QUERY_ARGS = ["-W", "-f=${Package} ${Version}\n"]


class AptPackageManager(PackageManager):
    name = "apt"

    def info(self) -> PackageManagerInfo:
        return self._version_of("apt", second_field_or_raw)

    def install(self, request: RequestedPackageInfo, cancel: threading.Event | None = None) -> None:
        """``apt update`` then ``apt install -y``; a failed update aborts the install."""
        logger.debug("Installing package %s with apt", request.name)
        self._warn_unsupported_constraints(request)

        self._run_mutating("apt", ["update"], "failed to update package list", cancel=cancel)
        self._run_mutating(
            "apt", ["install", "-y", request.name], f"failed to install package {request.name}",
            cancel=cancel,
        )
        logger.debug("Package %s installed successfully with apt", request.name)

    def uninstall(self, package: PackageInfo, cancel: threading.Event | None = None) -> None:
        logger.debug("Uninstalling package %s with apt", package.name)
        self._run_mutating(
            "apt", ["remove", "-y", package.name], f"failed to uninstall package {package.name}",
            cancel=cancel,
        )
        logger.debug("Package %s uninstalled successfully with apt", package.name)

    def list_installed(self) -> list[PackageInfo]:
        logger.debug("Listing packages installed with apt")
        result = self._run_query("dpkg-query", _DPKG_QUERY_ARGS, "failed to list installed packages")

        packages: list[PackageInfo] = []
        for line in result.as_string().splitlines():
            fields = line.split()
            if len(fields) >= 2:
                packages.append(PackageInfo(name=fields[0], version=fields[1]))
        return packages
