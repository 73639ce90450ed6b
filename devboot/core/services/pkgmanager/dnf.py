"""
DNF backend (Fedora, RHEL and derivatives).

Package groups (``type="group"``) go through ``dnf group ...``.
"""

from __future__ import annotations

import logging
import threading

from devboot.core.models.package import PackageInfo, PackageManagerInfo, RequestedPackageInfo
from devboot.core.services.pkgmanager.base import PackageManager, second_field_or_raw

logger = logging.getLogger(__name__)


class DnfPackageManager(PackageManager):
    name = "dnf"

    def info(self) -> PackageManagerInfo:
        return self._version_of("dnf", second_field_or_raw)

    def install(self, request: RequestedPackageInfo, cancel: threading.Event | None = None) -> None:
        logger.debug("Installing package %s with dnf", request.name)
        self._warn_unsupported_constraints(request)

        if request.is_group:
            args = ["group", "install", "-y", request.name]
        else:
            args = ["install", "-y", request.name]

        self._run_mutating("dnf", args, f"failed to install package {request.name}", cancel=cancel)
        logger.debug("Package %s installed successfully with dnf", request.name)

    def uninstall(self, package: PackageInfo, cancel: threading.Event | None = None) -> None:
        logger.debug("Uninstalling package %s with dnf", package.name)
        if package.is_group:
            args = ["group", "remove", "-y", package.name]
        else:
            args = ["remove", "-y", package.name]

        self._run_mutating("dnf", args, f"failed to uninstall package {package.name}", cancel=cancel)
        logger.debug("Package %s uninstalled successfully with dnf", package.name)

    def is_installed(self, package: PackageInfo) -> bool:
        if package.is_group:
            return self._is_group_installed(package.name)
        return super().is_installed(package)

    def list_installed(self) -> list[PackageInfo]:
        logger.debug("Listing packages installed with dnf")
        result = self._run_query("dnf", ["list", "installed"], "failed to list installed packages")

        packages: list[PackageInfo] = []
        for raw in result.as_string().splitlines():
            line = raw.strip()
            if not line or line.lower().startswith("installed packages"):
                continue

            # "<name>.<arch> <version> <repo>"
            fields = line.split()
            if len(fields) < 2:
                continue
            name, dot, _arch = fields[0].rpartition(".")
            packages.append(PackageInfo(name=name if dot else fields[0], version=fields[1]))
        return packages

    def _is_group_installed(self, group_name: str) -> bool:
        logger.debug("Checking if group %s is installed with dnf", group_name)
        result = self._run_query(
            "dnf", ["group", "list", "installed"], "failed to list installed groups",
        )
        installed = any(group_name in line.strip() for line in result.as_string().splitlines())
        logger.debug("Group %s is %sinstalled with dnf", group_name, "" if installed else "not ")
        return installed
