"""
Package resolver — turns generic package codes into backend names.

``packagemap.yaml`` (embedded, or a user file) says what each package
manager calls a generic code such as ``fd`` or ``docker``.  Resolution
is per package manager and, for distro-specific entries, per
distribution.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from devboot.core.errors import (
    InvalidInputError,
    PackageMapConfigError,
    PackageMappingError,
    PackageMappingNotFoundError,
)
from devboot.core.models.package import RequestedPackageInfo
from devboot.core.models.packagemap import PackageMappingCollection
from devboot.core.models.system import SystemInfo

logger = logging.getLogger(__name__)

EMBEDDED_PACKAGE_MAP_FILE = Path(__file__).resolve().parents[1] / "config" / "packagemap.yaml"


def load_package_mappings(path: Path | None = None) -> PackageMappingCollection:
    """Load the package map.

    Args:
        path: A user-supplied package map, or None for the embedded one.

    Raises:
        PackageMapConfigError: unreadable, not YAML, or schema mismatch.
    """
    if path is None:
        source = "embedded package map config"
        try:
            raw = EMBEDDED_PACKAGE_MAP_FILE.read_text(encoding="utf-8")
        except OSError as e:
            raise PackageMapConfigError(f"error loading embedded package map config: {e}") from e
    else:
        source = f"package map file '{path}'"
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise PackageMapConfigError(f"error reading package map file '{path}': {e}") from e
        logger.info("Using package map file: %s", path)

    return parse_package_mappings(raw, source)


def parse_package_mappings(raw: str, source: str = "<string>") -> PackageMappingCollection:
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise PackageMapConfigError(f"invalid YAML in {source}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise PackageMapConfigError(f"expected a YAML mapping in {source}, got {type(data).__name__}")

    try:
        mappings = PackageMappingCollection.model_validate(data)
    except ValidationError as e:
        raise PackageMapConfigError(f"error parsing package map configuration: {e}") from e

    logger.debug("Loaded %d package mappings from %s", len(mappings.packages), source)
    return mappings


class PackageResolver:
    """Resolves generic codes for one package manager on one host.

    Args:
        mappings: The loaded package map.
        package_manager_name: Backend name as in the map (``apt``, ``dnf``, ``brew``).
        system_info: Its ``distro_name`` picks distro-specific names.
    """

    def __init__(
        self,
        mappings: PackageMappingCollection,
        package_manager_name: str,
        system_info: SystemInfo,
    ):
        if not package_manager_name:
            raise InvalidInputError("package manager name cannot be empty")
        self._mappings = mappings
        self._package_manager_name = package_manager_name
        self._system_info = system_info

    @property
    def package_manager_name(self) -> str:
        return self._package_manager_name

    def resolve(self, code: str, constraint: str | None = None) -> RequestedPackageInfo:
        """Backend-specific request for ``code``.

        Raises:
            PackageMappingNotFoundError: no entry for the code, or none for
                this package manager.
            PackageMappingError: the entry is distro-specific and this
                distribution is not listed.
            InvalidInputError: empty code or bad version constraint.
        """
        if not code:
            raise InvalidInputError("generic package code cannot be empty")

        package_mapping = self._mappings.packages.get(code)
        if package_mapping is None:
            raise PackageMappingNotFoundError(f"no package mapping found for package '{code}'")

        manager_mapping = package_mapping.get(self._package_manager_name)
        name = manager_mapping.name_for(self._system_info.distro_name) if manager_mapping else None
        if not name:
            if manager_mapping is not None and manager_mapping.is_distro_specific:
                raise PackageMappingError(
                    f"package '{code}' requires distro-specific mapping for "
                    f"'{self._system_info.distro_name}' distribution, but no mapping is defined"
                )
            raise PackageMappingNotFoundError(
                f"no package mapping found for package '{code}' "
                f"on package manager '{self._package_manager_name}'"
            )

        try:
            request = RequestedPackageInfo.create(name, constraint, type=manager_mapping.type)
        except InvalidInputError as e:
            raise InvalidInputError(
                f"invalid version constraint string '{constraint}' for package '{code}': {e}"
            ) from e

        logger.debug("Resolved package '%s' to '%s' for %s", code, name, self._package_manager_name)
        return request
