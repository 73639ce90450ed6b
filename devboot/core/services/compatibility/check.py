"""
Compatibility check — decide whether this host can be bootstrapped.

Order: OS entry → OS supported → distro entry → distro supported →
distro version constraint → prerequisites.  The first failure stops
the check; whatever was detected up to that point is still reported.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from devboot.core.errors import (
    CompatibilityConfigError,
    DevbootError,
    InvalidInputError,
    MissingPrerequisiteError,
    UnsupportedPlatformError,
)
from devboot.core.models.compatibility import CompatibilityConfig, PrerequisiteConfig
from devboot.core.models.system import PrerequisiteDetail, PrerequisiteStatus, SystemInfo
from devboot.core.services.compatibility.detector import OSDetector
from devboot.core.services.program_query import ProgramQuery

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  Prerequisites
# ═══════════════════════════════════════════════════════════════════


class PrerequisiteChecker(ABC):
    @abstractmethod
    def check(self, prerequisites: Iterable[PrerequisiteConfig]) -> PrerequisiteStatus:
        """Probe every prerequisite.

        Raises:
            MissingPrerequisiteError: at least one is absent; ``.status``
                carries the full result.
        """


class DefaultPrerequisiteChecker(PrerequisiteChecker):
    """Looks each prerequisite's ``command`` up on PATH."""

    def __init__(self, program_query: ProgramQuery):
        self._program_query = program_query

    def check(self, prerequisites: Iterable[PrerequisiteConfig]) -> PrerequisiteStatus:
        status = PrerequisiteStatus()

        for prereq in prerequisites:
            try:
                available = self._program_query.program_exists(prereq.command)
            except DevbootError as e:
                logger.debug("Checking prerequisite %s failed: %s", prereq.name, e)
                available = False

            status.details[prereq.name] = PrerequisiteDetail(
                name=prereq.name,
                available=available,
                command=prereq.command,
                description=prereq.description,
                install_hint=prereq.install_hint,
            )
            if available:
                status.available.append(prereq.name)
            else:
                status.missing.append(prereq.name)

        if status.missing:
            raise MissingPrerequisiteError(status.missing, status=status)
        return status


# ═══════════════════════════════════════════════════════════════════
#  Host check
# ═══════════════════════════════════════════════════════════════════


@dataclass
class CompatibilityReport:
    """Outcome of ``check_compatibility``: what was detected, and why it failed (if it did)."""

    system_info: SystemInfo = field(default_factory=SystemInfo)
    error: DevbootError | None = None

    @property
    def compatible(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> SystemInfo:
        if self.error is not None:
            raise self.error
        return self.system_info

    def to_dict(self) -> dict:
        return {
            "compatible": self.compatible,
            "error": str(self.error) if self.error else None,
            "system": self.system_info.to_dict(),
        }


def _unsupported(kind: str, name: str, notes: str) -> UnsupportedPlatformError:
    message = f"unsupported {kind}: {name}"
    if notes:
        message += f" - {notes}"
    return UnsupportedPlatformError(message)


def _check_version(distro_name: str, version: str, constraint: str) -> None:
    try:
        spec = SpecifierSet(constraint)
    except InvalidSpecifier as e:
        raise CompatibilityConfigError(
            f"invalid version constraint {constraint!r} for {distro_name}: {e}"
        ) from e
    try:
        parsed = Version(version)
    except InvalidVersion as e:
        raise UnsupportedPlatformError(
            f"cannot compare {distro_name} version {version!r} against \"{constraint}\""
        ) from e
    if not spec.contains(parsed, prereleases=True):
        raise UnsupportedPlatformError(
            f"unsupported {distro_name} version {version}: requires \"{constraint}\""
        )


def _merged_prerequisites(*levels: Iterable[PrerequisiteConfig]) -> list[PrerequisiteConfig]:
    """Later levels replace earlier ones with the same name; order of first appearance kept."""
    merged: dict[str, PrerequisiteConfig] = {}
    for level in levels:
        for prereq in level:
            merged[prereq.name] = prereq
    return list(merged.values())


def check_compatibility(
    config: CompatibilityConfig | None,
    detector: OSDetector,
    prerequisite_checker: PrerequisiteChecker,
) -> CompatibilityReport:
    """Run the compatibility check against the detected host."""
    if config is None:
        return CompatibilityReport(error=InvalidInputError("compatibility configuration is nil"))

    info = detector.detect_system()
    report = CompatibilityReport(system_info=info)
    logger.info("Checking compatibility for %s/%s %s", info.os_name, info.distro_name, info.distro_version)

    os_config = config.operating_systems.get(info.os_name)
    if os_config is None:
        report.error = _unsupported("operating system", info.os_name, "")
        return report
    if not os_config.supported:
        report.error = _unsupported("operating system", info.os_name, os_config.notes)
        return report

    distro_prereqs: list[PrerequisiteConfig] = []
    if info.os_name == "linux":
        distro_config = os_config.distributions.get(info.distro_name)
        if distro_config is None:
            report.error = _unsupported("Linux distribution", info.distro_name, "")
            return report
        if not distro_config.supported:
            report.error = _unsupported("Linux distribution", info.distro_name, distro_config.notes)
            return report
        if distro_config.version_constraint:
            try:
                _check_version(info.distro_name, info.distro_version, distro_config.version_constraint)
            except DevbootError as e:
                report.error = e
                return report
        distro_prereqs = distro_config.prerequisites

    prerequisites = _merged_prerequisites(os_config.prerequisites, distro_prereqs)
    try:
        info.prerequisites = prerequisite_checker.check(prerequisites)
    except MissingPrerequisiteError as e:
        if e.status is not None:
            info.prerequisites = e.status
        report.error = e
        return report

    logger.info("System is compatible (%d prerequisites satisfied)", len(info.prerequisites.available))
    return report
