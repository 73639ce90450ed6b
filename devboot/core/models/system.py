"""
Detected system information and prerequisite status.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class PrerequisiteDetail:
    name: str
    available: bool = False
    command: str = ""
    description: str = ""
    install_hint: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "available": self.available,
            "command": self.command,
            "description": self.description,
            "install_hint": self.install_hint,
        }


@dataclass
class PrerequisiteStatus:
    available: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    details: dict[str, PrerequisiteDetail] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "available": list(self.available),
            "missing": list(self.missing),
            "details": {name: d.to_dict() for name, d in self.details.items()},
        }


@dataclass
class SystemInfo:
    """What the detector found, plus the prerequisite check outcome."""

    os_name: str = ""
    distro_name: str = ""
    distro_version: str = ""
    arch: str = ""
    prerequisites: PrerequisiteStatus = field(default_factory=PrerequisiteStatus)

    def to_dict(self) -> dict[str, Any]:
        return {
            "os_name": self.os_name,
            "distro_name": self.distro_name,
            "distro_version": self.distro_version,
            "arch": self.arch,
            "prerequisites": self.prerequisites.to_dict(),
        }
