"""
Package models — the uniform vocabulary shared by every backend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from packaging.specifiers import InvalidSpecifier, SpecifierSet

from devboot.core.errors import InvalidInputError

GROUP_TYPE = "group"


class DisplayMode(str, Enum):
    """How backends present their own child-process output."""

    PROGRESS = "progress"   # hidden, progress shown by the caller
    PLAIN = "plain"         # hidden, plain status lines
    VERBOSE = "verbose"     # child output streamed through

    def should_discard_output(self) -> bool:
        return self is not DisplayMode.VERBOSE


@dataclass(frozen=True)
class PackageInfo:
    """An installed (or to-be-removed) package.  Identity is (name, type)."""

    name: str
    version: str = field(default="", compare=False)
    type: str = ""

    @property
    def is_group(self) -> bool:
        return self.type == GROUP_TYPE


@dataclass(frozen=True)
class RequestedPackageInfo:
    """A package the caller wants installed."""

    name: str
    version_constraints: SpecifierSet | None = None
    type: str = ""

    @classmethod
    def create(cls, name: str, constraint: str | None = None, type: str = "") -> RequestedPackageInfo:
        """Build from a constraint string such as ``">=2.2.0"``."""
        if not name:
            raise InvalidInputError("package name cannot be empty")
        specifiers = None
        if constraint:
            try:
                specifiers = SpecifierSet(constraint)
            except InvalidSpecifier as e:
                raise InvalidInputError(f"invalid version constraint '{constraint}': {e}") from e
        return cls(name=name, version_constraints=specifiers, type=type)

    @property
    def is_group(self) -> bool:
        return self.type == GROUP_TYPE


@dataclass(frozen=True)
class PackageManagerInfo:
    name: str
    version: str

    @classmethod
    def default(cls) -> PackageManagerInfo:
        return cls(name="Unknown", version="0.0.0")

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "version": self.version}
