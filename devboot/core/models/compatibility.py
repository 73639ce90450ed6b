"""
Compatibility matrix — which operating systems and distributions are supported.

Loaded from ``compatibility.yaml`` (embedded default or a user file),
validated here, then treated as read-only.
"""

from __future__ import annotations

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from pydantic import BaseModel, ConfigDict, Field, field_validator


class PrerequisiteConfig(BaseModel):
    """A program that must be on PATH before the host is usable."""

    name: str
    command: str
    description: str = ""
    install_hint: str = ""


class DistroConfig(BaseModel):
    supported: bool = False
    notes: str = ""
    version_constraint: str | None = None
    prerequisites: list[PrerequisiteConfig] = Field(default_factory=list)

    @field_validator("version_constraint")
    @classmethod
    def _valid_specifier(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        try:
            SpecifierSet(value)
        except InvalidSpecifier as e:
            raise ValueError(f"invalid version constraint {value!r}: {e}") from e
        return value.strip()


class OSConfig(BaseModel):
    supported: bool = False
    notes: str = ""
    prerequisites: list[PrerequisiteConfig] = Field(default_factory=list)
    distributions: dict[str, DistroConfig] = Field(default_factory=dict)


class CompatibilityConfig(BaseModel):
    """Mapping of OS name (``linux``, ``darwin``, ``windows``) to its config."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    operating_systems: dict[str, OSConfig] = Field(
        default_factory=dict, alias="operatingSystems",
    )
