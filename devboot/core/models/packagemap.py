"""
Package map — generic package codes translated per package manager.

A mapping's ``name`` is either one name for every distribution or a
distribution → name table (``{ubuntu: docker.io, debian: docker.io}``).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ManagerMapping(BaseModel):
    """How one package manager calls a generic package."""

    model_config = ConfigDict(extra="forbid")

    name: str | dict[str, str]
    type: str = ""

    @property
    def is_distro_specific(self) -> bool:
        return isinstance(self.name, dict) and bool(self.name)

    def name_for(self, distro_name: str) -> str | None:
        if isinstance(self.name, str):
            return self.name or None
        return self.name.get(distro_name) or None


class PackageMappingCollection(BaseModel):
    """Generic code → package-manager name → mapping."""

    packages: dict[str, dict[str, ManagerMapping]] = Field(default_factory=dict)

    @field_validator("packages", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return {} if value is None else value
