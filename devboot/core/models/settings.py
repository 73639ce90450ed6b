"""
Bootstrap settings — the optional ``devboot.yml`` file.

Every field has a default, so an empty file (or no file) is valid.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from devboot.core.models.package import DisplayMode, RequestedPackageInfo


class RequestedPackage(BaseModel):
    """An extra package: a code from the package map, or a literal backend name."""

    name: str
    type: str = ""
    version: str | None = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("package name cannot be empty")
        return value.strip()

    def to_request(self) -> RequestedPackageInfo:
        return RequestedPackageInfo.create(self.name, self.version, self.type)


class BootstrapSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    shell: str = "zsh"
    install_gpg: bool = True
    create_gpg_key: bool = False
    install_shell_with_brew: bool = False
    brew_path: str | None = None
    # install Homebrew when a step needs it and it is missing
    install_brew: bool = True
    multi_user_system: bool = False
    display_mode: DisplayMode = DisplayMode.PROGRESS
    compatibility_file: str | None = None
    package_map_file: str | None = None
    packages: list[RequestedPackage] = Field(default_factory=list)
