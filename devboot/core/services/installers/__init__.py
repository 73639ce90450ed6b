"""
Client installers — Homebrew, GPG and login shell.
"""

from devboot.core.services.installers.brew import BrewInstaller, detect_brew_path
from devboot.core.services.installers.gpg import (
    SUPPORTED_GPG_VERSION,
    GpgClient,
    GpgInstaller,
    extract_gpg_version,
    extract_key_id,
)
from devboot.core.services.installers.shell import ShellChanger, ShellInstaller

__all__ = [
    "BrewInstaller",
    "SUPPORTED_GPG_VERSION",
    "GpgClient",
    "GpgInstaller",
    "ShellChanger",
    "ShellInstaller",
    "detect_brew_path",
    "extract_gpg_version",
    "extract_key_id",
]
