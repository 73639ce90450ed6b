"""
GPG — client installer and key-pair helper.

The installer only makes sure a recent enough ``gpg`` (plus
``gpg-agent``) is present; ``GpgClient`` drives ``gpg`` itself for key
listing and interactive key generation.
"""

from __future__ import annotations

import logging
import re
import threading

from packaging.specifiers import SpecifierSet
from packaging.version import InvalidVersion, Version

from devboot.adapters.shell.command import (
    Commander,
    with_capture_output,
    with_cancel,
    with_env_var,
    with_interactive_capture,
)
from devboot.adapters.shell.filesystem import FileSystem
from devboot.core.errors import DevbootError, InstallerError, VersionParseError
from devboot.core.models.package import RequestedPackageInfo
from devboot.core.services.os_manager import OsManager
from devboot.core.services.pkgmanager.base import PackageManager

logger = logging.getLogger(__name__)

SUPPORTED_GPG_VERSION = ">=2.2.0"

# Environment variables that may already name the controlling terminal.
_TTY_ENV_VARS = ("GPG_TTY", "TTY", "TERM_TTY")


def extract_gpg_version(raw: str) -> str:
    """Version from ``gpg --version``: third field of the first line.

    ``gpg (GnuPG) 2.4.4`` → ``2.4.4``.  Real output is multi-line, so a
    single-line answer is rejected.
    """
    lines = raw.split("\n")
    if len(lines) == 1:
        raise VersionParseError("line count is 1, meaning there are no newlines in the version string")
    parts = lines[0].split()
    if len(parts) < 3:
        raise VersionParseError("version string does not contain enough parts to extract version")
    return parts[2]


class GpgInstaller:
    """Ensures a usable GnuPG client is installed.

    Args:
        os_manager: PATH and version lookups.
        package_manager: Backend used to install ``gpg``.
    """

    def __init__(self, os_manager: OsManager, package_manager: PackageManager):
        self._os_manager = os_manager
        self._package_manager = package_manager

    def is_available(self) -> bool:
        if not self._os_manager.program_exists("gpg"):
            logger.warning("GPG is not available. Required for GPG operations.")
            return False

        try:
            compatible = self._version_matches()
        except DevbootError as e:
            logger.warning("Failed to determine GPG version: %s", e)
            return False
        if not compatible:
            logger.warning("GPG version is not compatible. Required version is %s", SUPPORTED_GPG_VERSION)
            return False

        if not self._os_manager.program_exists("gpg-agent"):
            logger.warning("GPG agent is not available. Required for GPG operations.")
            return False

        return True

    def install(self, cancel: threading.Event | None = None) -> None:
        """Install ``gpg``; ``cancel`` aborts the running package-manager process."""
        if cancel is not None and cancel.is_set():
            raise InstallerError("failed to install GPG client: cancelled")
        try:
            self._package_manager.install(
                RequestedPackageInfo.create("gpg", SUPPORTED_GPG_VERSION), cancel=cancel,
            )
        except DevbootError as e:
            raise InstallerError(f"failed to install GPG client: {e}") from e

    def _version_matches(self) -> bool:
        raw_version = self._os_manager.program_version("gpg", extract_gpg_version)
        try:
            version = Version(raw_version)
        except InvalidVersion as e:
            raise VersionParseError(f"cannot parse gpg version {raw_version!r}: {e}") from e
        return SpecifierSet(SUPPORTED_GPG_VERSION).contains(version, prereleases=True)


# ═══════════════════════════════════════════════════════════════════
#  Key management
# ═══════════════════════════════════════════════════════════════════


_KEY_TRUSTED_RE = re.compile(r"^gpg: key ([0-9A-F]+) marked as ultimately trusted", re.MULTILINE)
_KEY_IMPORTED_RE = re.compile(r"^gpg: ([0-9A-F]+): public key ", re.MULTILINE)
_REVOCATION_RE = re.compile(r"openpgp-revocs\.d/([0-9A-F]+)\.rev")


def extract_key_id(output: str) -> str:
    """Key ID announced by ``gpg --gen-key``.

    Tried in order: "marked as ultimately trusted", "public key ...
    imported", the line after ``pub``, the revocation certificate name.
    """
    lines = output.splitlines()
    if len(lines) < 3:
        raise InstallerError("failed to extract GPG key ID: output has too few lines")

    for pattern in (_KEY_TRUSTED_RE, _KEY_IMPORTED_RE):
        match = pattern.search(output)
        if match:
            return match.group(1)

    for i, line in enumerate(lines[:-1]):
        if line.startswith("pub") and lines[i + 1].strip():
            return lines[i + 1].strip()

    match = _REVOCATION_RE.search(output)
    if match:
        return match.group(1)

    raise InstallerError("could not find key ID in GPG output")


class GpgClient:
    """Thin driver over the ``gpg`` binary."""

    def __init__(self, os_manager: OsManager, filesystem: FileSystem, commander: Commander):
        self._os_manager = os_manager
        self._filesystem = filesystem
        self._commander = commander

    def list_available_keys(self) -> list[str]:
        """Long key IDs of every secret key (``sec   rsa3072/<ID> ...``)."""
        result = self._commander.run(
            "gpg", ["--list-secret-keys", "--keyid-format", "LONG"], with_capture_output(),
        )
        result.check()

        keys: list[str] = []
        for line in result.as_string().splitlines():
            if not line.startswith("sec"):
                continue
            fields = line.split()
            if len(fields) < 2 or "/" not in fields[1]:
                continue
            keys.append(fields[1].split("/", 1)[1])
        return keys

    def keys_available(self) -> bool:
        return bool(self.list_available_keys())

    def create_key_pair(self, cancel: threading.Event | None = None) -> str:
        """Generate a key interactively; returns its ID."""
        tty = self._detect_tty()
        opts = [with_interactive_capture(), with_env_var("GPG_TTY", tty)]
        if cancel is not None:
            opts.append(with_cancel(cancel))

        logger.info("Creating GPG key pair (GPG_TTY=%s)", tty)
        result = self._commander.run(
            "gpg",
            ["--gen-key", "--pinentry-mode", "loopback", "--default-new-key-algo", "nistp256"],
            *opts,
        )
        if not result.ok:
            raise InstallerError(
                f"failed to create GPG key pair: {result.stderr_string().strip() or f'exit {result.exit_code}'}"
            )
        # gpg reports progress on stderr
        return extract_key_id(result.as_string() + "\n" + result.stderr_string())

    def _detect_tty(self) -> str:
        for name in _TTY_ENV_VARS:
            value = self._os_manager.getenv(name)
            if value:
                return value

        try:
            result = self._commander.run("tty", [], with_interactive_capture())
        except DevbootError as e:
            logger.debug("tty failed: %s", e)
        else:
            if result.ok and result.as_string().startswith("/dev/"):
                return result.as_string()

        try:
            if self._filesystem.path_exists("/dev/tty"):
                return "/dev/tty"
        except OSError as e:
            logger.debug("Probing /dev/tty failed: %s", e)

        raise InstallerError("unable to detect TTY for GPG key generation")
