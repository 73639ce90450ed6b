"""
Error hierarchy — every failure the core surfaces to its callers.

Layers wrap lower-level errors with a contextual prefix and chain the
original (``raise X(f"failed to ...: {e}") from e``). The CLI catches
``DevbootError`` at the top and turns it into a red message + exit 1.
"""

from __future__ import annotations


class DevbootError(Exception):
    """Base class for all devboot errors."""


# ── Process execution ───────────────────────────────────────────


class SpawnError(DevbootError):
    """The child process could not be started (not found, EACCES, I/O setup)."""

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"failed to start '{command}': {reason}")


class CommandFailedError(DevbootError):
    """The child ran but exited non-zero."""

    def __init__(self, command: str, exit_code: int, stderr: str = ""):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        message = f"'{command}' exited with code {exit_code}"
        if stderr:
            message += f": {stderr}"
        super().__init__(message)


class CommandCancelledError(DevbootError):
    """The caller cancelled a running command."""


class CommandTimeoutError(DevbootError):
    """A command exceeded its per-call deadline."""


# ── Parsing / lookup ────────────────────────────────────────────


class ParseError(DevbootError):
    """Output did not conform to the expected shape."""


class VersionParseError(ParseError):
    """A version string could not be extracted from program output."""


class ProgramNotFoundError(DevbootError):
    """A required external program is not on PATH."""

    def __init__(self, program: str):
        self.program = program
        super().__init__(f"program '{program}' not found in PATH")


class UserLookupError(DevbootError):
    """A user account or its login shell could not be resolved."""


class InvalidInputError(DevbootError):
    """A caller passed an unusable argument (empty command, nil config)."""


# ── Platform / compatibility ────────────────────────────────────


class CompatibilityConfigError(DevbootError):
    """The compatibility document is missing or malformed."""


class UnsupportedPlatformError(DevbootError):
    """The compatibility check rejected the host."""


class MissingPrerequisiteError(DevbootError):
    """One or more prerequisite programs are absent."""

    def __init__(self, missing: list[str], status=None):
        self.missing = list(missing)
        # PrerequisiteStatus of the whole check, so callers can render details
        self.status = status
        super().__init__(f"missing prerequisites: {', '.join(self.missing)}")


# ── Privileges / packages / installers ──────────────────────────


class EscalationError(DevbootError):
    """A command could not be wrapped for privilege escalation."""


class PackageManagerError(DevbootError):
    """A package-manager backend operation failed."""


class PackageNotInstalledError(PackageManagerError):
    """The queried package is not installed."""

    def __init__(self, name: str, backend: str = ""):
        self.name = name
        suffix = f" with {backend}" if backend else ""
        super().__init__(f"package {name} is not installed{suffix}")


class InstallerError(DevbootError):
    """A client installer (shell, gpg) failed."""


class SettingsError(DevbootError):
    """``devboot.yml`` is invalid or unreadable."""


class DownloadError(DevbootError):
    """An HTTP download failed or returned a non-200 status."""


class PackageMappingError(DevbootError):
    """A generic package name has no usable mapping for this host."""


class PackageMappingNotFoundError(PackageMappingError):
    """No mapping exists for the package (or for it on this package manager)."""


class PackageMapConfigError(DevbootError):
    """The package map document is missing or malformed."""
