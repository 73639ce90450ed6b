"""
OS manager — Unix/macOS primitives on top of the Commander and Escalator.

Anything that changes system-wide state (``/etc/shells``,
``/etc/sudoers.d``, login shells, users, ownership) is escalated.  No
shell pipelines: content is written by feeding ``tee`` on stdin.
"""

from __future__ import annotations

import logging
import os
import pwd
import sys
from collections.abc import MutableMapping, Sequence
from pathlib import Path

from devboot.adapters.shell.command import (
    Commander,
    Option,
    Result,
    with_capture_output,
    with_input_string,
)
from devboot.adapters.shell.filesystem import FileSystem
from devboot.core.errors import DevbootError, ParseError, UserLookupError
from devboot.core.services.privilege import Escalator
from devboot.core.services.program_query import ProgramQuery, VersionExtractor

logger = logging.getLogger(__name__)

ETC_SHELLS = "/etc/shells"
ETC_PASSWD = "/etc/passwd"
SUDOERS_DIR = "/etc/sudoers.d"


class OsManager:
    """System operations for Linux and macOS hosts.

    Args:
        commander: Runs every external program.
        escalator: Wraps every state-changing command.
        program_query: PATH and version lookups.
        filesystem: Reads ``/etc/shells`` and ``/etc/passwd``.
        platform_name: ``sys.platform`` style name; ``"darwin"`` selects
            the ``dscl`` code paths.
        environ: Environment mapping for ``getenv`` and ``prepend_to_path``
            (default ``os.environ``).
    """

    def __init__(
        self,
        commander: Commander,
        escalator: Escalator,
        program_query: ProgramQuery,
        filesystem: FileSystem,
        platform_name: str | None = None,
        environ: MutableMapping[str, str] | None = None,
    ):
        self._commander = commander
        self._escalator = escalator
        self._program_query = program_query
        self._filesystem = filesystem
        self._platform = platform_name or sys.platform
        self._environ = environ if environ is not None else os.environ

    @property
    def is_darwin(self) -> bool:
        return self._platform == "darwin"

    # ── Program queries ─────────────────────────────────────────

    def program_exists(self, name: str) -> bool:
        return self._program_query.program_exists(name)

    def program_path(self, name: str) -> str:
        return self._program_query.program_path(name)

    def program_version(
        self,
        name: str,
        extractor: VersionExtractor,
        query_args: Sequence[str] = ("--version",),
    ) -> str:
        return self._program_query.program_version(name, extractor, query_args)

    def getenv(self, name: str) -> str:
        return self._environ.get(name, "")

    def prepend_to_path(self, directory: str) -> bool:
        """Put ``directory`` first on this process's PATH; False if already listed."""
        current = self.getenv("PATH")
        entries = current.split(os.pathsep) if current else []
        if directory in entries:
            return False
        logger.debug("Prepending %s to PATH", directory)
        self._environ["PATH"] = os.pathsep.join([directory, *entries])
        return True

    # ── Users ───────────────────────────────────────────────────

    def current_username(self) -> str:
        try:
            return pwd.getpwuid(os.getuid()).pw_name
        except KeyError as e:
            raise UserLookupError(f"failed to get current user: uid {os.getuid()} has no passwd entry") from e

    def user_exists(self, username: str) -> bool:
        try:
            pwd.getpwnam(username)
        except KeyError:
            return False
        return True

    def home_dir(self) -> str:
        return str(Path.home())

    def config_dir(self) -> str:
        if self.is_darwin:
            return str(Path.home() / "Library" / "Application Support")
        return self.getenv("XDG_CONFIG_HOME") or str(Path.home() / ".config")

    def add_user(self, username: str) -> None:
        logger.info("User '%s' does not exist, creating...", username)
        result = self._run_escalated("useradd", ["-m", "-s", "/bin/bash", username])
        if result.ok:
            return

        logger.debug("useradd failed (exit %d), trying adduser", result.exit_code)
        result = self._run_escalated("adduser", ["--disabled-password", "--gecos", "", username])
        if not result.ok:
            raise DevbootError(
                f"failed to create user '{username}' with useradd/adduser: "
                f"{result.stderr_string().strip() or f'exit {result.exit_code}'}"
            )

    def add_user_to_group(self, username: str, group: str) -> None:
        logger.info("Adding '%s' to %s group", username, group)
        result = self._run_escalated("usermod", ["-aG", group, username])
        if not result.ok:
            # Often the user is already in the group.
            logger.debug("Note: user might already be in the %s group", group)

    # ── Login shell ─────────────────────────────────────────────

    def user_shell(self, username: str) -> str:
        """Login shell of ``username`` (``dscl`` on macOS, ``/etc/passwd`` on Linux)."""
        if self.is_darwin:
            return self._user_shell_darwin(username)
        return self._user_shell_passwd(username)

    def set_user_shell(self, username: str, shell_path: str) -> None:
        if self.is_darwin:
            command, args = "dscl", [".", "-create", f"/Users/{username}", "UserShell", shell_path]
        else:
            command, args = "usermod", ["-s", shell_path, username]

        logger.debug("Setting login shell of %s to %s via %s", username, shell_path, command)
        result = self._run_escalated(command, args)
        if not result.ok:
            raise DevbootError(
                f"failed to set shell via {command}: "
                f"{result.stderr_string().strip() or f'exit {result.exit_code}'}"
            )

    def ensure_shell_in_etc_shells(self, shell_path: str) -> None:
        """Append ``shell_path`` to ``/etc/shells`` unless a line already equals it.

        Comparison is on trimmed lines; symlinked paths count as distinct.
        """
        logger.debug("Checking if %s is in %s", shell_path, ETC_SHELLS)
        try:
            content = self._filesystem.read_file_contents(ETC_SHELLS)
        except OSError as e:
            raise DevbootError(f"failed to read {ETC_SHELLS}: {e}") from e

        text = content.decode("utf-8", errors="replace")
        for line in text.splitlines():
            if line.strip() == shell_path:
                logger.debug("Shell %s already in %s", shell_path, ETC_SHELLS)
                return

        # the new entry must start on its own line
        entry = f"{shell_path}\n"
        if text and not text.endswith("\n"):
            entry = f"\n{entry}"

        logger.info("Adding %s to %s", shell_path, ETC_SHELLS)
        result = self._run_escalated("tee", ["-a", ETC_SHELLS], with_input_string(entry))
        if not result.ok:
            raise DevbootError(
                f"failed to append shell to {ETC_SHELLS}: "
                f"{result.stderr_string().strip() or f'exit {result.exit_code}'}"
            )

    # ── Sudo / permissions ──────────────────────────────────────

    def add_sudo_access(self, username: str) -> None:
        """Grant passwordless sudo through ``/etc/sudoers.d/<user>``."""
        sudoers_file = f"{SUDOERS_DIR}/{username}"
        result = self._run_escalated(
            "tee", [sudoers_file], with_input_string(f"{username} ALL=(ALL) NOPASSWD:ALL\n"),
        )
        if not result.ok:
            raise DevbootError(
                f"failed to add passwordless sudo for '{username}': "
                f"{result.stderr_string().strip() or f'exit {result.exit_code}'}"
            )

    def set_ownership(self, path: str, username: str) -> None:
        logger.info("Setting ownership of %s to %s", path, username)
        result = self._run_escalated("chown", ["-R", f"{username}:{username}", path])
        if not result.ok:
            raise DevbootError(f"failed to chown {path}: {result.stderr_string().strip()}")

    def set_permissions(self, path: str, mode: int) -> None:
        logger.info("Setting permissions of %s to %o", path, mode)
        result = self._run_escalated("chmod", [format(mode, "o"), path])
        if not result.ok:
            raise DevbootError(f"failed to chmod {path}: {result.stderr_string().strip()}")

    def file_owner(self, path: str) -> str:
        try:
            uid = os.stat(path).st_uid
        except OSError as e:
            raise DevbootError(f"failed to get file info for {path}: {e}") from e
        try:
            return pwd.getpwuid(uid).pw_name
        except KeyError as e:
            raise UserLookupError(f"failed to lookup owner for {path}: uid {uid}") from e

    # ── Internals ───────────────────────────────────────────────

    def _run_escalated(self, command: str, args: Sequence[str], *opts: Option) -> Result:
        escalated = self._escalator.escalate(command, args)
        return self._commander.run(
            escalated.command, escalated.args, with_capture_output(), *opts,
        )

    def _user_shell_darwin(self, username: str) -> str:
        result = self._commander.run(
            "dscl", [".", "-read", f"/Users/{username}", "UserShell"], with_capture_output(),
        )
        if not result.ok:
            raise UserLookupError(
                f"failed to read UserShell via dscl: {result.stderr_string().strip()}"
            )

        # "UserShell: /path/to/shell"
        output = result.as_string()
        key, sep, value = output.partition(":")
        if not sep or key.strip() != "UserShell":
            raise ParseError(f"unexpected dscl output format: {output}")
        return value.strip()

    def _user_shell_passwd(self, username: str) -> str:
        try:
            content = self._filesystem.read_file_contents(ETC_PASSWD)
        except OSError as e:
            raise UserLookupError(f"failed to open {ETC_PASSWD}: {e}") from e

        for line in content.decode("utf-8", errors="replace").splitlines():
            if line.startswith(f"{username}:"):
                fields = line.split(":")
                if len(fields) >= 7:
                    return fields[6]
        raise UserLookupError(f"user {username} not found in {ETC_PASSWD}")
