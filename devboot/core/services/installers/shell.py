"""
Shell — install a login shell and make it the user's default.
"""

from __future__ import annotations

import logging
import os
import threading

from devboot.adapters.shell.filesystem import FileSystem
from devboot.core.errors import DevbootError, InstallerError
from devboot.core.models.package import RequestedPackageInfo
from devboot.core.services.os_manager import OsManager
from devboot.core.services.pkgmanager.base import PackageManager
from devboot.core.services.privilege import Escalator
from devboot.core.services.program_query import ProgramQuery

logger = logging.getLogger(__name__)


class ShellChanger:
    """Switches the current user's login shell.

    Args:
        shell_name: Binary name, e.g. ``zsh``.
        brew_path: Path of the ``brew`` binary when the shell comes from
            Homebrew, else empty.  Its bin directory is probed when the
            shell is not on PATH, and such shells are registered in
            ``/etc/shells`` before the switch.
    """

    def __init__(
        self,
        shell_name: str,
        brew_path: str,
        os_manager: OsManager,
        filesystem: FileSystem,
        escalator: Escalator,
    ):
        self._shell_name = shell_name
        self._brew_path = brew_path
        self._os_manager = os_manager
        self._filesystem = filesystem
        self._escalator = escalator

    def get_shell_path(self) -> str:
        path_error: DevbootError | None = None
        try:
            shell_path = self._os_manager.program_path(self._shell_name)
            self._validate_shell_path(shell_path)
            return shell_path
        except DevbootError as e:
            if not self._brew_path:
                raise InstallerError(f"failed to find {self._shell_name} in PATH: {e}") from e
            path_error = e

        shell_path = os.path.join(os.path.dirname(self._brew_path), self._shell_name)
        logger.debug(
            "%s not usable from PATH (%s), looking for brew-installed shell at: %s",
            self._shell_name, path_error, shell_path,
        )
        try:
            self._validate_shell_path(shell_path)
        except InstallerError as e:
            raise InstallerError(f"brew-installed shell not found at {shell_path}: {e}") from e
        return shell_path

    def is_current_default(self) -> bool:
        shell_path = self.get_shell_path()
        username = self._os_manager.current_username()
        current_shell = self._os_manager.user_shell(username)
        logger.debug("Current shell: %s, target shell: %s", current_shell, shell_path)
        return current_shell == shell_path

    def set_as_default(self, cancel: threading.Event | None = None) -> None:
        try:
            shell_path = self.get_shell_path()
        except DevbootError as e:
            raise InstallerError(f"failed to get shell path: {e}") from e

        try:
            if self.is_current_default():
                logger.debug("Shell %s is already the default", shell_path)
                return
        except DevbootError as e:
            logger.warning("Failed to check current default shell: %s", e)

        try:
            if self._escalator.is_running_as_root():
                logger.warning("Running as root - shell change will affect root user's default shell")
        except DevbootError as e:
            logger.debug("Root check failed: %s", e)

        if cancel is not None and cancel.is_set():
            raise InstallerError("failed to set default shell: cancelled")

        if self._brew_path:
            try:
                self._os_manager.ensure_shell_in_etc_shells(shell_path)
            except DevbootError as e:
                raise InstallerError(f"failed to add shell to /etc/shells: {e}") from e

        try:
            username = self._os_manager.current_username()
            logger.debug("Setting default shell to %s for user %s", shell_path, username)
            self._os_manager.set_user_shell(username, shell_path)
        except DevbootError as e:
            raise InstallerError(f"failed to set default shell: {e}") from e

    def _validate_shell_path(self, shell_path: str) -> None:
        if not self._filesystem.path_exists(shell_path):
            raise InstallerError(f"shell binary not found at {shell_path}")
        if not self._filesystem.is_executable(shell_path):
            raise InstallerError(f"shell binary at {shell_path} is not executable")


class ShellInstaller:
    def __init__(
        self,
        shell_name: str,
        program_query: ProgramQuery,
        package_manager: PackageManager,
        shell_changer: ShellChanger,
    ):
        self._shell_name = shell_name
        self._program_query = program_query
        self._package_manager = package_manager
        self._shell_changer = shell_changer

    @property
    def shell_name(self) -> str:
        return self._shell_name

    def is_available(self) -> bool:
        available = self._program_query.program_exists(self._shell_name)
        logger.debug("%s is %savailable", self._shell_name, "" if available else "not ")
        return available

    def install(self, cancel: threading.Event | None = None) -> None:
        if cancel is not None and cancel.is_set():
            raise InstallerError(f"failed to install {self._shell_name}: cancelled")
        logger.debug("Installing %s via package manager", self._shell_name)
        try:
            self._package_manager.install(RequestedPackageInfo.create(self._shell_name), cancel=cancel)
        except DevbootError as e:
            raise InstallerError(f"failed to install {self._shell_name}: {e}") from e

    def set_as_default(self, cancel: threading.Event | None = None) -> None:
        self._shell_changer.set_as_default(cancel)
