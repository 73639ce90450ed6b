"""
Homebrew — install ``brew`` itself.

The official install script is downloaded, written to a temporary file
and run non-interactively.  On a multi-user Linux host the script runs
as a dedicated ``linuxbrew`` user (created on demand, with passwordless
sudo) and the current user joins its group, so every account shares one
prefix.  After install the brew bin directory is put on this process's
PATH so later steps find brew-installed programs.
"""

from __future__ import annotations

import logging
import os
import threading

from devboot.adapters.http import HttpClient
from devboot.adapters.shell.command import (
    Commander,
    Option,
    with_cancel,
    with_capture_output,
    with_discard_output,
    with_env_var,
    with_stream_output,
)
from devboot.adapters.shell.filesystem import FileSystem
from devboot.core.errors import DevbootError, InstallerError, UnsupportedPlatformError
from devboot.core.models.package import DisplayMode
from devboot.core.models.system import SystemInfo
from devboot.core.services.os_manager import OsManager

logger = logging.getLogger(__name__)

LINUX_BREW_PATH = "/home/linuxbrew/.linuxbrew/bin/brew"
MACOS_ARM_BREW_PATH = "/opt/homebrew/bin/brew"
MACOS_INTEL_BREW_PATH = "/usr/local/bin/brew"

INSTALL_SCRIPT_URL = "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"
BREW_USER = "linuxbrew"


def detect_brew_path(system_info: SystemInfo, override: str = "") -> str:
    """Where ``brew`` lives (or will live) on this host; ``override`` wins."""
    if override:
        return override
    if system_info.os_name == "darwin":
        return MACOS_ARM_BREW_PATH if system_info.arch == "arm64" else MACOS_INTEL_BREW_PATH
    if system_info.os_name == "linux":
        return LINUX_BREW_PATH
    raise UnsupportedPlatformError(f"unsupported operating system for Homebrew: {system_info.os_name}")


class BrewInstaller:
    """Installs Homebrew when it is missing.

    Args:
        system_info: Selects the default brew location.
        commander: Runs the install script and ``brew --version``.
        os_manager: Users, permissions and PATH.
        filesystem: Temporary script file and brew existence checks.
        http_client: Downloads the install script.
        display_mode: ``VERBOSE`` streams the script's output.
        brew_path_override: Use this brew path instead of the default.
        multi_user: Install as the shared ``linuxbrew`` user (Linux only).
    """

    def __init__(
        self,
        system_info: SystemInfo,
        commander: Commander,
        os_manager: OsManager,
        filesystem: FileSystem,
        http_client: HttpClient,
        display_mode: DisplayMode = DisplayMode.PROGRESS,
        brew_path_override: str = "",
        multi_user: bool = False,
    ):
        self._system_info = system_info
        self._commander = commander
        self._os_manager = os_manager
        self._filesystem = filesystem
        self._http_client = http_client
        self._display_mode = display_mode
        self._brew_path_override = brew_path_override
        self._multi_user = multi_user

        if multi_user and system_info.os_name == "darwin":
            logger.warning("Multi-user Homebrew is only supported on Linux, installing for the current user")
            self._multi_user = False

    def brew_path(self) -> str:
        return detect_brew_path(self._system_info, self._brew_path_override)

    def is_available(self) -> bool:
        try:
            brew_path = self.brew_path()
        except DevbootError as e:
            raise InstallerError(f"failed to detect brew path: {e}") from e
        available = self._filesystem.path_exists(brew_path)
        logger.debug("brew is %savailable at %s", "" if available else "not ", brew_path)
        return available

    def install(self, cancel: threading.Event | None = None) -> bool:
        """Install Homebrew unless present; True when it was installed now.

        Either way the brew bin directory ends up on PATH.
        """
        installed = False
        if self.is_available():
            logger.debug("Homebrew is already installed")
        else:
            if cancel is not None and cancel.is_set():
                raise InstallerError("failed to install Homebrew: cancelled")
            logger.info("Installing Homebrew%s", " (multi-user)" if self._multi_user else "")
            self._install_homebrew(cancel)
            self._validate_install()
            installed = True

        self.update_path()
        return installed

    def update_path(self) -> None:
        bin_dir = os.path.dirname(self.brew_path())
        if self._os_manager.prepend_to_path(bin_dir):
            logger.info("Added %s to PATH", bin_dir)

    # ── Internals ───────────────────────────────────────────────

    def _install_homebrew(self, cancel: threading.Event | None) -> None:
        script = self._download_install_script()
        try:
            if self._multi_user:
                self._install_multi_user(script, cancel)
            else:
                self._run_script("/bin/bash", [script], cancel)
        finally:
            self._remove(script)

    def _install_multi_user(self, script: str, cancel: threading.Event | None) -> None:
        if not self._os_manager.program_exists("sudo"):
            raise InstallerError("multi-user Homebrew install requires sudo")

        try:
            if not self._os_manager.user_exists(BREW_USER):
                self._os_manager.add_user(BREW_USER)
            self._os_manager.add_sudo_access(BREW_USER)
        except DevbootError as e:
            raise InstallerError(f"failed to prepare {BREW_USER} user: {e}") from e

        # sudo resets the environment, so NONINTERACTIVE goes through env
        self._run_script(
            "sudo", ["-Hu", BREW_USER, "env", "NONINTERACTIVE=1", "/bin/bash", script], cancel,
        )

        try:
            self._os_manager.add_user_to_group(self._os_manager.current_username(), BREW_USER)
        except DevbootError as e:
            raise InstallerError(f"failed to add current user to {BREW_USER} group: {e}") from e

    def _run_script(self, command: str, args: list[str], cancel: threading.Event | None) -> None:
        opts: list[Option] = [self._output_option(), with_env_var("NONINTERACTIVE", "1")]
        if cancel is not None:
            opts.append(with_cancel(cancel))
        try:
            self._commander.run(command, args, *opts).check()
        except DevbootError as e:
            raise InstallerError(f"Homebrew install script failed: {e}") from e

    def _download_install_script(self) -> str:
        logger.debug("Downloading Homebrew install script from %s", INSTALL_SCRIPT_URL)
        try:
            response = self._http_client.get(INSTALL_SCRIPT_URL)
        except DevbootError as e:
            raise InstallerError(f"failed to download Homebrew install script: {e}") from e
        if not response.ok:
            raise InstallerError(
                f"failed to download Homebrew install script: HTTP status {response.status}"
            )
        if not response.body:
            raise InstallerError("failed to download Homebrew install script: empty response")

        try:
            path = self._filesystem.create_temporary_file(pattern="brew-install-*.sh")
        except OSError as e:
            raise InstallerError(f"failed to create temporary file for Homebrew install script: {e}") from e

        try:
            written = self._filesystem.write_file(path, response.body)
        except OSError as e:
            self._remove(path)
            raise InstallerError(f"failed to write Homebrew install script: {e}") from e
        if written == 0:
            self._remove(path)
            raise InstallerError("failed to write Homebrew install script: no bytes written")

        try:
            self._os_manager.set_permissions(path, 0o755)
        except DevbootError as e:
            self._remove(path)
            raise InstallerError(f"failed to make Homebrew install script executable: {e}") from e
        return path

    def _validate_install(self) -> None:
        brew_path = self.brew_path()
        if not self._filesystem.path_exists(brew_path):
            raise InstallerError(f"brew self-validation failed: brew binary not found at {brew_path}")
        try:
            self._commander.run(brew_path, ["--version"], with_capture_output()).check()
        except DevbootError as e:
            raise InstallerError(f"brew self-validation failed: {e}") from e

    def _output_option(self) -> Option:
        if self._display_mode.should_discard_output():
            return with_discard_output()
        return with_stream_output()

    def _remove(self, path: str) -> None:
        try:
            self._filesystem.remove_path(path)
        except OSError as e:
            logger.warning("Failed to remove temporary file %s: %s", path, e)
