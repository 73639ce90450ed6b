"""
Bootstrap use case — detect → compatibility check → Homebrew →
package manager → shell → GPG → extra packages.

Steps run strictly in that order.  The first error stops the run and
is reported; nothing already installed is rolled back.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from devboot.adapters.http import DefaultHttpClient, HttpClient
from devboot.adapters.shell.command import Commander, DefaultCommander
from devboot.adapters.shell.filesystem import DefaultFileSystem, FileSystem
from devboot.core.errors import DevbootError, InstallerError, PackageMappingNotFoundError
from devboot.core.models.package import PackageInfo, RequestedPackageInfo
from devboot.core.models.settings import BootstrapSettings
from devboot.core.models.system import SystemInfo
from devboot.core.services.compatibility import (
    CompatibilityReport,
    DefaultOSDetector,
    DefaultPrerequisiteChecker,
    OSDetector,
    check_compatibility,
    load_compatibility_config,
)
from devboot.core.services.installers import (
    BrewInstaller,
    GpgClient,
    GpgInstaller,
    ShellChanger,
    ShellInstaller,
)
from devboot.core.services.os_manager import OsManager
from devboot.core.services.package_resolver import PackageResolver, load_package_mappings
from devboot.core.services.pkgmanager import BrewPackageManager, PackageManager, create_package_manager
from devboot.core.services.privilege import DefaultEscalator, Escalator
from devboot.core.services.program_query import DefaultProgramQuery, ProgramQuery

logger = logging.getLogger(__name__)

STEP_OK = "ok"
STEP_SKIPPED = "skipped"
STEP_FAILED = "failed"


@dataclass
class Host:
    """Every collaborator that touches the machine, built once per run."""

    commander: Commander
    filesystem: FileSystem
    program_query: ProgramQuery
    escalator: Escalator
    os_manager: OsManager
    detector: OSDetector
    http_client: HttpClient = field(default_factory=DefaultHttpClient)

    @classmethod
    def default(cls) -> Host:
        commander = DefaultCommander()
        filesystem = DefaultFileSystem()
        program_query = DefaultProgramQuery(commander)
        escalator = DefaultEscalator(commander, program_query)
        return cls(
            commander=commander,
            filesystem=filesystem,
            program_query=program_query,
            escalator=escalator,
            os_manager=OsManager(commander, escalator, program_query, filesystem),
            detector=DefaultOSDetector(),
            http_client=DefaultHttpClient(),
        )


@dataclass
class StepResult:
    name: str
    status: str
    detail: str = ""

    def to_dict(self) -> dict:
        return {"name": self.name, "status": self.status, "detail": self.detail}


@dataclass
class BootstrapResult:
    system_info: SystemInfo = field(default_factory=SystemInfo)
    package_manager: str = ""
    steps: list[StepResult] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "error": self.error,
            "package_manager": self.package_manager,
            "system": self.system_info.to_dict(),
            "steps": [s.to_dict() for s in self.steps],
        }


# ── Building blocks ─────────────────────────────────────────────


def check_host(settings: BootstrapSettings, host: Host) -> CompatibilityReport:
    """Load the compatibility matrix and check this host against it.

    A broken compatibility file is reported like any other failure.
    """
    try:
        path = Path(settings.compatibility_file) if settings.compatibility_file else None
        config = load_compatibility_config(path)
    except DevbootError as e:
        return CompatibilityReport(system_info=host.detector.detect_system(), error=e)

    return check_compatibility(config, host.detector, DefaultPrerequisiteChecker(host.program_query))


def resolve_brew_path(settings: BootstrapSettings, host: Host) -> str | None:
    if settings.brew_path:
        return settings.brew_path
    if host.program_query.program_exists("brew"):
        return host.program_query.program_path("brew")
    return None


def select_package_manager(
    system_info: SystemInfo,
    settings: BootstrapSettings,
    host: Host,
    brew_path: str | None = None,
    cancel: threading.Event | None = None,
) -> PackageManager:
    """The host's system backend (Homebrew on macOS).

    ``cancel`` is handed to the backend so it aborts running package-manager
    processes.
    """
    if brew_path is None and system_info.os_name == "darwin":
        brew_path = resolve_brew_path(settings, host)
    return create_package_manager(
        system_info,
        host.commander,
        host.program_query,
        host.escalator,
        display_mode=settings.display_mode,
        brew_path=brew_path,
        cancel=cancel,
    )


# ── Driver ──────────────────────────────────────────────────────


def run_bootstrap(
    settings: BootstrapSettings,
    host: Host | None = None,
    cancel: threading.Event | None = None,
    on_step: Callable[[StepResult], None] | None = None,
) -> BootstrapResult:
    """Bootstrap the developer environment described by ``settings``.

    Args:
        settings: Merged devboot.yml + CLI settings.
        host: Collaborators; the real machine by default.
        cancel: Set to stop between steps (and abort running children).
        on_step: Called after each step, for progress output.
    """
    host = host or Host.default()
    result = BootstrapResult()

    def record(name: str, status: str, detail: str = "") -> None:
        step = StepResult(name, status, detail)
        result.steps.append(step)
        if on_step is not None:
            on_step(step)

    report = check_host(settings, host)
    result.system_info = report.system_info
    if report.error is not None:
        record("compatibility", STEP_FAILED, str(report.error))
        result.error = str(report.error)
        return result
    record("compatibility", STEP_OK, f"{report.system_info.os_name}/{report.system_info.distro_name}")

    try:
        brew_path = None
        if report.system_info.os_name == "darwin" or settings.install_shell_with_brew:
            _check_cancel(cancel, "brew")
            brew_path = _ensure_brew(settings, host, report.system_info, cancel, record)

        package_manager = select_package_manager(report.system_info, settings, host, brew_path, cancel)
        result.package_manager = package_manager.name

        _install_shell(settings, host, package_manager, brew_path, cancel, record)
        if settings.install_gpg:
            _install_gpg(settings, host, package_manager, cancel, record)
        else:
            record("gpg", STEP_SKIPPED, "disabled")
        _install_packages(settings, package_manager, report.system_info, cancel, record)
    except DevbootError as e:
        logger.debug("Bootstrap failed", exc_info=True)
        result.error = str(e)
        return result

    logger.info("Bootstrap finished (%d steps)", len(result.steps))
    return result


def _check_cancel(cancel: threading.Event | None, step: str) -> None:
    if cancel is not None and cancel.is_set():
        raise InstallerError(f"{step}: cancelled")


def _ensure_brew(settings, host: Host, system_info: SystemInfo, cancel, record) -> str:
    """Path of a usable ``brew``, installing Homebrew when allowed."""
    brew_path = resolve_brew_path(settings, host)
    if brew_path:
        record("brew", STEP_SKIPPED, f"found at {brew_path}")
        return brew_path

    installer = BrewInstaller(
        system_info,
        host.commander,
        host.os_manager,
        host.filesystem,
        host.http_client,
        display_mode=settings.display_mode,
        multi_user=settings.multi_user_system,
    )
    try:
        if not settings.install_brew and not installer.is_available():
            raise InstallerError("Homebrew not found and installing it is disabled")
        installed = installer.install(cancel)
        brew_path = installer.brew_path()
    except DevbootError as e:
        record("brew", STEP_FAILED, str(e))
        raise

    if installed:
        record("brew", STEP_OK, f"installed at {brew_path}")
    else:
        record("brew", STEP_SKIPPED, f"found at {brew_path}")
    return brew_path


def _install_shell(settings, host: Host, package_manager: PackageManager, brew_path, cancel, record) -> None:
    _check_cancel(cancel, "shell")

    shell_pm = package_manager
    if not (settings.install_shell_with_brew or isinstance(package_manager, BrewPackageManager)):
        brew_path = ""
    elif not isinstance(package_manager, BrewPackageManager):
        shell_pm = BrewPackageManager(
            host.commander, host.program_query, brew_path, settings.display_mode, cancel,
        )

    changer = ShellChanger(settings.shell, brew_path, host.os_manager, host.filesystem, host.escalator)
    installer = ShellInstaller(settings.shell, host.program_query, shell_pm, changer)

    try:
        if installer.is_available():
            record("shell", STEP_SKIPPED, f"{settings.shell} already installed")
        else:
            installer.install(cancel)
            record("shell", STEP_OK, f"installed {settings.shell} with {shell_pm.name}")
    except DevbootError as e:
        record("shell", STEP_FAILED, str(e))
        raise

    try:
        installer.set_as_default(cancel)
    except DevbootError as e:
        record("default-shell", STEP_FAILED, str(e))
        raise
    record("default-shell", STEP_OK, settings.shell)


def _install_gpg(settings, host: Host, package_manager: PackageManager, cancel, record) -> None:
    _check_cancel(cancel, "gpg")
    installer = GpgInstaller(host.os_manager, package_manager)
    try:
        if installer.is_available():
            record("gpg", STEP_SKIPPED, "gpg already available")
        else:
            installer.install(cancel)
            record("gpg", STEP_OK, f"installed with {package_manager.name}")
    except DevbootError as e:
        record("gpg", STEP_FAILED, str(e))
        raise

    if not settings.create_gpg_key:
        return

    _check_cancel(cancel, "gpg-key")
    client = GpgClient(host.os_manager, host.filesystem, host.commander)
    try:
        if client.keys_available():
            record("gpg-key", STEP_SKIPPED, "secret key already present")
            return
        key_id = client.create_key_pair(cancel)
    except DevbootError as e:
        record("gpg-key", STEP_FAILED, str(e))
        raise
    record("gpg-key", STEP_OK, key_id)


def _install_packages(settings, package_manager: PackageManager, system_info: SystemInfo, cancel, record) -> None:
    if not settings.packages:
        return

    try:
        path = Path(settings.package_map_file) if settings.package_map_file else None
        resolver = PackageResolver(load_package_mappings(path), package_manager.name, system_info)
    except DevbootError as e:
        record("package-map", STEP_FAILED, str(e))
        raise

    for package in settings.packages:
        _check_cancel(cancel, package.name)
        try:
            request = _resolve_package(resolver, package)
            if package_manager.is_installed(PackageInfo(name=request.name, type=request.type)):
                record(package.name, STEP_SKIPPED, "already installed")
                continue
            package_manager.install(request, cancel=cancel)
        except DevbootError as e:
            record(package.name, STEP_FAILED, str(e))
            raise

        detail = f"installed with {package_manager.name}"
        if request.name != package.name:
            detail = f"installed {request.name} with {package_manager.name}"
        record(package.name, STEP_OK, detail)


def _resolve_package(resolver: PackageResolver, package) -> RequestedPackageInfo:
    """Backend request for a settings package; unmapped names are used as-is."""
    try:
        request = resolver.resolve(package.name, package.version)
    except PackageMappingNotFoundError as e:
        logger.debug("%s, installing '%s' by its literal name", e, package.name)
        return package.to_request()
    if package.type and not request.type:
        return RequestedPackageInfo(request.name, request.version_constraints, package.type)
    return request
