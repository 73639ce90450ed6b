"""
Tests for the bootstrap use case — the whole run against a mocked host.
"""

import threading

import pytest

from devboot.adapters.mock import (
    MockCommander,
    MockFileSystem,
    MockHttpClient,
    MockProgramQuery,
    StubOSDetector,
    mock_escalator,
)
from devboot.core.models.settings import BootstrapSettings, RequestedPackage
from devboot.core.services.installers.brew import INSTALL_SCRIPT_URL, LINUX_BREW_PATH
from devboot.core.services.os_manager import OsManager
from devboot.core.use_cases.bootstrap import (
    STEP_FAILED,
    STEP_OK,
    STEP_SKIPPED,
    Host,
    check_host,
    resolve_brew_path,
    run_bootstrap,
    select_package_manager,
)

GPG_VERSION_OUTPUT = "gpg (GnuPG) 2.4.4\nlibgcrypt 1.10.3\n"
BREW = "/opt/homebrew/bin/brew"
LINUX_BREW_ZSH = "/home/linuxbrew/.linuxbrew/bin/zsh"


class _BrewScriptCommander(MockCommander):
    """Creates the brew binary when the Homebrew install script runs."""

    filesystem: MockFileSystem | None = None

    def run(self, command, args=(), *opts):
        result = super().run(command, args, *opts)
        if command == "/bin/bash" and self.filesystem is not None:
            self.filesystem.add_executable(LINUX_BREW_PATH)
            self.filesystem.add_executable(LINUX_BREW_ZSH)
        return result


def _host(
    current_user,
    login_shell="/usr/bin/zsh",
    detector=None,
    programs=("git", "curl", "apt", "zsh", "gpg", "gpg-agent"),
    root=True,
    platform_name="linux",
    environ=None,
    commander=None,
):
    commander = commander or MockCommander()
    query = MockProgramQuery()
    for name in programs:
        query.add_program(name)
    if "gpg" in programs:
        query.versions["gpg"] = GPG_VERSION_OUTPUT

    fs = MockFileSystem({
        "/etc/passwd": f"root:x:0:0:root:/root:/bin/bash\n{current_user}:x:1000:1000::/home/{current_user}:{login_shell}\n",
        "/etc/shells": "/bin/sh\n/bin/bash\n/usr/bin/zsh\n",
    })
    fs.add_executable("/usr/bin/zsh")

    escalator = mock_escalator(root=root)
    return Host(
        commander=commander,
        filesystem=fs,
        program_query=query,
        escalator=escalator,
        os_manager=OsManager(commander, escalator, query, fs, platform_name=platform_name, environ=environ or {}),
        detector=detector or StubOSDetector("linux", "ubuntu", "22.04"),
        http_client=MockHttpClient(),
    )


def _steps(result):
    return [(s.name, s.status) for s in result.steps]


class TestCheckHost:
    def test_compatible(self, current_user):
        report = check_host(BootstrapSettings(), _host(current_user))
        assert report.compatible
        assert report.system_info.prerequisites.available == ["git", "curl", "apt"]

    def test_broken_compat_file_still_reports_host(self, current_user, tmp_path):
        settings = BootstrapSettings(compatibility_file=str(tmp_path / "missing.yml"))
        report = check_host(settings, _host(current_user))
        assert not report.compatible
        assert "not found" in str(report.error)
        assert report.system_info.distro_name == "ubuntu"


class TestSelection:
    def test_linux_ignores_brew(self, current_user):
        host = _host(current_user, programs=("brew",))
        pm = select_package_manager(host.detector.detect_system(), BootstrapSettings(), host)
        assert pm.name == "apt"

    def test_darwin_uses_brew_from_path(self, current_user):
        host = _host(current_user, detector=StubOSDetector("darwin", "mac", "14.2"))
        host.program_query.add_program("brew", BREW)
        pm = select_package_manager(host.detector.detect_system(), BootstrapSettings(), host)
        assert pm.name == "brew"
        assert pm.brew_path == BREW

    def test_settings_brew_path_wins(self, current_user):
        host = _host(current_user)
        host.program_query.add_program("brew", BREW)
        settings = BootstrapSettings(brew_path="/usr/local/bin/brew")
        assert resolve_brew_path(settings, host) == "/usr/local/bin/brew"
        assert resolve_brew_path(BootstrapSettings(), host) == BREW


class TestRunBootstrap:
    def test_everything_present_runs_nothing(self, current_user):
        host = _host(current_user)
        result = run_bootstrap(BootstrapSettings(), host)
        assert result.ok
        assert result.package_manager == "apt"
        assert _steps(result) == [
            ("compatibility", STEP_OK),
            ("shell", STEP_SKIPPED),
            ("default-shell", STEP_OK),
            ("gpg", STEP_SKIPPED),
        ]
        assert host.commander.call_count == 0

    def test_full_run_order(self, current_user):
        host = _host(current_user, login_shell="/bin/bash", programs=("git", "curl", "apt", "zsh"))
        host.commander.set_response("dpkg-query", stdout="git 1:2.34.1-1ubuntu1.9\n")
        settings = BootstrapSettings(packages=[RequestedPackage(name="git"), RequestedPackage(name="ripgrep")])

        result = run_bootstrap(settings, host)

        assert result.ok, result.error
        assert _steps(result) == [
            ("compatibility", STEP_OK),
            ("shell", STEP_SKIPPED),
            ("default-shell", STEP_OK),
            ("gpg", STEP_OK),
            ("git", STEP_SKIPPED),
            ("ripgrep", STEP_OK),
        ]
        assert host.commander.argvs == [
            ("usermod", "-s", "/usr/bin/zsh", current_user),
            ("apt", "update"),
            ("apt", "install", "-y", "gpg"),
            ("dpkg-query", "-W", "-f=${Package} ${Version}\n"),
            ("dpkg-query", "-W", "-f=${Package} ${Version}\n"),
            ("apt", "update"),
            ("apt", "install", "-y", "ripgrep"),
        ]

    def test_incompatible_host_stops_before_installing(self, current_user):
        host = _host(current_user, detector=StubOSDetector("windows", "", ""))
        result = run_bootstrap(BootstrapSettings(), host)
        assert not result.ok
        assert result.error == "unsupported operating system: windows - Windows is not supported"
        assert _steps(result) == [("compatibility", STEP_FAILED)]
        assert host.commander.call_count == 0

    def test_install_failure_stops_run(self, current_user):
        host = _host(current_user, programs=("git", "curl", "apt", "zsh"))
        host.commander.set_failure("apt", ["install", "-y", "gpg"], stderr="E: Unable to locate package gpg")
        settings = BootstrapSettings(packages=[RequestedPackage(name="ripgrep")])

        result = run_bootstrap(settings, host)

        assert not result.ok
        assert "failed to install GPG client" in result.error
        assert _steps(result)[-1] == ("gpg", STEP_FAILED)
        assert ("apt", "install", "-y", "ripgrep") not in host.commander.argvs

    def test_gpg_disabled(self, current_user):
        result = run_bootstrap(BootstrapSettings(install_gpg=False), _host(current_user))
        assert ("gpg", STEP_SKIPPED) in _steps(result)
        assert result.steps[-1].detail == "disabled"

    def test_gpg_key_created(self, current_user):
        host = _host(current_user, environ={"GPG_TTY": "/dev/pts/0"})
        host.commander.set_response("gpg", ["--list-secret-keys", "--keyid-format", "LONG"], stdout="")
        host.commander.set_response(
            "gpg",
            ["--gen-key", "--pinentry-mode", "loopback", "--default-new-key-algo", "nistp256"],
            stderr="gpg: key 3AA5C34371567BD2 marked as ultimately trusted\ngpg: done\ngpg: ok\n",
        )
        result = run_bootstrap(BootstrapSettings(create_gpg_key=True), host)
        assert result.ok, result.error
        assert result.steps[-1].name == "gpg-key"
        assert result.steps[-1].detail == "3AA5C34371567BD2"

    def test_shell_with_brew_requires_brew(self, current_user):
        settings = BootstrapSettings(install_shell_with_brew=True, install_brew=False)
        host = _host(current_user)
        result = run_bootstrap(settings, host)
        assert not result.ok
        assert result.error == "Homebrew not found and installing it is disabled"
        assert _steps(result)[-1] == ("brew", STEP_FAILED)
        assert host.http_client.requests == []

    def test_brew_at_default_location_is_put_on_path(self, current_user):
        environ = {"PATH": "/usr/bin"}
        host = _host(current_user, programs=("git", "curl", "apt"), environ=environ)
        host.filesystem.add_executable(LINUX_BREW_PATH)
        host.filesystem.add_executable(LINUX_BREW_ZSH)
        settings = BootstrapSettings(install_shell_with_brew=True, install_gpg=False)

        result = run_bootstrap(settings, host)

        assert result.ok, result.error
        assert _steps(result) == [
            ("compatibility", STEP_OK),
            ("brew", STEP_SKIPPED),
            ("shell", STEP_OK),
            ("default-shell", STEP_OK),
            ("gpg", STEP_SKIPPED),
        ]
        assert result.package_manager == "apt"
        assert environ["PATH"] == "/home/linuxbrew/.linuxbrew/bin:/usr/bin"
        assert host.commander.argvs == [
            (LINUX_BREW_PATH, "install", "zsh"),
            ("tee", "-a", "/etc/shells"),
            ("usermod", "-s", LINUX_BREW_ZSH, current_user),
        ]

    def test_missing_brew_is_installed(self, current_user):
        commander = _BrewScriptCommander()
        host = _host(current_user, programs=("git", "curl", "apt"), commander=commander)
        commander.filesystem = host.filesystem
        host.http_client.set_response(INSTALL_SCRIPT_URL, "#!/bin/bash\n")
        settings = BootstrapSettings(install_shell_with_brew=True, install_gpg=False)

        result = run_bootstrap(settings, host)

        assert result.ok, result.error
        assert _steps(result)[1] == ("brew", STEP_OK)
        assert result.steps[1].detail == f"installed at {LINUX_BREW_PATH}"
        assert host.commander.argvs[:3] == [
            ("chmod", "755", "/tmp/brew-install-1.sh"),
            ("/bin/bash", "/tmp/brew-install-1.sh"),
            (LINUX_BREW_PATH, "--version"),
        ]
        assert (LINUX_BREW_PATH, "install", "zsh") in host.commander.argvs

    def test_brew_install_failure_stops_run(self, current_user):
        host = _host(current_user, detector=StubOSDetector("darwin", "mac", "14.2", "arm64"), platform_name="darwin")
        result = run_bootstrap(BootstrapSettings(), host)
        assert not result.ok
        assert "HTTP status 404" in result.error
        assert _steps(result) == [("compatibility", STEP_OK), ("brew", STEP_FAILED)]

    def test_darwin_brew_shell(self, current_user):
        host = _host(
            current_user,
            detector=StubOSDetector("darwin", "mac", "14.2", "arm64"),
            programs=("git", "curl"),
            root=False,
            platform_name="darwin",
        )
        host.program_query.add_program("brew", BREW)
        host.filesystem.add_executable("/opt/homebrew/bin/zsh")
        host.commander.set_response("dscl", stdout="UserShell: /bin/zsh\n")

        result = run_bootstrap(BootstrapSettings(install_gpg=False), host)

        assert result.ok, result.error
        assert result.package_manager == "brew"
        assert ("brew", STEP_SKIPPED) in _steps(result)
        assert host.commander.argvs == [
            (BREW, "install", "zsh"),
            ("dscl", ".", "-read", f"/Users/{current_user}", "UserShell"),
            ("sudo", "tee", "-a", "/etc/shells"),
            ("sudo", "dscl", ".", "-create", f"/Users/{current_user}", "UserShell", "/opt/homebrew/bin/zsh"),
        ]

    def test_cancelled_before_first_install(self, current_user):
        host = _host(current_user)
        cancel = threading.Event()
        cancel.set()
        result = run_bootstrap(BootstrapSettings(), host, cancel=cancel)
        assert result.error == "shell: cancelled"
        assert host.commander.call_count == 0

    def test_on_step_callback(self, current_user):
        seen = []
        run_bootstrap(BootstrapSettings(install_gpg=False), _host(current_user), on_step=seen.append)
        assert [s.name for s in seen] == ["compatibility", "shell", "default-shell", "gpg"]

    @pytest.mark.parametrize("distro_version", ["18.04", "focal"])
    def test_ubuntu_version_gate(self, current_user, distro_version):
        host = _host(current_user, detector=StubOSDetector("linux", "ubuntu", distro_version))
        result = run_bootstrap(BootstrapSettings(), host)
        assert not result.ok
        assert _steps(result) == [("compatibility", STEP_FAILED)]

    def test_to_dict(self, current_user):
        data = run_bootstrap(BootstrapSettings(), _host(current_user)).to_dict()
        assert data["ok"] is True
        assert data["package_manager"] == "apt"
        assert data["steps"][0] == {"name": "compatibility", "status": "ok", "detail": "linux/ubuntu"}

    def test_cancel_event_reaches_package_manager_commands(self, current_user):
        host = _host(current_user, programs=("git", "curl", "apt", "zsh"))
        cancel = threading.Event()
        settings = BootstrapSettings(packages=[RequestedPackage(name="ripgrep")])

        result = run_bootstrap(settings, host, cancel=cancel)

        assert result.ok, result.error
        apt_calls = host.commander.calls_to("apt") + host.commander.calls_to("dpkg-query")
        assert len(apt_calls) == 5
        assert all(c.options.cancel is cancel for c in apt_calls)


class TestPackageResolution:
    def _run(self, current_user, *packages, **overrides):
        host = _host(current_user, programs=("git", "curl", "apt", "zsh"))
        settings = BootstrapSettings(
            install_gpg=False, packages=[RequestedPackage(name=p) for p in packages], **overrides,
        )
        return host, run_bootstrap(settings, host)

    def test_generic_code_resolved_through_package_map(self, current_user):
        host, result = self._run(current_user, "fd")
        assert result.ok, result.error
        assert ("apt", "install", "-y", "fd-find") in host.commander.argvs
        assert result.steps[-1].name == "fd"
        assert result.steps[-1].detail == "installed fd-find with apt"

    def test_unmapped_package_installed_by_name(self, current_user):
        host, result = self._run(current_user, "jq")
        assert result.ok, result.error
        assert ("apt", "install", "-y", "jq") in host.commander.argvs
        assert result.steps[-1].detail == "installed with apt"

    def test_missing_distro_mapping_fails(self, current_user, tmp_path):
        path = tmp_path / "packagemap.yaml"
        path.write_text("packages:\n  tool:\n    apt:\n      name:\n        debian: tool-deb\n")
        host, result = self._run(current_user, "tool", package_map_file=str(path))
        assert not result.ok
        assert "requires distro-specific mapping for 'ubuntu'" in result.error
        assert _steps(result)[-1] == ("tool", STEP_FAILED)
        assert host.commander.calls_to("apt") == []

    def test_unreadable_package_map_fails(self, current_user, tmp_path):
        _, result = self._run(current_user, "git", package_map_file=str(tmp_path / "missing.yaml"))
        assert not result.ok
        assert _steps(result)[-1] == ("package-map", STEP_FAILED)

    def test_package_map_not_loaded_without_packages(self, current_user, tmp_path):
        _, result = self._run(current_user, package_map_file=str(tmp_path / "missing.yaml"))
        assert result.ok, result.error
