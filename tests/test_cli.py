"""
Tests for CLI commands — compatibility, install, escalation, packages, and global options.

Commands run against a mocked ``Host`` injected through ``obj``.
"""

import json
import logging
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from devboot.adapters.mock import (
    MockCommander,
    MockFileSystem,
    MockHttpClient,
    MockProgramQuery,
    StubOSDetector,
    mock_escalator,
)
from devboot.core.models.package import DisplayMode
from devboot.core.models.settings import BootstrapSettings
from devboot.core.services.os_manager import OsManager
from devboot.core.use_cases.bootstrap import Host
from devboot.main import cli

pytestmark = pytest.mark.usefixtures("restore_logging")


def _host(current_user, detector=None, programs=("git", "curl", "apt", "zsh", "gpg", "gpg-agent"), root=True):
    commander = MockCommander()
    query = MockProgramQuery()
    for name in programs:
        query.add_program(name)
    query.versions["gpg"] = "gpg (GnuPG) 2.4.4\nlibgcrypt 1.10.3\n"
    query.versions["apt"] = "apt 2.4.8 (amd64)\n"
    fs = MockFileSystem({"/etc/passwd": f"{current_user}:x:1000:1000::/home/{current_user}:/usr/bin/zsh\n"})
    fs.add_executable("/usr/bin/zsh")
    escalator = mock_escalator(root=root)
    return Host(
        commander=commander,
        filesystem=fs,
        program_query=query,
        escalator=escalator,
        os_manager=OsManager(commander, escalator, query, fs, platform_name="linux", environ={}),
        detector=detector or StubOSDetector("linux", "ubuntu", "22.04"),
        http_client=MockHttpClient(),
    )


def _invoke(args, host, settings=None):
    obj = {"host": host}
    if settings is not None:
        obj["settings"] = settings
    return CliRunner().invoke(cli, args, obj=obj)


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "bootstrap a developer environment" in result.output
        for command in ("check-compatibility", "install", "escalation", "packages"):
            assert command in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "devboot" in result.output
        assert "0.1.0" in result.output

    def test_missing_config_file(self, tmp_path: Path, current_user):
        result = CliRunner().invoke(
            cli, ["--config", str(tmp_path / "missing.yml"), "check-compatibility"],
            obj={"host": _host(current_user)},
        )
        assert result.exit_code == 1
        assert "Settings file not found" in result.output


class TestCheckCompatibilityCommand:
    def test_compatible(self, current_user):
        result = _invoke(["check-compatibility"], _host(current_user), BootstrapSettings())
        assert result.exit_code == 0
        assert "ubuntu 22.04" in result.output
        assert "System is compatible" in result.output

    def test_missing_prerequisite_shows_hint(self, current_user):
        host = _host(current_user, programs=("git", "apt"))
        result = _invoke(["check-compatibility"], host, BootstrapSettings())
        assert result.exit_code == 1
        assert "missing prerequisites: curl" in result.output
        assert "Install curl with your distribution's package manager" in result.output

    def test_unsupported_os(self, current_user):
        host = _host(current_user, detector=StubOSDetector("windows", "", ""))
        result = _invoke(["check-compatibility"], host, BootstrapSettings())
        assert result.exit_code == 1
        assert "unsupported operating system: windows - Windows is not supported" in result.output

    def test_json(self, current_user):
        result = _invoke(["check-compatibility", "--json"], _host(current_user), BootstrapSettings())
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["compatible"] is True
        assert data["system"]["os_name"] == "linux"

    def test_json_incompatible_exits_1(self, current_user):
        host = _host(current_user, detector=StubOSDetector("linux", "ubuntu", "18.04"))
        result = _invoke(["check-compatibility", "--json"], host, BootstrapSettings())
        assert result.exit_code == 1
        assert json.loads(result.output)["compatible"] is False

    def test_compat_file_option(self, tmp_path: Path, current_user):
        compat = tmp_path / "compat.yml"
        compat.write_text(textwrap.dedent("""\
            operatingSystems:
              linux:
                supported: false
                notes: "Linux support is disabled here"
        """))
        result = _invoke(["check-compatibility", "--compat-file", str(compat)], _host(current_user), BootstrapSettings())
        assert result.exit_code == 1
        assert "Linux support is disabled here" in result.output


class TestInstallCommand:
    def test_nothing_to_do(self, current_user):
        host = _host(current_user)
        result = _invoke(["install"], host, BootstrapSettings())
        assert result.exit_code == 0, result.output
        assert "Done (apt)" in result.output
        assert host.commander.call_count == 0

    def test_flags_override_settings(self, current_user):
        host = _host(current_user, programs=("git", "curl", "apt", "zsh"))
        result = _invoke(["install", "--no-gpg", "--passthrough", "--json"], host, BootstrapSettings())
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["ok"] is True
        assert {"name": "gpg", "status": "skipped", "detail": "disabled"} in data["steps"]
        assert host.commander.call_count == 0

    def test_failure_exits_1(self, current_user):
        host = _host(current_user, programs=("git", "curl", "apt", "zsh"))
        host.commander.set_failure("apt", ["install", "-y", "gpg"])
        result = _invoke(["install"], host, BootstrapSettings())
        assert result.exit_code == 1
        assert "failed to install GPG client" in result.output

    def test_settings_file_is_used(self, tmp_path: Path, current_user):
        config = tmp_path / "devboot.yml"
        config.write_text("install_gpg: false\npackages:\n  - name: ripgrep\n")
        host = _host(current_user)
        host.commander.set_response("dpkg-query", stdout="git 1:2.34.1\n")
        result = CliRunner().invoke(cli, ["--config", str(config), "install"], obj={"host": host})
        assert result.exit_code == 0, result.output
        assert ("apt", "install", "-y", "ripgrep") in host.commander.argvs
        assert ("apt", "install", "-y", "gpg") not in host.commander.argvs

    def test_no_install_brew_flag(self, current_user):
        host = _host(current_user)
        result = _invoke(["install", "--shell-with-brew", "--no-install-brew", "--json"], host, BootstrapSettings())
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["error"] == "Homebrew not found and installing it is disabled"
        assert data["steps"][-1]["name"] == "brew"

    def test_display_mode_reaches_console_logging(self, current_user):
        result = _invoke(["install", "--plain"], _host(current_user), BootstrapSettings())
        assert result.exit_code == 0, result.output
        console = logging.getLogger().handlers[0]
        assert console.formatter.display_mode is DisplayMode.PLAIN

    def test_package_map_flag(self, tmp_path: Path, current_user):
        package_map = tmp_path / "packagemap.yaml"
        package_map.write_text("packages:\n  editor:\n    apt: {name: neovim}\n")
        host = _host(current_user)
        settings = BootstrapSettings(install_gpg=False, packages=[{"name": "editor"}])
        result = _invoke(["install", "--package-map", str(package_map)], host, settings)
        assert result.exit_code == 0, result.output
        assert ("apt", "install", "-y", "neovim") in host.commander.argvs


class TestEscalationCommand:
    def test_root(self, current_user):
        result = _invoke(["escalation", "--json"], _host(current_user, root=True))
        assert result.exit_code == 0
        assert json.loads(result.output) == {"root": True, "methods": ["none"]}

    def test_sudo(self, current_user):
        result = _invoke(["escalation"], _host(current_user, root=False))
        assert result.exit_code == 0
        assert "Running as root: no" in result.output
        assert "sudo" in result.output


class TestPackagesCommand:
    def test_list(self, current_user):
        host = _host(current_user)
        host.commander.set_response("dpkg-query", stdout="git 1:2.34.1\ncurl 7.81.0\n")
        result = _invoke(["packages", "list"], host, BootstrapSettings())
        assert result.exit_code == 0
        assert "apt: 2 packages installed" in result.output
        assert "git 1:2.34.1" in result.output

    def test_list_json(self, current_user):
        host = _host(current_user)
        host.commander.set_response("dpkg-query", stdout="git 1:2.34.1\n")
        result = _invoke(["packages", "list", "--json"], host, BootstrapSettings())
        assert json.loads(result.output) == {"manager": "apt", "packages": [{"name": "git", "version": "1:2.34.1"}]}

    def test_list_failure(self, current_user):
        host = _host(current_user)
        host.commander.set_failure("dpkg-query", stderr="dpkg-query: broken")
        result = _invoke(["packages", "list"], host, BootstrapSettings())
        assert result.exit_code == 1
        assert "dpkg-query: broken" in result.output

    def test_info(self, current_user):
        result = _invoke(["packages", "info", "--json"], _host(current_user), BootstrapSettings())
        assert result.exit_code == 0
        assert json.loads(result.output) == {"name": "apt", "version": "2.4.8"}

    def test_unsupported_host(self, current_user):
        host = _host(current_user, detector=StubOSDetector("linux", "gentoo", "2.15"))
        result = _invoke(["packages", "info"], host, BootstrapSettings())
        assert result.exit_code == 1
        assert "no package manager available for linux/gentoo" in result.output

    def test_resolve(self, current_user):
        result = _invoke(["packages", "resolve", "fd"], _host(current_user), BootstrapSettings())
        assert result.exit_code == 0, result.output
        assert "fd → fd-find [apt]" in result.output

    def test_resolve_json_with_version(self, current_user):
        result = _invoke(
            ["packages", "resolve", "git", "--version", ">=2.30", "--json"], _host(current_user), BootstrapSettings(),
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {
            "code": "git",
            "manager": "apt",
            "name": "git",
            "type": "",
            "version_constraints": ">=2.30",
        }

    def test_resolve_unknown_code(self, current_user):
        result = _invoke(["packages", "resolve", "no-such-tool"], _host(current_user), BootstrapSettings())
        assert result.exit_code == 1
        assert "no package mapping found for package 'no-such-tool'" in result.output
