"""
Tests for the in-memory fakes and the local filesystem and HTTP adapters.
"""

import io
import os
import urllib.error
import urllib.request

import pytest

from devboot.adapters.http import DefaultHttpClient
from devboot.adapters.mock import MockCommander, MockFileSystem, MockHttpClient, MockProgramQuery
from devboot.adapters.shell.command import OutputMode, with_capture_output, with_input_string
from devboot.adapters.shell.filesystem import DefaultFileSystem
from devboot.core.errors import DownloadError, ProgramNotFoundError, SpawnError

# ── MockCommander ────────────────────────────────────────────────────


class TestMockCommander:
    def test_default_success(self):
        mock = MockCommander()
        result = mock.run("apt", ["update"])
        assert result.ok
        assert mock.call_count == 1
        assert mock.argvs == [("apt", "update")]

    def test_exact_args_match_beats_command_match(self):
        mock = MockCommander()
        mock.set_response("sudo", stdout="any")
        mock.set_response("sudo", ["-n", "true"], exit_code=1)
        assert mock.run("sudo", ["-n", "true"]).exit_code == 1
        assert mock.run("sudo", ["apt"]).as_string() == "any"

    def test_set_failure(self):
        mock = MockCommander()
        mock.set_failure("dnf", ["install", "-y", "git"], exit_code=2, stderr="nope")
        result = mock.run("dnf", ["install", "-y", "git"])
        assert result.exit_code == 2
        assert result.stderr_string() == "nope"

    def test_spawn_error(self):
        mock = MockCommander()
        mock.set_spawn_error("brew")
        with pytest.raises(SpawnError):
            mock.run("brew", ["list"])
        assert mock.call_count == 1

    def test_records_options(self):
        mock = MockCommander()
        mock.run("tee", ["-a", "/etc/shells"], with_capture_output(), with_input_string("/bin/zsh\n"))
        call = mock.call_log[0]
        assert call.input == b"/bin/zsh\n"
        assert call.options.output_mode is OutputMode.CAPTURE

    def test_calls_to(self):
        mock = MockCommander()
        mock.run("id", ["-u"])
        mock.run("apt", ["update"])
        assert [c.args for c in mock.calls_to("apt")] == [("update",)]

    def test_reset(self):
        mock = MockCommander()
        mock.set_failure("apt")
        mock.run("apt")
        mock.reset()
        assert mock.call_count == 0
        assert mock.run("apt").ok


# ── MockProgramQuery ─────────────────────────────────────────────────


class TestMockProgramQuery:
    def test_add_and_lookup(self):
        query = MockProgramQuery()
        query.add_program("git", version_output="git version 2.43.0\n")
        assert query.program_exists("git")
        assert query.program_path("git") == "/usr/bin/git"
        assert query.program_version("git", lambda raw: raw.split()[2]) == "2.43.0"

    def test_missing_program(self):
        query = MockProgramQuery()
        assert not query.program_exists("zsh")
        with pytest.raises(ProgramNotFoundError):
            query.program_path("zsh")

    def test_remove(self):
        query = MockProgramQuery({"zsh": "/bin/zsh"})
        query.remove_program("zsh")
        assert not query.program_exists("zsh")


# ── MockFileSystem ───────────────────────────────────────────────────


class TestMockFileSystem:
    def test_files_and_executables(self):
        fs = MockFileSystem({"/etc/shells": "/bin/sh\n"})
        fs.add_executable("/bin/zsh")
        assert fs.read_file_contents("/etc/shells") == b"/bin/sh\n"
        assert fs.is_executable("/bin/zsh")
        assert not fs.is_executable("/etc/shells")

    def test_missing_file_raises(self):
        with pytest.raises(FileNotFoundError):
            MockFileSystem().read_file_contents("/nope")

    def test_remove_directory_removes_children(self):
        fs = MockFileSystem({"/a/b": "x", "/a/c": "y", "/ab": "z"})
        fs.create_directory("/a")
        fs.remove_path("/a")
        assert fs.files == {"/ab": b"z"}


# ── DefaultFileSystem ────────────────────────────────────────────────


class TestDefaultFileSystem:
    def test_write_and_read(self, tmp_path):
        fs = DefaultFileSystem()
        path = str(tmp_path / "file.txt")
        assert fs.write_file(path, b"hello") == 5
        assert fs.read_file_contents(path) == b"hello"
        assert fs.path_exists(path)

    def test_is_executable(self, tmp_path):
        fs = DefaultFileSystem()
        script = tmp_path / "run.sh"
        script.write_text("#!/bin/sh\n")
        assert not fs.is_executable(str(script))
        script.chmod(0o755)
        assert fs.is_executable(str(script))

    def test_directory_is_not_executable_file(self, tmp_path):
        assert not DefaultFileSystem().is_executable(str(tmp_path))

    def test_create_and_remove_directory(self, tmp_path):
        fs = DefaultFileSystem()
        target = str(tmp_path / "a" / "b")
        fs.create_directory(target)
        assert os.path.isdir(target)
        fs.remove_path(str(tmp_path / "a"))
        assert not fs.path_exists(target)

    def test_remove_missing_path_is_noop(self, tmp_path):
        DefaultFileSystem().remove_path(str(tmp_path / "missing"))

    def test_temporary_file_and_directory(self, tmp_path):
        fs = DefaultFileSystem()
        tmp_file = fs.create_temporary_file(str(tmp_path))
        tmp_dir = fs.create_temporary_directory(str(tmp_path))
        assert os.path.isfile(tmp_file)
        assert os.path.basename(tmp_file).startswith("tempfile-")
        assert tmp_file.endswith(".tmp")
        assert os.path.isdir(tmp_dir)


# ── HTTP clients ─────────────────────────────────────────────────────


class _FakeUrlResponse(io.BytesIO):
    def __init__(self, body: bytes, status: int = 200):
        super().__init__(body)
        self.status = status

    def getcode(self) -> int:
        return self.status


class TestMockHttpClient:
    def test_unknown_url_is_404(self):
        client = MockHttpClient()
        response = client.get("https://example.invalid/x")
        assert response.status == 404
        assert not response.ok
        assert client.requests == ["https://example.invalid/x"]

    def test_canned_response(self):
        client = MockHttpClient({"https://example.invalid/a": (200, "echo hi")})
        response = client.get("https://example.invalid/a")
        assert response.ok
        assert response.body == b"echo hi"

    def test_set_error_raises_download_error(self):
        client = MockHttpClient()
        client.set_error("https://example.invalid/a", "timed out")
        with pytest.raises(DownloadError, match="timed out"):
            client.get("https://example.invalid/a")


class TestDefaultHttpClient:
    def test_get_returns_body_and_sends_user_agent(self, monkeypatch):
        seen = {}

        def fake_urlopen(req, timeout):
            seen["agent"] = req.get_header("User-agent")
            seen["timeout"] = timeout
            return _FakeUrlResponse(b"#!/bin/bash\n")

        monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
        response = DefaultHttpClient().get("https://example.invalid/install.sh")

        assert response.ok
        assert response.body == b"#!/bin/bash\n"
        assert seen["agent"].startswith("devboot/")
        assert seen["timeout"] == 60.0

    def test_http_error_is_returned_as_response(self, monkeypatch):
        def fake_urlopen(req, timeout):
            raise urllib.error.HTTPError(req.full_url, 404, "Not Found", {}, io.BytesIO(b"missing"))

        monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
        response = DefaultHttpClient().get("https://example.invalid/x", timeout=5)

        assert response.status == 404
        assert not response.ok
        assert response.body == b"missing"

    def test_network_failure_raises_download_error(self, monkeypatch):
        def fake_urlopen(req, timeout):
            raise urllib.error.URLError("name resolution failed")

        monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
        with pytest.raises(DownloadError, match="name resolution failed"):
            DefaultHttpClient().get("https://example.invalid/x")
