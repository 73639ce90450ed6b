"""
Mock adapters — in-memory test doubles for every external effect.

``MockCommander`` records each invocation and answers from configured
responses (default: exit 0, empty output).  ``MockProgramQuery``,
``MockFileSystem`` and ``MockHttpClient`` keep their state in plain
dicts.  ``StubOSDetector`` reports a fixed host and ``mock_escalator``
builds a real escalator over its own mocks.  Nothing is registered
globally: tests build fresh instances and inject them.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from devboot.adapters.http import HttpClient, HttpResponse
from devboot.adapters.shell.command import Commander, Option, Options, Result, build_options
from devboot.adapters.shell.filesystem import FileSystem
from devboot.core.errors import DownloadError, ProgramNotFoundError, SpawnError
from devboot.core.models.system import SystemInfo
from devboot.core.services.compatibility.detector import OSDetector
from devboot.core.services.privilege import DefaultEscalator
from devboot.core.services.program_query import ProgramQuery, VersionExtractor


@dataclass(frozen=True)
class RecordedCall:
    """One ``Commander.run`` invocation as seen by the mock."""

    command: str
    args: tuple[str, ...]
    options: Options

    @property
    def input(self) -> bytes | None:
        return self.options.input

    @property
    def argv(self) -> tuple[str, ...]:
        return (self.command, *self.args)


class MockCommander(Commander):
    """Universal Commander double.

    Responses are matched on ``(command, args)`` first, then on
    ``command`` alone (registered with ``args=None``).
    """

    def __init__(self, default_stdout: str = "", default_exit_code: int = 0):
        self._default_stdout = default_stdout
        self._default_exit_code = default_exit_code
        self._responses: dict[tuple[str, tuple[str, ...] | None], tuple[bytes, bytes, int]] = {}
        self._spawn_errors: dict[str, str] = {}
        self._call_log: list[RecordedCall] = []

    @property
    def call_log(self) -> list[RecordedCall]:
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def argvs(self) -> list[tuple[str, ...]]:
        """Every call as ``(command, *args)``, in order."""
        return [c.argv for c in self._call_log]

    def calls_to(self, command: str) -> list[RecordedCall]:
        return [c for c in self._call_log if c.command == command]

    def set_response(
        self,
        command: str,
        args: Sequence[str] | None = None,
        *,
        stdout: str | bytes = "",
        stderr: str | bytes = "",
        exit_code: int = 0,
    ) -> None:
        key = (command, tuple(args) if args is not None else None)
        self._responses[key] = (_as_bytes(stdout), _as_bytes(stderr), exit_code)

    def set_failure(
        self,
        command: str,
        args: Sequence[str] | None = None,
        *,
        exit_code: int = 1,
        stderr: str = "mock failure",
    ) -> None:
        self.set_response(command, args, stderr=stderr, exit_code=exit_code)

    def set_spawn_error(self, command: str, reason: str = "executable not found") -> None:
        self._spawn_errors[command] = reason

    def run(self, command: str, args: Sequence[str] = (), *opts: Option) -> Result:
        args = tuple(str(a) for a in args)
        self._call_log.append(RecordedCall(command, args, build_options(*opts)))

        if command in self._spawn_errors:
            raise SpawnError(command, self._spawn_errors[command])

        response = self._responses.get((command, args)) or self._responses.get((command, None))
        if response is None:
            response = (_as_bytes(self._default_stdout), b"", self._default_exit_code)
        stdout, stderr, exit_code = response
        return Result(command=command, args=args, stdout=stdout, stderr=stderr, exit_code=exit_code)

    def reset(self) -> None:
        self._call_log.clear()
        self._responses.clear()
        self._spawn_errors.clear()


class MockProgramQuery(ProgramQuery):
    """Programs and their raw ``--version`` output held in dicts."""

    def __init__(
        self,
        programs: dict[str, str] | None = None,
        versions: dict[str, str] | None = None,
    ):
        self.programs: dict[str, str] = dict(programs or {})
        self.versions: dict[str, str] = dict(versions or {})

    def add_program(self, name: str, path: str | None = None, version_output: str | None = None) -> None:
        self.programs[name] = path or f"/usr/bin/{name}"
        if version_output is not None:
            self.versions[name] = version_output

    def remove_program(self, name: str) -> None:
        self.programs.pop(name, None)
        self.versions.pop(name, None)

    def program_path(self, program: str) -> str:
        if program not in self.programs:
            raise ProgramNotFoundError(program)
        return self.programs[program]

    def program_exists(self, program: str) -> bool:
        return program in self.programs

    def program_version(
        self,
        program: str,
        extractor: VersionExtractor,
        query_args: Sequence[str] = ("--version",),
    ) -> str:
        if program not in self.programs and program not in self.versions:
            raise ProgramNotFoundError(program)
        return extractor(self.versions.get(program, ""))


class MockFileSystem(FileSystem):
    """In-memory filesystem: ``files`` maps path → bytes."""

    def __init__(self, files: dict[str, bytes | str] | None = None):
        self.files: dict[str, bytes] = {p: _as_bytes(c) for p, c in (files or {}).items()}
        self.directories: set[str] = set()
        self.executables: set[str] = set()
        self._temp_counter = 0

    def add_executable(self, path: str, content: bytes = b"") -> None:
        self.files[path] = content
        self.executables.add(path)

    def path_exists(self, path: str) -> bool:
        return path in self.files or path in self.directories

    def is_executable(self, path: str) -> bool:
        return path in self.executables

    def read_file_contents(self, path: str) -> bytes:
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    def write_file(self, path: str, data: bytes) -> int:
        self.files[path] = bytes(data)
        return len(data)

    def create_file(self, path: str) -> str:
        self.files[path] = b""
        return path

    def create_directory(self, path: str, mode: int = 0o755) -> None:
        self.directories.add(path)

    def remove_path(self, path: str) -> None:
        self.files.pop(path, None)
        self.executables.discard(path)
        self.directories.discard(path)
        prefix = path.rstrip("/") + "/"
        for name in [p for p in self.files if p.startswith(prefix)]:
            del self.files[name]

    def create_temporary_file(self, dir: str | None = None, pattern: str = "tempfile-*.tmp") -> str:
        prefix, _, suffix = pattern.partition("*")
        self._temp_counter += 1
        path = f"{dir or '/tmp'}/{prefix}{self._temp_counter}{suffix}"
        self.files[path] = b""
        return path

    def create_temporary_directory(self, dir: str | None = None) -> str:
        self._temp_counter += 1
        path = f"{dir or '/tmp'}/tempdir-{self._temp_counter}"
        self.directories.add(path)
        return path


class MockHttpClient(HttpClient):
    """Answers GETs from ``responses`` (url → status, body); unknown URLs are 404."""

    def __init__(self, responses: dict[str, tuple[int, bytes | str]] | None = None):
        self.responses: dict[str, tuple[int, bytes]] = {
            url: (status, _as_bytes(body)) for url, (status, body) in (responses or {}).items()
        }
        self.errors: dict[str, str] = {}
        self.requests: list[str] = []

    def set_response(self, url: str, body: bytes | str, status: int = 200) -> None:
        self.responses[url] = (status, _as_bytes(body))

    def set_error(self, url: str, reason: str = "connection refused") -> None:
        self.errors[url] = reason

    def get(self, url: str, timeout: float | None = None) -> HttpResponse:
        self.requests.append(url)
        if url in self.errors:
            raise DownloadError(f"failed to fetch {url}: {self.errors[url]}")
        status, body = self.responses.get(url, (404, b""))
        return HttpResponse(url=url, status=status, body=body)


class StubOSDetector(OSDetector):
    """Reports a fixed host."""

    def __init__(self, os_name="linux", distro_name="ubuntu", distro_version="22.04", arch="amd64"):
        self.os_name = os_name
        self.distro_name = distro_name
        self.distro_version = distro_version
        self.arch = arch

    def detect_system(self) -> SystemInfo:
        return SystemInfo(
            os_name=self.os_name,
            distro_name=self.distro_name,
            distro_version=self.distro_version,
            arch=self.arch,
        )


def mock_escalator(root: bool = False, sudo: bool = True, doas: bool = False) -> DefaultEscalator:
    """A real ``DefaultEscalator`` whose root and sudo checks answer from its own mocks.

    The escalator's ``MockCommander`` is private, so a commander shared
    with a backend only records that backend's calls.
    """
    commander = MockCommander()
    commander.set_response("id", ["-u"], stdout="0\n" if root else "1000\n")
    query = MockProgramQuery()
    query.add_program("id")
    if sudo:
        query.add_program("sudo")
    if doas:
        query.add_program("doas")
    return DefaultEscalator(commander, query)


def _as_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value
