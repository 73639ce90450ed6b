"""
Commander — the single place where external programs are spawned.

Every process devboot starts (package managers, ``id``, ``sudo -n true``,
``tee``, ``usermod`` ...) goes through ``Commander.run``.  Options are
composed from small factory functions::

    commander.run("dpkg-query", ["-W"], with_capture_output())
    commander.run("tee", ["-a", "/etc/shells"], with_input_string("/bin/zsh\\n"))

A non-zero exit is NOT an exception: it is reported in
``Result.exit_code`` and callers decide (``result.check()`` raises).
Only a failure to start the process raises ``SpawnError``.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import IO

from devboot.core.errors import (
    CommandCancelledError,
    CommandFailedError,
    CommandTimeoutError,
    InvalidInputError,
    SpawnError,
)

logger = logging.getLogger(__name__)

# How often a running child is checked for cancellation / deadline.
_POLL_INTERVAL = 0.1
_READ_CHUNK = 4096
_DEFAULT_GRACE_PERIOD = 5.0


class OutputMode(str, Enum):
    """The single effective output mode of one invocation."""

    STREAM = "stream"
    CAPTURE = "capture"
    DISCARD = "discard"
    INTERACTIVE = "interactive"
    INTERACTIVE_CAPTURE = "interactive_capture"


@dataclass
class Options:
    """Configuration for one ``Commander.run`` call.

    Built by applying ``Option`` functions in order; later options win.
    """

    env: dict[str, str] = field(default_factory=dict)
    cwd: str | None = None
    input: bytes | None = None
    capture_output: bool = False
    discard_output: bool = False
    stream_output: bool = False
    interactive: bool = False
    timeout: float | None = None
    cancel: threading.Event | None = None
    grace_period: float = _DEFAULT_GRACE_PERIOD

    @property
    def output_mode(self) -> OutputMode:
        """Canonicalise the flags: capture > discard > stream."""
        if self.capture_output:
            return OutputMode.INTERACTIVE_CAPTURE if self.interactive else OutputMode.CAPTURE
        if self.discard_output:
            return OutputMode.DISCARD
        if self.interactive:
            return OutputMode.INTERACTIVE
        return OutputMode.STREAM


Option = Callable[[Options], None]


def build_options(*opts: Option) -> Options:
    """Apply option functions to a fresh ``Options``."""
    options = Options()
    for opt in opts:
        opt(options)
    return options


# ── Option factories ────────────────────────────────────────────


def empty_option() -> Option:
    """An option that changes nothing (placeholder for conditional options)."""
    return lambda o: None


def with_capture_output() -> Option:
    def apply(o: Options) -> None:
        o.capture_output = True
    return apply


def with_discard_output() -> Option:
    def apply(o: Options) -> None:
        o.discard_output = True
    return apply


def with_stream_output() -> Option:
    def apply(o: Options) -> None:
        o.stream_output = True
    return apply


def with_interactive() -> Option:
    """Connect the child straight to the terminal, nothing captured."""
    def apply(o: Options) -> None:
        o.interactive = True
        o.capture_output = False
    return apply


def with_interactive_capture() -> Option:
    """Connect stdin to the terminal and tee stdout/stderr into the result."""
    def apply(o: Options) -> None:
        o.interactive = True
        o.capture_output = True
    return apply


def with_input(data: bytes) -> Option:
    def apply(o: Options) -> None:
        o.input = bytes(data)
    return apply


def with_input_string(text: str) -> Option:
    return with_input(text.encode("utf-8"))


def with_env(env: dict[str, str]) -> Option:
    def apply(o: Options) -> None:
        o.env.update(env)
    return apply


def with_env_var(key: str, value: str) -> Option:
    def apply(o: Options) -> None:
        o.env[key] = value
    return apply


def with_dir(path: str) -> Option:
    def apply(o: Options) -> None:
        o.cwd = path
    return apply


def with_timeout(seconds: float) -> Option:
    def apply(o: Options) -> None:
        o.timeout = seconds
    return apply


def with_cancel(event: threading.Event, grace_period: float = _DEFAULT_GRACE_PERIOD) -> Option:
    """Abort the child when ``event`` is set (SIGTERM, then SIGKILL after grace)."""
    def apply(o: Options) -> None:
        o.cancel = event
        o.grace_period = grace_period
    return apply


# ── Result ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Result:
    """Outcome of one process invocation."""

    command: str
    args: tuple[str, ...] = ()
    stdout: bytes = b""
    stderr: bytes = b""
    exit_code: int = 0
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def command_line(self) -> str:
        return " ".join((self.command, *self.args))

    def as_string(self) -> str:
        """Stdout decoded as UTF-8 and trimmed."""
        return self.stdout.decode("utf-8", errors="replace").strip()

    def stderr_string(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")

    def check(self) -> Result:
        """Raise ``CommandFailedError`` unless the child exited zero."""
        if not self.ok:
            raise CommandFailedError(
                self.command_line, self.exit_code, self.stderr_string().strip(),
            )
        return self


# ── Commander ───────────────────────────────────────────────────


class Commander(ABC):
    """Runs external programs.  Substituted by ``MockCommander`` in tests."""

    @abstractmethod
    def run(self, command: str, args: Sequence[str] = (), *opts: Option) -> Result:
        """Run ``command`` with ``args`` and return its ``Result``.

        Raises:
            InvalidInputError: ``command`` is empty.
            SpawnError: the process could not be started.
            CommandCancelledError / CommandTimeoutError: aborted mid-run.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


class DefaultCommander(Commander):
    """``subprocess`` backed implementation."""

    def run(self, command: str, args: Sequence[str] = (), *opts: Option) -> Result:
        if not command:
            raise InvalidInputError("command cannot be empty")

        args = [str(a) for a in args]
        options = build_options(*opts)
        mode = options.output_mode
        logger.debug("Running command: %s %s (mode=%s)", command, " ".join(args), mode.value)

        env = None
        if options.env:
            env = os.environ.copy()
            env.update(options.env)

        if options.input is not None:
            stdin = subprocess.PIPE
        elif mode in (OutputMode.STREAM, OutputMode.INTERACTIVE, OutputMode.INTERACTIVE_CAPTURE):
            stdin = None
        else:
            stdin = subprocess.DEVNULL

        if mode in (OutputMode.CAPTURE, OutputMode.INTERACTIVE_CAPTURE):
            out_target = subprocess.PIPE
        elif mode is OutputMode.DISCARD:
            out_target = subprocess.DEVNULL
        else:
            out_target = None

        # Popen reports a missing cwd as FileNotFoundError too
        if options.cwd is not None and not os.path.isdir(options.cwd):
            raise SpawnError(command, f"working directory not found: {options.cwd}")

        start = time.monotonic()
        try:
            proc = subprocess.Popen(
                [command, *args],
                stdin=stdin,
                stdout=out_target,
                stderr=out_target,
                env=env,
                cwd=options.cwd,
            )
        except FileNotFoundError as e:
            raise SpawnError(command, f"executable not found: {e.filename or command}") from e
        except PermissionError as e:
            raise SpawnError(command, "permission denied") from e
        except OSError as e:
            raise SpawnError(command, str(e)) from e

        deadline = start + options.timeout if options.timeout else None
        if mode is OutputMode.INTERACTIVE_CAPTURE:
            stdout, stderr = self._tee(proc, command, options, deadline)
        else:
            stdout, stderr = self._communicate(proc, command, options, deadline)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.debug("Command %s exited with code %d (%d ms)", command, proc.returncode, elapsed_ms)

        return Result(
            command=command,
            args=tuple(args),
            stdout=stdout,
            stderr=stderr,
            exit_code=proc.returncode,
            duration_ms=elapsed_ms,
        )

    # ── Internals ──

    def _communicate(
        self,
        proc: subprocess.Popen,
        command: str,
        options: Options,
        deadline: float | None,
    ) -> tuple[bytes, bytes]:
        pending_input = options.input
        poll = _POLL_INTERVAL if (options.cancel is not None or deadline is not None) else None
        while True:
            try:
                stdout, stderr = proc.communicate(input=pending_input, timeout=poll)
                return stdout or b"", stderr or b""
            except subprocess.TimeoutExpired:
                # communicate() may be retried, but input can only be sent once
                pending_input = None
                self._check_abort(proc, command, options, deadline)

    def _tee(
        self,
        proc: subprocess.Popen,
        command: str,
        options: Options,
        deadline: float | None,
    ) -> tuple[bytes, bytes]:
        out_buf = bytearray()
        err_buf = bytearray()
        pumps = [
            threading.Thread(target=_pump, args=(proc.stdout, sys.stdout, out_buf), daemon=True),
            threading.Thread(target=_pump, args=(proc.stderr, sys.stderr, err_buf), daemon=True),
        ]
        for pump in pumps:
            pump.start()

        if proc.stdin is not None:
            try:
                proc.stdin.write(options.input or b"")
            except BrokenPipeError:
                logger.debug("Child %s closed stdin early", command)
            finally:
                proc.stdin.close()

        poll = _POLL_INTERVAL if (options.cancel is not None or deadline is not None) else None
        while True:
            try:
                proc.wait(timeout=poll)
                break
            except subprocess.TimeoutExpired:
                # the pumps own the pipes, so only wait on abort
                self._check_abort(proc, command, options, deadline, drain=False)

        for pump in pumps:
            pump.join()
        return bytes(out_buf), bytes(err_buf)

    def _check_abort(
        self,
        proc: subprocess.Popen,
        command: str,
        options: Options,
        deadline: float | None,
        drain: bool = True,
    ) -> None:
        if options.cancel is not None and options.cancel.is_set():
            logger.info("Cancelling %s (pid %d)", command, proc.pid)
            _terminate(proc, options.grace_period, drain)
            raise CommandCancelledError(f"command '{command}' was cancelled")
        if deadline is not None and time.monotonic() >= deadline:
            logger.warning("Command %s timed out after %ss", command, options.timeout)
            _terminate(proc, options.grace_period, drain)
            raise CommandTimeoutError(f"command '{command}' timed out after {options.timeout}s")


def _terminate(proc: subprocess.Popen, grace_period: float, drain: bool = True) -> None:
    """SIGTERM, wait ``grace_period``, then SIGKILL."""
    finish = proc.communicate if drain else proc.wait
    proc.terminate()
    try:
        finish(timeout=grace_period)
    except subprocess.TimeoutExpired:
        # a grandchild may still hold the pipes open
        proc.kill()
        proc.wait()


def _pump(source: IO[bytes] | None, sink: IO[str], buffer: bytearray) -> None:
    """Copy ``source`` into ``buffer`` and through to ``sink`` until EOF."""
    if source is None:
        return
    raw_sink = getattr(sink, "buffer", None)
    fd = source.fileno()
    while True:
        chunk = os.read(fd, _READ_CHUNK)
        if not chunk:
            break
        buffer.extend(chunk)
        if raw_sink is not None:
            raw_sink.write(chunk)
            raw_sink.flush()
        else:
            sink.write(chunk.decode("utf-8", errors="replace"))
            sink.flush()
    source.close()
