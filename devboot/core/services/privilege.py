"""
Privilege escalation — decide how a command gets root authority.

Strategy, in order:

    1. Already root (containers, CI)   → run as-is         (``none``)
    2. Passwordless sudo usable        → ``sudo cmd ...``  (``sudo``)
    3. Passwordless doas usable        → ``doas cmd ...``  (``doas``)
    4. Nothing usable                  → run as-is, warn   (``direct``)

Each escalator is an ``EscalationCandidate`` (probe + wrap), so adding
another tool (``run0``, ``pkexec``) is one more entry in the list.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from devboot.adapters.shell.command import Commander, with_capture_output
from devboot.core.errors import DevbootError, EscalationError, InvalidInputError
from devboot.core.models.privilege import EscalationMethod, EscalationResult
from devboot.core.services.program_query import ProgramQuery

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EscalationCandidate:
    """One escalation tool: whether it is usable now, and how it wraps a command."""

    method: EscalationMethod
    probe: Callable[[], bool]
    wrap: Callable[[str, Sequence[str]], EscalationResult]


class Escalator(ABC):
    @abstractmethod
    def is_running_as_root(self) -> bool:
        """True if the current process has uid 0."""

    @abstractmethod
    def escalate(self, command: str, args: Sequence[str] = ()) -> EscalationResult:
        """Wrap ``command args`` so it runs with root authority."""

    @abstractmethod
    def available_methods(self) -> list[EscalationMethod]:
        """Escalation methods usable on this host, ``direct`` always last."""


class DefaultEscalator(Escalator):
    """Probes ``id -u``, ``sudo -n true`` and ``doas -n true`` via the Commander."""

    def __init__(
        self,
        commander: Commander,
        program_query: ProgramQuery,
        extra_candidates: Sequence[EscalationCandidate] = (),
    ):
        self._commander = commander
        self._program_query = program_query
        self._candidates: list[EscalationCandidate] = [
            self._tool_candidate(EscalationMethod.SUDO, "sudo"),
            self._tool_candidate(EscalationMethod.DOAS, "doas"),
            *extra_candidates,
        ]

    @property
    def candidates(self) -> list[EscalationCandidate]:
        return list(self._candidates)

    def is_running_as_root(self) -> bool:
        """Uses ``id -u`` rather than ``os.geteuid`` so it can be faked and proxied.

        Raises:
            EscalationError: ``id`` is missing or could not be executed.
        """
        if not self._program_query.program_exists("id"):
            raise EscalationError("'id' command not available on this system")

        try:
            result = self._commander.run("id", ["-u"], with_capture_output())
        except DevbootError as e:
            raise EscalationError(f"failed to execute 'id -u': {e}") from e

        if not result.ok:
            raise EscalationError(
                f"'id -u' exited with code {result.exit_code}: {result.stderr_string().strip()}"
            )
        return result.as_string() == "0"

    def escalate(self, command: str, args: Sequence[str] = ()) -> EscalationResult:
        if not command:
            raise InvalidInputError("base command cannot be empty")

        args = tuple(args)
        logger.debug("Escalating command: %s %s", command, " ".join(args))

        if self._is_root_or_assume_not():
            logger.debug("Already running as root")
            return EscalationResult(EscalationMethod.NONE, command, args, False)

        for candidate in self._candidates:
            if candidate.probe():
                logger.debug("Escalating with %s", candidate.method.value)
                return candidate.wrap(command, args)

        logger.warning(
            "Running as non-root without sudo/doas - '%s' may fail due to insufficient privileges",
            command,
        )
        return EscalationResult(EscalationMethod.DIRECT, command, args, False)

    def available_methods(self) -> list[EscalationMethod]:
        try:
            if self.is_running_as_root():
                return [EscalationMethod.NONE]
        except EscalationError as e:
            logger.warning("Failed to check root status: %s", e)

        methods = [c.method for c in self._candidates if c.probe()]
        methods.append(EscalationMethod.DIRECT)
        return methods

    # ── Internals ──

    def _is_root_or_assume_not(self) -> bool:
        try:
            return self.is_running_as_root()
        except EscalationError as e:
            logger.warning("Failed to check if running as root, assuming non-root: %s", e)
            return False

    def _tool_candidate(self, method: EscalationMethod, binary: str) -> EscalationCandidate:
        def probe() -> bool:
            return self._probe_tool(binary)

        def wrap(command: str, args: Sequence[str]) -> EscalationResult:
            return EscalationResult(method, binary, (command, *args), True)

        return EscalationCandidate(method=method, probe=probe, wrap=wrap)

    def _probe_tool(self, binary: str) -> bool:
        """Usable = on PATH and ``<binary> -n true`` succeeds (no password prompt)."""
        if not self._program_query.program_exists(binary):
            logger.debug("%s is not installed", binary)
            return False
        try:
            result = self._commander.run(binary, ["-n", "true"], with_capture_output())
        except DevbootError as e:
            logger.debug("%s probe failed: %s", binary, e)
            return False
        if not result.ok:
            logger.debug("%s requires a password (exit %d)", binary, result.exit_code)
        return result.ok
