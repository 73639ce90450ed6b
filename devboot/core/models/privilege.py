"""
Privilege escalation models.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EscalationMethod(str, Enum):
    NONE = "none"       # already root
    SUDO = "sudo"
    DOAS = "doas"
    DIRECT = "direct"   # no escalator usable, run unprivileged


@dataclass(frozen=True)
class EscalationResult:
    """How to run a command with root authority.

    For sudo/doas ``command`` is the escalator binary and ``args`` is
    ``[original_command, *original_args]``; otherwise both are the
    originals unchanged.
    """

    method: EscalationMethod
    command: str
    args: tuple[str, ...]
    needs_escalation: bool
