"""Services — program lookup, privilege escalation, OS primitives, backends, installers."""
