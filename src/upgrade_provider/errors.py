# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


class UpgradeError(Exception):
    """Base class for every fatal error raised while upgrading a provider."""


class HandledError(UpgradeError):
    """
    The failure was already shown to the operator.

    The CLI exits non-zero without printing anything else.
    """

    def __init__(self, message: str = "program failed and displayed the error to the user"):
        super().__init__(message)


class RepositoryError(UpgradeError):
    """A repository could not be located, cloned or recognised."""


class ManifestError(UpgradeError):
    """A go.mod file could not be read or parsed."""

    def __str__(self) -> str:
        return f"manifest: {super().__str__()}"


class ClassificationError(UpgradeError):
    """The go.mod files do not describe a provider layout we understand."""


class NoUpgradeFound(UpgradeError):
    def __init__(self, message: str = "no upgrade found"):
        super().__init__(message)


@dataclass(eq=False)
class CommandError(UpgradeError):
    """
    An external command exited non-zero (or could not be started).

    Carries enough context for clean CLI output without a traceback.
    """
    argv: List[str]
    exit_code: Optional[int]
    stderr: str = ""
    hint: Optional[str] = None
    cwd: Optional[str] = field(default=None)

    def __str__(self) -> str:
        cmd = " ".join(self.argv)
        if self.exit_code is None:
            lines = [f"could not run '{cmd}'"]
        else:
            lines = [f"'{cmd}' failed (exit={self.exit_code})"]
        tail = self.stderr.strip()
        if tail:
            lines.append(tail)
        return "\n".join(lines)


class Cancelled(UpgradeError):
    def __init__(self, message: str = "cancelled"):
        super().__init__(message)
