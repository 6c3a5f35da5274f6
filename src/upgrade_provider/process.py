# process.py
# Execution primitives for external collaborators (git, go, gh, make, pulumi).
# Everything that spawns a process goes through run_command so cancellation
# and error reporting behave the same for every tool.

from __future__ import annotations

import subprocess
import threading
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TypeVar, Union

from .errors import Cancelled, CommandError

T = TypeVar("T")

PathLike = Union[str, Path]

TOOL_HINTS = {
    "git": "Install Git or fix PATH.",
    "go": "Install Go (https://go.dev/dl) or fix PATH.",
    "gh": "Install the GitHub CLI (gh) and run `gh auth login`.",
    "make": "Install make or fix PATH.",
    "pulumi": "Install the Pulumi CLI or fix PATH.",
}

# Seconds between cancellation checks while a process is running.
POLL_INTERVAL = 0.2
# Seconds a terminated process gets before it is killed.
TERMINATE_GRACE = 5.0

# Keep failure output readable.
STDERR_TAIL = 4000


class CancelToken:
    """
    Cooperative cancellation signal shared by the runner and every operation.

    Setting it is safe from a signal handler; the running process is
    terminated at the next poll and no further step is started.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise Cancelled()


def run_command(
    argv: Sequence[str],
    *,
    cwd: Optional[PathLike] = None,
    cancel: Optional[CancelToken] = None,
) -> str:
    """
    Run argv to completion and return its stdout.

    Args:
        argv: Program and arguments; never passed through a shell.
        cwd: Working directory for the process.
        cancel: Optional token; when set the process is terminated.

    Returns:
        Captured stdout as text.

    Raises:
        CommandError: the program is missing or exited non-zero.
        Cancelled: the token was set while the process was running.
    """
    args: List[str] = [str(a) for a in argv]
    if cancel is not None:
        cancel.raise_if_cancelled()

    try:
        proc = subprocess.Popen(
            args,
            cwd=str(cwd) if cwd is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            text=True,
        )
    except FileNotFoundError:
        tool = Path(args[0]).name
        raise CommandError(
            argv=args,
            exit_code=None,
            hint=TOOL_HINTS.get(tool, f"Install {tool} or fix PATH."),
            cwd=str(cwd) if cwd is not None else None,
        )

    stdout, stderr = _wait(proc, cancel)

    if proc.returncode != 0:
        raise CommandError(
            argv=args,
            exit_code=proc.returncode,
            stderr=(stderr or "")[-STDERR_TAIL:],
            hint=TOOL_HINTS.get(Path(args[0]).name),
            cwd=str(cwd) if cwd is not None else None,
        )
    return stdout or ""


def _wait(proc: subprocess.Popen, cancel: Optional[CancelToken]) -> tuple[str, str]:
    if cancel is None:
        return proc.communicate()

    while True:
        try:
            return proc.communicate(timeout=POLL_INTERVAL)
        except subprocess.TimeoutExpired:
            if not cancel.cancelled:
                continue
        proc.terminate()
        try:
            proc.communicate(timeout=TERMINATE_GRACE)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.communicate()
        raise Cancelled(f"cancelled while running '{' '.join(proc.args)}'")


def query(
    argv: Sequence[str],
    parse: Callable[[str], T],
    *,
    cwd: Optional[PathLike] = None,
    cancel: Optional[CancelToken] = None,
) -> T:
    """Run a read-only command and turn its buffered stdout into a typed value."""
    return parse(run_command(argv, cwd=cwd, cancel=cancel))
