"""Console output formatting utilities for upgrade-provider."""

from __future__ import annotations

import sys
from typing import Iterable, Optional


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_run_started(self, provider: str, upstream: str) -> None:
        """Print run start information."""
        print("\nUPGRADE STARTED")
        print(f"Provider: {provider}")
        print(f"Upstream: {upstream}")

    def print_job_start(self, name: str) -> None:
        """Print job start message."""
        print(f"\nJOB STARTED: {name}")

    def print_step(self, name: str) -> None:
        """Print step start message."""
        print(f"STEP: {name}")

    def print_success(self, name: str, result: str = "") -> None:
        """Print step success, with the step's result when it has one."""
        if result:
            print(f"STATUS: success ({result})")
        else:
            print("STATUS: success")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Step name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
        """
        print(f"STEP FAILED: {name}")
        if exit_code is not None:
            print(f"Exit code: {exit_code}")
        if hint:
            print(f"Hint: {hint}")
        if not reason:
            return
        if self.debug:
            print(f"Error details: {reason}")
        else:
            # First line only outside debug mode
            print(f"Error: {reason.splitlines()[0]}")

    def print_job_done(self, name: str, ok: bool) -> None:
        """Print job summary line."""
        if ok:
            print(f"JOB SUCCEEDED: {name}")
        else:
            print(f"JOB FAILED: {name}")

    def print_partial_progress(self, effects: Iterable[str]) -> None:
        """List side effects that were already applied before a failure."""
        effects = list(effects)
        if not effects:
            return
        print("\nPartial progress left in place (clean up manually or re-run):", file=sys.stderr)
        for effect in effects:
            print(f"  {effect}", file=sys.stderr)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        print(f"error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
