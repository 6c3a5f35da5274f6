from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

from upgrade_provider.ui.console import Console, set_console


class RecordingConsole(Console):
    """Console that remembers what the runner reported."""

    def __init__(self) -> None:
        super().__init__(debug=False)
        self.events: List[tuple] = []

    def print_job_start(self, name: str) -> None:
        self.events.append(("job", name))

    def print_step(self, name: str) -> None:
        self.events.append(("step", name))

    def print_success(self, name: str, result: str = "") -> None:
        self.events.append(("ok", name, result))

    def print_failure(self, name, reason, exit_code=None, hint=None) -> None:
        self.events.append(("failed", name, reason))

    def print_job_done(self, name: str, ok: bool) -> None:
        self.events.append(("done", name, ok))

    def outcomes(self) -> List[tuple]:
        return [e for e in self.events if e[0] in ("ok", "failed")]


@pytest.fixture()
def console() -> RecordingConsole:
    rec = RecordingConsole()
    set_console(rec)
    yield rec
    set_console(Console())


class FakeCommands:
    """
    Stand-in for process.run_command.

    Records every (argv, cwd) and answers with canned stdout keyed by the
    leading arguments of the command line.
    """

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.responses: Dict[tuple, str] = {}
        self.failures: Dict[tuple, int] = {}

    def respond(self, prefix: Sequence[str], stdout: str) -> None:
        self.responses[tuple(prefix)] = stdout

    def fail(self, prefix: Sequence[str], exit_code: int = 1) -> None:
        self.failures[tuple(prefix)] = exit_code

    def _lookup(self, table: dict, argv: tuple):
        best = None
        for prefix in table:
            if argv[: len(prefix)] == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        return best

    def __call__(self, argv, *, cwd=None, cancel=None) -> str:
        from upgrade_provider.errors import CommandError

        argv = tuple(str(a) for a in argv)
        self.calls.append((argv, str(cwd) if cwd is not None else None))
        failing = self._lookup(self.failures, argv)
        if failing is not None:
            raise CommandError(argv=list(argv), exit_code=self.failures[failing], stderr="boom")
        match = self._lookup(self.responses, argv)
        return self.responses[match] if match is not None else ""

    def commands(self) -> List[tuple]:
        return [argv for argv, _cwd in self.calls]


@pytest.fixture()
def fake_commands(monkeypatch: pytest.MonkeyPatch) -> FakeCommands:
    fake = FakeCommands()
    monkeypatch.setattr("upgrade_provider.process.run_command", fake)
    monkeypatch.setattr("upgrade_provider.dsl.run_command", fake)
    monkeypatch.setattr("upgrade_provider.repos.run_command", fake)
    return fake


def write_gomod(directory: Path, body: str, module: Optional[str] = None) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    header = f"module {module or 'github.com/pulumi/pulumi-foo/provider/v5'}\n\ngo 1.21\n\n"
    path = directory / "go.mod"
    path.write_text(header + body, encoding="utf-8")
    return path
