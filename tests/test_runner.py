from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

from upgrade_provider.dsl import computed, job, step
from upgrade_provider.errors import CommandError, HandledError
from upgrade_provider.model import Slot, StepContext
from upgrade_provider.process import CancelToken
from upgrade_provider.runner import run_job, run_jobs


def _recorder(calls: List[str], name: str, result: str = ""):
    def _run(ctx: StepContext) -> str:
        calls.append(name)
        return result
    return _run


def _boom(ctx: StepContext) -> str:
    raise RuntimeError("step exploded")


def test_steps_run_in_order(console) -> None:
    calls: List[str] = []
    ok = run_job(job("j", *(step(n, _recorder(calls, n)) for n in ["a", "b", "c"])))

    assert ok is True
    assert calls == ["a", "b", "c"]
    assert console.events[0] == ("job", "j")
    assert console.events[-1] == ("done", "j", True)


def test_failure_stops_job_and_later_jobs(console) -> None:
    calls: List[str] = []
    first = job("first", step("one", _recorder(calls, "one")), step("two", _boom), step("three", _recorder(calls, "three")))
    second = job("second", step("never", _recorder(calls, "never")))

    with pytest.raises(HandledError):
        run_jobs([first, second])

    assert calls == ["one"]
    assert console.outcomes() == [("ok", "one", ""), ("failed", "two", "step exploded")]
    assert ("job", "second") not in console.events
    assert console.events[-1] == ("done", "first", False)


def test_run_job_reports_failure_as_false(console) -> None:
    assert run_job(job("j", step("bad", _boom))) is False


def test_later_jobs_are_built_lazily(console) -> None:
    built: List[str] = []

    def jobs():
        built.append("first")
        yield job("first", step("bad", _boom))
        built.append("second")
        yield job("second", step("x", lambda ctx: ""))

    with pytest.raises(HandledError):
        run_jobs(jobs())
    assert built == ["first"]


def test_assigned_value_reaches_computed_step(console) -> None:
    slot = Slot("sha")
    seen: List[str] = []

    def make_step():
        value = slot.get()
        return step(f"use {value}", lambda ctx: seen.append(value) or value)

    ok = run_job(job(
        "j",
        step("produce", lambda ctx: "abc123", assign_to=slot),
        step("unrelated", lambda ctx: ""),
        computed(make_step),
    ))

    assert ok
    assert slot.value == "abc123"
    assert seen == ["abc123"]
    assert ("ok", "use abc123", "abc123") in console.outcomes()


def test_factory_is_not_called_at_build_time(console) -> None:
    calls: List[str] = []

    def factory():
        calls.append("factory")
        return step("inner", lambda ctx: "")

    j = job("j", computed(factory))
    assert calls == []
    run_job(j)
    assert calls == ["factory"]


def test_cwd_slot_is_read_at_execution_time(console, tmp_path: Path) -> None:
    where = Slot("where")
    seen: List[Path] = []

    ok = run_job(job(
        "j",
        step("find dir", lambda ctx: str(tmp_path), assign_to=where),
        step("use dir", lambda ctx: seen.append(ctx.cwd) or "", cwd=where),
    ))

    assert ok
    assert seen == [tmp_path]


def test_unassigned_cwd_slot_fails_the_step(console) -> None:
    ok = run_job(job("j", step("lost", lambda ctx: "", cwd=Slot("nowhere"))))

    assert not ok
    assert console.outcomes()[0][0] == "failed"
    assert "nowhere" in console.outcomes()[0][2]


def test_computed_step_inherits_outer_bindings(console, tmp_path: Path) -> None:
    out = Slot("out")
    seen: List[Path] = []

    def inner(ctx: StepContext) -> str:
        seen.append(ctx.cwd)
        return "done"

    ok = run_job(job("j", computed(lambda: step("inner", inner), cwd=str(tmp_path), assign_to=out)))

    assert ok
    assert seen == [tmp_path]
    assert out.value == "done"


def test_failing_factory_is_reported_under_outer_name(console) -> None:
    def factory():
        raise LookupError("slot 'x' has not been assigned yet")

    ok = run_job(job("j", computed(factory, name="go get upstream")))

    assert not ok
    assert console.events[1] == ("step", "go get upstream")
    assert console.outcomes() == [("failed", "go get upstream", "slot 'x' has not been assigned yet")]


def test_handled_error_is_not_reprinted(console) -> None:
    def handled(ctx: StepContext) -> str:
        raise HandledError()

    run_job(job("j", step("quiet", handled)))
    assert console.outcomes() == [("failed", "quiet", "")]


def test_command_error_is_reported(console) -> None:
    def failing(ctx: StepContext) -> str:
        raise CommandError(argv=["go", "build", "."], exit_code=2, stderr="undefined: x")

    run_job(job("j", step("build", failing)))
    _, name, reason = console.outcomes()[0]
    assert name == "build"
    assert "'go build .' failed (exit=2)" in reason
    assert "undefined: x" in reason


def test_cancelled_token_stops_before_next_step(console) -> None:
    cancel = CancelToken()
    calls: List[str] = []

    def cancel_now(ctx: StepContext) -> str:
        cancel.cancel()
        return ""

    ok = run_job(
        job("j", step("cancel", cancel_now), step("after", _recorder(calls, "after"))),
        cancel=cancel,
    )

    assert not ok
    assert calls == []
    assert console.outcomes()[-1] == ("failed", "after", "cancelled")
