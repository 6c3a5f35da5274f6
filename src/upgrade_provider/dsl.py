# dsl.py
from __future__ import annotations

from dataclasses import replace
from typing import Callable, List, Optional, Sequence

from .model import Cwd, Job, Slot, Step, StepContext
from .process import run_command


def step(
    name: str,
    fn: Callable[[StepContext], str],
    *,
    cwd: Optional[Cwd] = None,
    assign_to: Optional[Slot] = None,
) -> Step:
    """A step that calls ``fn`` and reports the string it returns."""
    return Step(name=name, action=fn, cwd=cwd, assign_to=assign_to)


def cmd(
    *argv: str,
    name: Optional[str] = None,
    cwd: Optional[Cwd] = None,
    assign_to: Optional[Slot] = None,
) -> Step:
    """
    A step that runs an external command.

    The step label defaults to the command line itself. When ``assign_to`` is
    set the slot receives the command's stripped stdout.
    """
    args = list(argv)
    if not args:
        raise ValueError("cmd() needs a program to run")

    def _run(ctx: StepContext) -> str:
        out = run_command(args, cwd=ctx.cwd, cancel=ctx.cancel)
        return out.strip() if assign_to is not None else ""

    return Step(name=name or " ".join(args), action=_run, cwd=cwd, assign_to=assign_to)


def computed(
    factory: Callable[[], Step],
    *,
    name: Optional[str] = None,
    cwd: Optional[Cwd] = None,
    assign_to: Optional[Slot] = None,
) -> Step:
    """
    A step whose definition is only known once earlier steps have run.

    ``factory`` is called immediately before execution, never when the job is
    built, so it can read slots filled in by previous steps.
    """
    return Step(name=name or "computed step", factory=factory, cwd=cwd, assign_to=assign_to)


def job(
    name: str,
    *steps: Step,
    steps_list: Optional[Sequence[Step]] = None,
    cwd: Optional[Cwd] = None,  # default cwd for steps
) -> Job:
    steps_final: List[Step] = list(steps_list or []) + list(steps)

    if not steps_final:
        raise ValueError(f"job({name!r}) must have at least one step")

    if cwd is not None:
        steps_final = [
            s if s.cwd is not None else replace(s, cwd=cwd)
            for s in steps_final
        ]

    return Job(name=name, steps=steps_final)
