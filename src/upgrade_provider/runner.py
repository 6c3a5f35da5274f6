# runner.py
from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

from .errors import CommandError, HandledError
from .model import Job, Slot, Step, StepContext
from .process import CancelToken
from .ui.console import Console, get_console


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _resolve_cwd(job: Job, step: Step) -> Optional[Path]:
    cwd = step.cwd
    if cwd is None:
        return None
    if isinstance(cwd, Slot):
        if not cwd.is_set:
            raise LookupError(
                f"[{job.name}] step '{step.name}' runs in '{cwd.name}', which has not been assigned yet"
            )
        cwd = cwd.value
    path = Path(cwd)
    if not path.is_dir():
        raise FileNotFoundError(f"[{job.name}] step '{step.name}' cwd not found: {path}")
    return path


def _materialize(step: Step) -> Step:
    """Turn a computed step into the step it stands for, keeping outer bindings."""
    if not step.is_computed:
        return step
    inner = step.factory()
    while inner.is_computed:
        inner = inner.factory()
    return Step(
        name=inner.name,
        action=inner.action,
        cwd=inner.cwd if inner.cwd is not None else step.cwd,
        assign_to=inner.assign_to if inner.assign_to is not None else step.assign_to,
    )


def _run_step(job: Job, step: Step, cancel: CancelToken) -> str:
    ctx = StepContext(cwd=_resolve_cwd(job, step), cancel=cancel)
    result = step.action(ctx)
    result = "" if result is None else str(result)
    if step.assign_to is not None:
        step.assign_to.set(result)
    return result


def _report_failure(console: Console, name: str, error: BaseException) -> None:
    if isinstance(error, HandledError):
        # already shown closer to its source
        console.print_failure(name, reason="")
    elif isinstance(error, CommandError):
        console.print_failure(name, reason=str(error), exit_code=error.exit_code, hint=error.hint)
    else:
        console.print_failure(name, reason=str(error) or type(error).__name__)


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def run_job(
    job: Job,
    *,
    console: Optional[Console] = None,
    cancel: Optional[CancelToken] = None,
) -> bool:
    """
    Run every step of ``job`` in order, stopping at the first failure.

    Each attempted step is reported to the console together with its
    outcome. Step errors never escape: the failing step is reported here, so
    a ``False`` return means the failure has already been shown.

    Returns:
      True when every step succeeded.
    """
    console = console or get_console()
    cancel = cancel or CancelToken()

    console.print_job_start(job.name)
    for planned in job.steps:
        label = planned.name
        announced = False
        try:
            cancel.raise_if_cancelled()
            step = _materialize(planned)
            label = step.name
            console.print_step(label)
            announced = True
            result = _run_step(job, step, cancel)
        except Exception as e:
            if not announced:
                console.print_step(label)
            _report_failure(console, label, e)
            console.print_job_done(job.name, ok=False)
            return False
        console.print_success(label, result)

    console.print_job_done(job.name, ok=True)
    return True


def run_jobs(
    jobs: Iterable[Job],
    *,
    console: Optional[Console] = None,
    cancel: Optional[CancelToken] = None,
) -> None:
    """
    Run jobs one after another; a failed job stops the rest.

    ``jobs`` may be a generator, so a later job can be built from what an
    earlier one produced.

    Raises:
      HandledError: a job failed (its failure has already been printed).
    """
    for j in jobs:
        if not run_job(j, console=console, cancel=cancel):
            raise HandledError()
