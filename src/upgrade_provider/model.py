# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Union

from .process import CancelToken


class Slot:
    """
    A shared cell that threads a string between steps.

    One step writes it (via ``assign_to``); any later step may read it,
    either as its working directory or from inside a computed step.
    """

    def __init__(self, name: str, value: Optional[str] = None):
        self.name = name
        self.value = value

    @property
    def is_set(self) -> bool:
        return self.value is not None

    def get(self) -> str:
        if self.value is None:
            raise LookupError(f"slot '{self.name}' has not been assigned yet")
        return self.value

    def set(self, value: str) -> None:
        self.value = value

    def __repr__(self) -> str:
        return f"Slot({self.name!r}, {self.value!r})"


# A step may run in a fixed directory or in whatever a slot holds when it runs.
Cwd = Union[str, Path, Slot]


@dataclass(frozen=True)
class StepContext:
    """What an action gets to see when it runs."""
    cwd: Optional[Path]
    cancel: CancelToken


Action = Callable[[StepContext], str]


@dataclass(frozen=True)
class Step:
    """
    A single labelled operation inside a job.

    Exactly one of ``action`` (run as-is) or ``factory`` (called right before
    execution to produce the step to run) is set.
    """
    name: str
    action: Optional[Action] = None
    factory: Optional[Callable[[], "Step"]] = None
    cwd: Optional[Cwd] = None
    assign_to: Optional[Slot] = None

    def __post_init__(self) -> None:
        if (self.action is None) == (self.factory is None):
            raise ValueError(f"step {self.name!r} needs exactly one of action or factory")

    @property
    def is_computed(self) -> bool:
        return self.factory is not None


@dataclass
class Job:
    """An ordered list of steps run fail-fast under one name."""
    name: str
    steps: list[Step] = field(default_factory=list)
