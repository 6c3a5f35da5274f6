from .dsl import cmd, computed, job, step
from .model import Job, Slot, Step, StepContext
from .runner import run_job, run_jobs
from .topology import RepoKind, Topology, classify

__version__ = "0.1.0"

__all__ = [
    "cmd",
    "computed",
    "job",
    "step",
    "run_job",
    "run_jobs",
    "Job",
    "Slot",
    "Step",
    "StepContext",
    "RepoKind",
    "Topology",
    "classify",
]
