"""Background queue workers for async processing tasks."""

from teegen.workers.action_worker import run_action_worker
from teegen.workers.generation_worker import run_generation_worker
from teegen.workers.ideation_worker import run_ideation_worker

__all__ = [
    "run_generation_worker",
    "run_action_worker",
    "run_ideation_worker",
]
