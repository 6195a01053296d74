"""Task scheduling and precondition-driven resume."""

from swap_queue.scheduler.engine import Scheduler, by_age, precondition_met

__all__ = ["Scheduler", "by_age", "precondition_met"]
