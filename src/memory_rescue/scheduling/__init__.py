"""Background scheduling for the rescue engine."""

from memory_rescue.scheduling.jobs import JOB_REGISTRY, register_job
from memory_rescue.scheduling.scheduler import PeriodicJob, PeriodicScheduler

__all__ = ["JOB_REGISTRY", "PeriodicJob", "PeriodicScheduler", "register_job"]
