"""
Periodic Scheduler

A lightweight asyncio-based scheduler. Every job runs in its own task so a
long rescue batch on one tier never delays the watchdog or another tier.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Coroutine, Dict, List, Optional

logger = logging.getLogger("memory_rescue.scheduling")


@dataclass
class PeriodicJob:
    """Represents a scheduled job."""
    name: str
    interval_seconds: float
    coroutine_func: Callable[[], Coroutine]
    job_type: str = "custom"
    is_system: bool = False
    run_on_start: bool = True
    last_run: float = 0.0
    enabled: bool = True
    running: bool = False


class PeriodicScheduler:
    """
    Manages periodic background tasks, one asyncio task per job.
    """

    def __init__(self, tick_seconds: float = 1.0):
        self._jobs: Dict[str, PeriodicJob] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._running = False
        self.tick_seconds = tick_seconds

    @property
    def running(self) -> bool:
        return self._running

    def add_job(
        self,
        name: str,
        interval_seconds: float,
        func: Callable[[], Coroutine],
        job_type: str = "custom",
        is_system: bool = False,
        run_on_start: bool = True,
    ):
        """Register a new background job. Replaces an existing job of the same name."""
        job = PeriodicJob(
            name=name,
            interval_seconds=interval_seconds,
            coroutine_func=func,
            job_type=job_type,
            is_system=is_system,
            run_on_start=run_on_start,
        )
        self._jobs[name] = job
        if self._running:
            self._spawn(job)
        logger.info(f"Scheduled job '{name}' (type: {job_type}) every {interval_seconds}s")

    def remove_job(self, name: str) -> bool:
        """Remove a job by name. Returns True if removed."""
        job = self._jobs.get(name)
        if job is None:
            return False
        if job.is_system:
            logger.warning(f"Cannot remove system job: {name}")
            return False
        del self._jobs[name]
        task = self._tasks.pop(name, None)
        if task:
            task.cancel()
        logger.info(f"Removed job: {name}")
        return True

    def _describe(self, job: PeriodicJob, now: float) -> dict:
        next_run = None
        if job.last_run > 0:
            next_run = max(job.last_run + job.interval_seconds - now, 0)
        return {
            "name": job.name,
            "job_type": job.job_type,
            "interval_seconds": job.interval_seconds,
            "is_system": job.is_system,
            "enabled": job.enabled,
            "last_run": job.last_run if job.last_run > 0 else None,
            "next_run_in": next_run,
            "executing": job.running,
            "running": self._running,
        }

    def get_jobs(self) -> List[dict]:
        """Get information about all registered jobs."""
        now = time.time()
        return [self._describe(job, now) for job in self._jobs.values()]

    def get_job(self, name: str) -> Optional[dict]:
        """Get information about a specific job."""
        job = self._jobs.get(name)
        if job is None:
            return None
        return self._describe(job, time.time())

    async def trigger_job(self, name: str) -> bool:
        """Manually trigger a job immediately. Returns True if executed."""
        job = self._jobs.get(name)
        if job is None:
            logger.warning(f"Cannot trigger unknown job: {name}")
            return False

        if not job.enabled:
            logger.warning(f"Cannot trigger disabled job: {name}")
            return False

        logger.info(f"Manually triggering job: {name}")
        return await self._execute(job)

    def enable_job(self, name: str) -> bool:
        """Enable a job."""
        job = self._jobs.get(name)
        if job:
            job.enabled = True
            return True
        return False

    def disable_job(self, name: str) -> bool:
        """Disable a job."""
        job = self._jobs.get(name)
        if job:
            job.enabled = False
            return True
        return False

    async def start(self):
        """Start one loop task per job."""
        if self._running:
            return
        self._running = True
        for job in self._jobs.values():
            if not job.run_on_start and job.last_run == 0:
                job.last_run = time.time()
            self._spawn(job)
        logger.info(f"PeriodicScheduler started with {len(self._jobs)} jobs")

    async def stop(self):
        """Cancel all job loops and wait for them to finish."""
        self._running = False
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("PeriodicScheduler stopped")

    def _spawn(self, job: PeriodicJob) -> None:
        existing = self._tasks.get(job.name)
        if existing:
            existing.cancel()
        self._tasks[job.name] = asyncio.create_task(self._job_loop(job.name))

    async def _execute(self, job: PeriodicJob) -> bool:
        if job.running:
            logger.warning(f"Job '{job.name}' is still running, skipping")
            return False
        job.running = True
        try:
            logger.debug(f"Running job: {job.name}")
            await job.coroutine_func()
            logger.debug(f"Job finished: {job.name}")
            return True
        except Exception as e:
            # A failed run never stops the loop; the next interval retries
            logger.error(f"Job '{job.name}' failed: {str(e)}", exc_info=True)
            return False
        finally:
            job.last_run = time.time()
            job.running = False

    async def _job_loop(self, name: str):
        """Run a job every interval until the scheduler stops or the job is removed."""
        while self._running and name in self._jobs:
            job = self._jobs[name]
            wait = job.last_run + job.interval_seconds - time.time()
            if job.enabled and wait <= 0 and not job.running:
                await self._execute(job)
                continue
            await asyncio.sleep(min(wait, self.tick_seconds) if wait > 0 else self.tick_seconds)
