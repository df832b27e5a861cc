"""
Job Registry - in-memory job store with timed removal.

Jobs are kept until their retention window after completion expires.
Removal runs on the event loop via call_later, so finished jobs do not
accumulate without a periodic sweep.
"""

import asyncio
import logging
import threading

from .models import Job, JobStatus

logger = logging.getLogger(__name__)


class JobRegistry:
    """Thread-safe map of job id to Job."""

    def __init__(self):
        self._jobs: dict[str, Job] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs

    def add(self, job: Job) -> None:
        """Register a job. Ids must be unique."""
        with self._lock:
            if job.id in self._jobs:
                raise ValueError(f"Job '{job.id}' already registered")
            self._jobs[job.id] = job

    def get(self, job_id: str) -> Job | None:
        """Get a job by id, None if unknown or removed."""
        with self._lock:
            return self._jobs.get(job_id)

    def remove(self, job_id: str) -> bool:
        """Remove a job. Returns True if removed."""
        with self._lock:
            timer = self._timers.pop(job_id, None)
            job = self._jobs.pop(job_id, None)
        if timer is not None:
            timer.cancel()
        if job is not None:
            logger.debug(f"Removed job {job_id}: {job.to_summary()}")
        return job is not None

    def schedule_removal(self, job_id: str, delay: float) -> None:
        """Remove the job after delay seconds. Must be called from the event loop."""
        loop = asyncio.get_running_loop()
        handle = loop.call_later(delay, self._expire, job_id)
        with self._lock:
            previous = self._timers.pop(job_id, None)
            self._timers[job_id] = handle
        if previous is not None:
            previous.cancel()

    def _expire(self, job_id: str) -> None:
        with self._lock:
            self._timers.pop(job_id, None)
        self.remove(job_id)

    def list_jobs(self, status: JobStatus | None = None) -> list[Job]:
        """List jobs, newest first."""
        with self._lock:
            jobs = list(self._jobs.values())
        if status:
            jobs = [j for j in jobs if j.status == status]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs

    def cancel_timers(self) -> None:
        """Cancel all pending removals."""
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()

    def get_stats(self) -> dict:
        """Get registry statistics."""
        jobs = self.list_jobs()
        return {
            "job_count": len(jobs),
            "scheduled_removals": len(self._timers),
            "by_status": {
                status.value: sum(1 for j in jobs if j.status == status)
                for status in JobStatus
            },
        }
