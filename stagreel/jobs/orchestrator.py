"""Asynchronous job orchestration.

submit() registers a job and starts its render as an asyncio task without
waiting for it. The task reports every captured frame on the job's channel
and finishes with exactly one terminal event. Finished jobs stay in the
registry for a retention window so late observers can still learn the outcome.
"""

import asyncio
import logging
import re
import uuid
from typing import Any, Mapping

from pydantic import ValidationError

from ..capture import DEFAULT_SETTLE_DELAY, PlaywrightRasterizer, Rasterizer
from ..events import DoneEvent, ErrorEvent
from ..exceptions import InvalidInputError, JobNotFoundError
from ..models import RenderConfig
from ..pipeline import render_animation, resolve_spec
from ..planner import MAX_FRAMES, check_frame_budget
from .channel import Subscription
from .models import Job, JobStatus
from .registry import JobRegistry

logger = logging.getLogger(__name__)

_SVG_ELEMENT_RE = re.compile(r"<svg\b", re.IGNORECASE)


class JobOrchestrator:
    """Runs render jobs and tracks their lifecycle."""

    DONE_RETENTION_SECONDS = 10 * 60
    ERROR_RETENTION_SECONDS = 60
    MAX_CONCURRENT_JOBS = 4

    def __init__(
        self,
        registry: JobRegistry | None = None,
        rasterizer: Rasterizer | None = None,
        max_concurrent_jobs: int = MAX_CONCURRENT_JOBS,
        done_retention: float = DONE_RETENTION_SECONDS,
        error_retention: float = ERROR_RETENTION_SECONDS,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        max_frames: int = MAX_FRAMES,
        render=render_animation,
    ):
        """Initialize the orchestrator.

        Args:
            registry: Job store shared with the request handlers.
            rasterizer: Session factory passed to every render.
            max_concurrent_jobs: Renders allowed to run at the same time.
            done_retention: Seconds a finished job is kept.
            error_retention: Seconds a failed job is kept.
            settle_delay: Seconds between seek and capture.
            max_frames: Largest frame plan a job may need.
            render: Coroutine function performing one render.
        """
        if max_concurrent_jobs < 1:
            raise ValueError("max_concurrent_jobs must be at least 1")
        self.registry = registry if registry is not None else JobRegistry()
        self.rasterizer = rasterizer or PlaywrightRasterizer()
        self.done_retention = done_retention
        self.error_retention = error_retention
        self.settle_delay = settle_delay
        self.max_frames = max_frames
        self._render = render
        self._slots = asyncio.Semaphore(max_concurrent_jobs)
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_jobs(self) -> int:
        """Number of jobs not yet finished."""
        return len(self._tasks)

    # ==================== Submission ====================

    def submit(
        self,
        markup: str,
        config: RenderConfig | Mapping[str, Any] | None = None,
        display_name: str | None = None,
    ) -> str:
        """Create a job and start rendering it in the background.

        Must be called from a running event loop. Returns the job id right
        away; render failures are reported on the job, never raised here.

        Raises:
            InvalidInputError: If the markup is not SVG, the config is invalid
                or the animation needs more than max_frames captures.
        """
        if not isinstance(markup, str) or not markup.strip():
            raise InvalidInputError("No SVG content provided")
        if not _SVG_ELEMENT_RE.search(markup):
            raise InvalidInputError("Content does not contain an <svg> element")
        config = self._resolve_config(config)
        check_frame_budget(resolve_spec(markup, config), config, self.max_frames)

        loop = asyncio.get_running_loop()
        job_id = str(uuid.uuid4())
        job = Job(id=job_id, display_name=display_name or f"{job_id}.gif", config=config)
        self.registry.add(job)

        task = loop.create_task(self._run(job, markup), name=f"stagreel-job-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(f"Submitted job {job_id} ({job.display_name})")
        return job_id

    @staticmethod
    def _resolve_config(config: RenderConfig | Mapping[str, Any] | None) -> RenderConfig:
        if config is None:
            return RenderConfig()
        if isinstance(config, RenderConfig):
            return config
        try:
            return RenderConfig(**dict(config))
        except ValidationError as e:
            messages = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise InvalidInputError(f"Invalid render options: {messages}") from e
        except TypeError as e:
            raise InvalidInputError(f"Invalid render options: {e}") from e

    async def _run(self, job: Job, markup: str) -> None:
        """Render one job and publish its outcome."""
        try:
            async with self._slots:
                job.mark_running()
                logger.info(f"Job {job.id} running")
                result = await self._render(
                    markup,
                    job.config,
                    rasterizer=self.rasterizer,
                    on_progress=job.channel.publish,
                    settle_delay=self.settle_delay,
                    max_frames=self.max_frames,
                )
        except asyncio.CancelledError:
            self._fail(job, "Job cancelled")
            raise
        except Exception as e:
            logger.exception(f"Job {job.id} failed")
            self._fail(job, str(e) or type(e).__name__)
            return

        job.mark_done(result.data)
        job.channel.publish(DoneEvent(size=len(result.data)))
        self.registry.schedule_removal(job.id, self.done_retention)
        logger.info(f"Job {job.id} done ({len(result.data) / 1024:.0f} KB)")

    def _fail(self, job: Job, reason: str) -> None:
        job.mark_failed(reason)
        job.channel.publish(ErrorEvent(message=reason))
        self.registry.schedule_removal(job.id, self.error_retention)

    # ==================== Observation ====================

    def get_job(self, job_id: str) -> Job:
        """Get a job by id.

        Raises:
            JobNotFoundError: If the id is unknown or the job expired.
        """
        job = self.registry.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job '{job_id}' not found")
        return job

    def subscribe(self, job_id: str) -> Subscription:
        """Follow a job's events.

        A finished job yields only its terminal event. A pending or running
        job yields its latest progress event (if any), later progress events
        and then one terminal event. Closing the subscription never affects
        the render.

        Raises:
            JobNotFoundError: If the id is unknown or the job expired.
        """
        return self.get_job(job_id).channel.subscribe()

    def fetch_result(self, job_id: str) -> bytes:
        """Get the GIF of a finished job.

        Raises:
            JobNotFoundError: Unless the job exists and is done.
        """
        job = self.registry.get(job_id)
        if job is None or job.status != JobStatus.DONE or job.result is None:
            raise JobNotFoundError(f"Job '{job_id}' not found")
        return job.result

    # ==================== Lifecycle ====================

    async def join(self) -> None:
        """Wait until all submitted jobs have finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel running jobs and pending removals."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.registry.cancel_timers()
        logger.info(f"Orchestrator stopped ({len(tasks)} jobs cancelled)")
