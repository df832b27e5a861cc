"""Job data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ..models import RenderConfig
from .channel import JobChannel


class JobStatus(str, Enum):
    """Job lifecycle: pending -> running -> done | error."""

    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.ERROR)


@dataclass
class Job:
    """One SVG to GIF conversion request.

    Only the orchestrator task that owns the job changes its status, result
    and error. Observers read them or listen on the channel.
    """

    id: str
    display_name: str
    config: RenderConfig
    status: JobStatus = JobStatus.PENDING
    result: bytes | None = field(default=None, repr=False)
    error: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    channel: JobChannel = field(default_factory=JobChannel, repr=False)

    @property
    def result_size(self) -> int:
        return len(self.result) if self.result is not None else 0

    def mark_running(self) -> None:
        self.status = JobStatus.RUNNING
        self.started_at = datetime.now()

    def mark_done(self, result: bytes) -> None:
        self.result = result
        self.status = JobStatus.DONE
        self.finished_at = datetime.now()

    def mark_failed(self, error: str) -> None:
        self.error = error
        self.status = JobStatus.ERROR
        self.finished_at = datetime.now()

    def to_summary(self) -> dict:
        """Get summary dict for logging and diagnostics."""
        return {
            "id": self.id,
            "display_name": self.display_name,
            "status": self.status.value,
            "size": self.result_size,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
