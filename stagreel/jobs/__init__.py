"""Job orchestration for background renders."""

from .channel import JobChannel, Subscription
from .models import Job, JobStatus
from .orchestrator import JobOrchestrator
from .registry import JobRegistry

__all__ = [
    "JobOrchestrator",
    "JobRegistry",
    "JobChannel",
    "Subscription",
    "Job",
    "JobStatus",
]
