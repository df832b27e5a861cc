"""Job notifications delivered to progress subscribers."""

from dataclasses import dataclass
from typing import Union

from .planner import FramePhase


@dataclass(frozen=True)
class ProgressEvent:
    """A frame was captured."""

    current: int  # 1-based count of captured frames
    total: int
    phase: FramePhase = FramePhase.SAMPLING

    terminal = False

    def to_dict(self) -> dict:
        return {
            "type": "progress",
            "current": self.current,
            "total": self.total,
            "phase": self.phase.value,
        }


@dataclass(frozen=True)
class DoneEvent:
    """The job finished and its GIF can be downloaded."""

    size: int

    terminal = True

    def to_dict(self) -> dict:
        return {"type": "done", "size": self.size}


@dataclass(frozen=True)
class ErrorEvent:
    """The job failed."""

    message: str

    terminal = True

    def to_dict(self) -> dict:
        return {"type": "error", "message": self.message}


JobEvent = Union[ProgressEvent, DoneEvent, ErrorEvent]
