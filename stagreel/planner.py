"""Frame sample planning.

A plan lists, in capture order, the animation-clock timestamps to sample and
how long each captured frame is displayed in the output animation.
"""

import math
from dataclasses import dataclass
from enum import Enum

from .exceptions import InvalidInputError
from .models import RenderConfig
from .timing import AnimationSpec

# Upper bound on captures per render (about 7 minutes at 24 fps)
MAX_FRAMES = 10_000


class FramePhase(str, Enum):
    """Which part of the animation a sample belongs to."""

    SAMPLING = "sampling"
    HOLDING = "holding"


@dataclass(frozen=True)
class FrameSample:
    """One planned capture."""

    timestamp: float  # Animation clock in seconds
    delay_ms: int  # Display time in the output animation
    phase: FramePhase = FramePhase.SAMPLING


FramePlan = tuple[FrameSample, ...]


def regular_frame_count(duration_seconds: float, fps: int) -> int:
    """Number of frame intervals covering the duration, at least 1."""
    return max(1, math.ceil(fps * duration_seconds))


def check_frame_budget(spec: AnimationSpec, config: RenderConfig, max_frames: int = MAX_FRAMES) -> int:
    """Return the plan length, rejecting renders above max_frames captures.

    Raises:
        InvalidInputError: If the animation would need more than max_frames captures.
    """
    intervals = config.fps * spec.duration_seconds
    if not math.isfinite(intervals) or intervals + 2 > max_frames:
        raise InvalidInputError(
            f"Animation too long: {spec.duration_seconds:g}s at {config.fps} fps needs "
            f"more than {max_frames} frames"
        )
    return regular_frame_count(spec.duration_seconds, config.fps) + 2


def plan_frames(spec: AnimationSpec, config: RenderConfig, max_frames: int = MAX_FRAMES) -> FramePlan:
    """Compute the capture plan for an animation.

    Samples 0..N (N = ceil(fps * duration)) are spread evenly so that the
    first lands on t=0 and the last on t=duration exactly. A final hold
    sample repeats t=duration with the configured hold delay, so the plan
    always holds N + 2 entries.

    Raises:
        InvalidInputError: If the plan would exceed max_frames entries.
    """
    check_frame_budget(spec, config, max_frames)
    duration = spec.duration_seconds
    count = regular_frame_count(duration, config.fps)
    delay = config.frame_delay_ms

    samples = [
        FrameSample(timestamp=(index / count) * duration, delay_ms=delay)
        for index in range(count)
    ]
    # Exact end point instead of (count / count) * duration
    samples.append(FrameSample(timestamp=duration, delay_ms=delay))
    samples.append(
        FrameSample(
            timestamp=duration,
            delay_ms=config.hold_delay_ms,
            phase=FramePhase.HOLDING,
        )
    )
    return tuple(samples)
