"""SMIL timing analysis.

Finds how long the declarative animation of an SVG document runs and which
aspect ratio its canvas should have. Only the attributes needed for that are
read; the markup is scanned with regular expressions rather than parsed, so
malformed documents degrade to defaults instead of raising.
"""

import math
import re
from dataclasses import dataclass

# Animation end used when no animation declares a positive end
MIN_DURATION_SECONDS = 1.0

_ANIMATION_TAG_RE = re.compile(r"<(?:animate\w*|set)\b[^>]*>", re.DOTALL)
_SVG_TAG_RE = re.compile(r"<svg\b[^>]*>", re.IGNORECASE | re.DOTALL)
_CLOCK_RE = re.compile(
    r"^([+-])?(?:(\d+):)?(\d+):(\d{2}(?:\.\d+)?)$"
)
_TIMECOUNT_RE = re.compile(
    r"^([+-]?(?:\d+\.?\d*|\.\d+))\s*(h|min|s|ms)?$"
)
_UNIT_SECONDS = {"h": 3600.0, "min": 60.0, "s": 1.0, "ms": 0.001, None: 1.0}


@dataclass(frozen=True)
class AnimationSpec:
    """Timing facts derived from one SVG document."""

    duration_seconds: float
    aspect_ratio: float | None = None  # height / width, None for "use a square canvas"


def _attribute(tag: str, name: str) -> str | None:
    match = re.search(rf"\b{name}\s*=\s*([\"'])(.*?)\1", tag, re.DOTALL)
    return match.group(2) if match else None


def parse_clock_value(value: str | None) -> float:
    """Parse a SMIL clock value into seconds.

    Supports timecounts with an optional metric ("2", "1.5s", "500ms",
    "1min", "0.5h") as well as full and partial clock values ("01:02:03.5",
    "02:30"). Only the first entry of a ";"-separated list is used.
    Anything else (event or syncbase values, "indefinite") yields 0.
    """
    if not value:
        return 0.0
    value = value.split(";", 1)[0].strip()

    match = _TIMECOUNT_RE.match(value)
    if match:
        seconds = float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        return seconds if math.isfinite(seconds) else 0.0

    match = _CLOCK_RE.match(value)
    if match:
        sign, hours, minutes, seconds = match.groups()
        total = float(hours or 0) * 3600 + float(minutes) * 60 + float(seconds)
        if not math.isfinite(total):
            return 0.0
        return -total if sign == "-" else total

    return 0.0


def detect_animation_end(markup: str) -> float:
    """Latest end time (begin + dur) over all animation declarations.

    Floored at MIN_DURATION_SECONDS, which also covers documents without
    any animation.
    """
    end = MIN_DURATION_SECONDS
    for match in _ANIMATION_TAG_RE.finditer(markup):
        tag = match.group(0)
        begin = parse_clock_value(_attribute(tag, "begin"))
        dur = parse_clock_value(_attribute(tag, "dur"))
        end = max(end, begin + dur)
    return end


def detect_aspect_ratio(markup: str) -> float | None:
    """Height/width ratio from the root element's viewBox, if declared."""
    svg_tag = _SVG_TAG_RE.search(markup)
    if not svg_tag:
        return None

    view_box = _attribute(svg_tag.group(0), "viewBox")
    if not view_box:
        return None

    parts = re.split(r"[\s,]+", view_box.strip())
    if len(parts) < 4:
        return None
    try:
        width, height = float(parts[2]), float(parts[3])
    except ValueError:
        return None

    if width > 0 and height > 0 and math.isfinite(width) and math.isfinite(height):
        return height / width
    return None


def analyze(markup: str) -> AnimationSpec:
    """Derive the AnimationSpec of an SVG document. Never raises."""
    return AnimationSpec(
        duration_seconds=detect_animation_end(markup),
        aspect_ratio=detect_aspect_ratio(markup),
    )
