"""Render configuration models."""

import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator

# Characters allowed in a CSS color value ("white", "#fff", "rgb(0, 0, 0)", ...)
_CSS_COLOR_RE = re.compile(r"^[#a-zA-Z0-9(),.%\s-]+$")

PaletteMode = Literal["mediancut", "maxcoverage", "fastoctree"]


class RenderConfig(BaseModel):
    """Options for rendering one animated SVG into a GIF.

    Immutable once created; a job keeps the instance it was submitted with.
    """

    fps: int = Field(24, ge=1, le=120, description="Sampled frames per second")
    canvas_width: int = Field(800, ge=16, le=4096, description="Canvas width in CSS pixels")
    device_pixel_scale: float = Field(2.0, gt=0, le=4, description="Device pixel ratio")
    quality: int = Field(1, ge=1, le=30, description="1 = best, 30 = fastest")
    hold_seconds: float = Field(2.0, ge=0, le=60, description="Display time of the last frame")
    background_color: str = Field("white", min_length=1, max_length=64)
    duration_override: float | None = Field(None, gt=0, allow_inf_nan=False, description="Replaces the analyzed duration")
    palette_mode: PaletteMode = "mediancut"

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("background_color")
    @classmethod
    def _check_color(cls, value: str) -> str:
        value = value.strip()
        if not _CSS_COLOR_RE.match(value):
            raise ValueError(f"Invalid background color: {value!r}")
        return value

    @property
    def frame_delay_ms(self) -> int:
        """Display time of one regular frame in milliseconds."""
        return round(1000 / self.fps)

    @property
    def hold_delay_ms(self) -> int:
        """Display time of the hold frame in milliseconds."""
        return round(self.hold_seconds * 1000)
