"""End-to-end rendering of one animated SVG.

analyze -> plan_frames -> CaptureDriver -> encode_frames
"""

import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Callable

from .capture import DEFAULT_SETTLE_DELAY, CaptureDriver, PlaywrightRasterizer, Rasterizer, Viewport
from .encoder import GifEncoder, encode_frames
from .events import ProgressEvent
from .models import RenderConfig
from .planner import MAX_FRAMES, FramePlan, plan_frames
from .timing import AnimationSpec, analyze

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


@dataclass(frozen=True)
class RenderResult:
    """Output of a finished render."""

    data: bytes
    spec: AnimationSpec
    plan: FramePlan
    viewport: Viewport

    @property
    def size(self) -> int:
        return len(self.data)


def resolve_spec(markup: str, config: RenderConfig) -> AnimationSpec:
    """Analyze the markup, applying the configured duration override."""
    spec = analyze(markup)
    if config.duration_override is not None:
        spec = AnimationSpec(config.duration_override, spec.aspect_ratio)
    return spec


async def render_animation(
    markup: str,
    config: RenderConfig | None = None,
    rasterizer: Rasterizer | None = None,
    on_progress: ProgressCallback | None = None,
    settle_delay: float = DEFAULT_SETTLE_DELAY,
    encoder_factory=GifEncoder,
    max_frames: int = MAX_FRAMES,
) -> RenderResult:
    """Render an animated SVG into GIF bytes.

    Args:
        markup: SVG source.
        config: Render options, defaults when omitted.
        rasterizer: Session factory, a headless Chromium when omitted.
        on_progress: Called after every captured frame. Must not block.
        settle_delay: Seconds to wait between seeking and capturing.
        encoder_factory: Encoder class, see GifEncoder.
        max_frames: Largest frame plan accepted.

    Raises:
        InvalidInputError: If the animation needs more than max_frames captures.
        RasterizerError: If the browser session or a capture fails.
        EncoderError: If the GIF cannot be assembled.
    """
    config = config or RenderConfig()
    rasterizer = rasterizer or PlaywrightRasterizer()

    spec = resolve_spec(markup, config)
    plan = plan_frames(spec, config, max_frames)
    viewport = Viewport.for_animation(config, spec.aspect_ratio)
    total = len(plan)
    logger.debug(
        f"Rendering {total} frames over {spec.duration_seconds:.2f}s "
        f"at {viewport.width}x{viewport.height} @ {viewport.pixel_scale}x"
    )

    async with CaptureDriver(rasterizer, settle_delay=settle_delay) as driver:
        await driver.start(markup, viewport, config.background_color)

        async def captured_frames():
            for index, sample in enumerate(plan, start=1):
                bitmap = await driver.capture(sample.timestamp)
                if on_progress is not None:
                    on_progress(ProgressEvent(current=index, total=total, phase=sample.phase))
                yield bitmap, sample.delay_ms

        async with aclosing(captured_frames()) as frames:
            data = await encode_frames(
                frames,
                quality=config.quality,
                palette_mode=config.palette_mode,
                encoder_factory=encoder_factory,
            )

    return RenderResult(data=data, spec=spec, plan=plan, viewport=viewport)
