"""Frame capture through a headless browser.

The CaptureDriver embeds the SVG into a small HTML page, freezes the SVG
animation clock and then, for each planned timestamp, seeks the clock and
takes a screenshot. Seeking mutates the page, so a session belongs to exactly
one job and is driven strictly forward in time.
"""

import asyncio
import io
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass

import numpy as np
from PIL import Image

from .exceptions import RasterizerError
from .models import RenderConfig

logger = logging.getLogger(__name__)

# Share of the canvas width taken by the SVG, leaving a margin around it
CONTENT_WIDTH_FRACTION = 0.85

DEFAULT_SETTLE_DELAY = 0.04

CHROMIUM_ARGS = ["--disable-gpu", "--no-sandbox", "--disable-dev-shm-usage"]

_PAUSE_JS = """() => {
    const svg = document.querySelector('svg');
    if (!svg) return false;
    svg.pauseAnimations();
    svg.setCurrentTime(0);
    return true;
}"""

_SEEK_JS = "time => document.querySelector('svg').setCurrentTime(time)"

_DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html><head><meta charset="utf-8"><style>
*{{margin:0;padding:0;box-sizing:border-box}}
body{{width:{width}px;height:{height}px;display:flex;align-items:center;justify-content:center;background:{background};overflow:hidden}}
svg{{width:{content_width}px;height:auto}}
</style></head><body>{markup}</body></html>"""


@dataclass(frozen=True)
class Viewport:
    """Capture area in CSS pixels plus the device pixel ratio."""

    width: int
    height: int
    pixel_scale: float = 1.0

    @classmethod
    def for_animation(cls, config: RenderConfig, aspect_ratio: float | None) -> "Viewport":
        """Viewport for a canvas width, square when no aspect ratio is known."""
        width = config.canvas_width
        height = max(1, round(width * aspect_ratio)) if aspect_ratio else width
        return cls(width=width, height=height, pixel_scale=config.device_pixel_scale)

    @property
    def pixel_size(self) -> tuple[int, int]:
        """Expected bitmap size (width, height) in device pixels."""
        return round(self.width * self.pixel_scale), round(self.height * self.pixel_scale)


def build_capture_document(markup: str, viewport: Viewport, background: str = "white") -> str:
    """Wrap SVG markup into an HTML page sized to the viewport."""
    return _DOCUMENT_TEMPLATE.format(
        width=viewport.width,
        height=viewport.height,
        background=background,
        content_width=round(viewport.width * CONTENT_WIDTH_FRACTION),
        markup=markup,
    )


class RasterizerSession(ABC):
    """An open rendering surface whose animation clock can be controlled."""

    @abstractmethod
    async def load(self, document: str) -> None:
        """Load an HTML document into the session."""

    @abstractmethod
    async def pause(self) -> None:
        """Stop the native animation clock and rewind it to 0."""

    @abstractmethod
    async def seek(self, time_seconds: float) -> None:
        """Set the animation clock."""

    @abstractmethod
    async def capture_bitmap(self) -> np.ndarray:
        """Snapshot the viewport as an RGBA array of shape (height, width, 4)."""

    @abstractmethod
    async def close(self) -> None:
        """Release the session."""


class Rasterizer(ABC):
    """Factory for rasterizer sessions."""

    @abstractmethod
    async def open(self, width: int, height: int, pixel_scale: float) -> RasterizerSession:
        """Open a session with the given viewport."""


def decode_png(data: bytes) -> np.ndarray:
    """Decode PNG bytes into an RGBA numpy array."""
    image = Image.open(io.BytesIO(data))
    image = image.convert("RGBA")
    return np.array(image, dtype=np.uint8)


class PlaywrightSession(RasterizerSession):
    """Chromium page driven through Playwright."""

    def __init__(self, playwright, browser, page, width: int, height: int):
        self._playwright = playwright
        self._browser = browser
        self._page = page
        self._clip = {"x": 0, "y": 0, "width": width, "height": height}

    async def load(self, document: str) -> None:
        await self._page.set_content(document, wait_until="domcontentloaded")

    async def pause(self) -> None:
        found = await self._page.evaluate(_PAUSE_JS)
        if not found:
            raise RasterizerError("Document contains no <svg> element")

    async def seek(self, time_seconds: float) -> None:
        await self._page.evaluate(_SEEK_JS, time_seconds)

    async def capture_bitmap(self) -> np.ndarray:
        png = await self._page.screenshot(type="png", clip=self._clip)
        return decode_png(png)

    async def close(self) -> None:
        try:
            await self._browser.close()
        finally:
            await self._playwright.stop()


class PlaywrightRasterizer(Rasterizer):
    """Opens one headless Chromium per session."""

    def __init__(self, headless: bool = True, args: list[str] | None = None):
        self.headless = headless
        self.args = list(CHROMIUM_ARGS if args is None else args)

    async def open(self, width: int, height: int, pixel_scale: float) -> PlaywrightSession:
        from playwright.async_api import async_playwright

        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(headless=self.headless, args=self.args)
            page = await browser.new_page(
                viewport={"width": width, "height": height},
                device_scale_factor=pixel_scale,
            )
        except BaseException:
            await playwright.stop()
            raise
        return PlaywrightSession(playwright, browser, page, width, height)


@contextmanager
def _rasterizer_errors(action: str):
    """Re-raise anything but RasterizerError as RasterizerError."""
    try:
        yield
    except RasterizerError:
        raise
    except Exception as e:
        raise RasterizerError(f"{action} failed: {str(e) or type(e).__name__}") from e


class CaptureDriver:
    """Captures frames of one SVG document at chosen animation times.

    Usage:
        async with CaptureDriver(PlaywrightRasterizer()) as driver:
            await driver.start(markup, viewport)
            for sample in plan:
                bitmap = await driver.capture(sample.timestamp)
    """

    def __init__(self, rasterizer: Rasterizer, settle_delay: float = DEFAULT_SETTLE_DELAY):
        self._rasterizer = rasterizer
        self._settle_delay = settle_delay
        self._session: RasterizerSession | None = None
        self._last_timestamp: float | None = None
        self.frames_captured = 0

    @property
    def is_started(self) -> bool:
        return self._session is not None

    async def start(self, markup: str, viewport: Viewport, background: str = "white") -> None:
        """Open a session, load the document and freeze its animation clock."""
        if self._session is not None:
            raise RasterizerError("Capture session already started")

        with _rasterizer_errors("Opening rasterizer session"):
            self._session = await self._rasterizer.open(
                viewport.width, viewport.height, viewport.pixel_scale
            )
        with _rasterizer_errors("Loading document"):
            await self._session.load(build_capture_document(markup, viewport, background))
        with _rasterizer_errors("Pausing animation clock"):
            await self._session.pause()
        logger.debug(f"Capture session ready: {viewport.width}x{viewport.height} @ {viewport.pixel_scale}x")

    async def capture(self, timestamp: float) -> np.ndarray:
        """Seek the animation clock to timestamp and snapshot the viewport."""
        if self._session is None:
            raise RasterizerError("Capture session not started")
        if self._last_timestamp is not None and timestamp < self._last_timestamp:
            raise RasterizerError(
                f"Capture timestamps must not decrease ({timestamp} after {self._last_timestamp})"
            )

        with _rasterizer_errors(f"Seeking to {timestamp:.3f}s"):
            await self._session.seek(timestamp)
        await asyncio.sleep(self._settle_delay)
        with _rasterizer_errors(f"Capturing frame at {timestamp:.3f}s"):
            bitmap = await self._session.capture_bitmap()

        if bitmap.ndim != 3 or bitmap.shape[2] != 4:
            raise RasterizerError(f"Expected an RGBA bitmap, got shape {bitmap.shape}")

        self._last_timestamp = timestamp
        self.frames_captured += 1
        return bitmap

    async def close(self) -> None:
        """Close the session. Safe to call more than once."""
        session, self._session = self._session, None
        if session is None:
            return
        try:
            await session.close()
        except Exception as e:
            logger.warning(f"Failed to close rasterizer session: {e}")

    async def __aenter__(self) -> "CaptureDriver":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
