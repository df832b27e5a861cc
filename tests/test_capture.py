"""Tests for the capture driver.

Most tests use the in-memory FakeRasterizer from conftest.py. The Playwright
test at the end needs a Chromium that Playwright can launch and is skipped
otherwise.
"""

import io

import numpy as np
import pytest
from PIL import Image

from stagreel.capture import (
    CaptureDriver,
    PlaywrightRasterizer,
    Viewport,
    build_capture_document,
    decode_png,
)
from stagreel.exceptions import RasterizerError
from stagreel.models import RenderConfig

from conftest import FakeRasterizer


class TestViewport:
    """Tests for viewport sizing."""

    def test_square_without_aspect_ratio(self):
        viewport = Viewport.for_animation(RenderConfig(canvas_width=640), None)
        assert (viewport.width, viewport.height) == (640, 640)

    def test_aspect_ratio(self):
        viewport = Viewport.for_animation(RenderConfig(canvas_width=800, device_pixel_scale=2), 0.5)
        assert (viewport.width, viewport.height) == (800, 400)
        assert viewport.pixel_size == (1600, 800)


class TestCaptureDocument:
    """Tests for the HTML page embedding the SVG."""

    def test_embeds_markup_and_sizes(self, animated_svg):
        document = build_capture_document(animated_svg, Viewport(800, 400), background="#123456")
        assert animated_svg in document
        assert "width:800px;height:400px" in document
        assert "background:#123456" in document
        assert "svg{width:680px;height:auto}" in document


class TestCaptureDriver:
    """Tests for CaptureDriver against the fake rasterizer."""

    async def test_start_opens_loads_and_pauses(self, animated_svg, fake_rasterizer):
        driver = CaptureDriver(fake_rasterizer, settle_delay=0)
        await driver.start(animated_svg, Viewport(16, 8, 2.0))

        assert fake_rasterizer.calls == [("open", 16, 8, 2.0), ("load",), ("pause",)]
        assert animated_svg in fake_rasterizer.sessions[0].document
        await driver.close()

    async def test_capture_seeks_then_snapshots(self, animated_svg, fake_rasterizer):
        async with CaptureDriver(fake_rasterizer, settle_delay=0) as driver:
            await driver.start(animated_svg, Viewport(16, 8, 1.0))
            bitmap = await driver.capture(0.5)
            await driver.capture(0.5)
            await driver.capture(1.25)

        assert bitmap.shape == (8, 16, 4)
        assert bitmap.dtype == np.uint8
        assert fake_rasterizer.calls[3:] == [
            ("seek", 0.5), ("capture", 0.5),
            ("seek", 0.5), ("capture", 0.5),
            ("seek", 1.25), ("capture", 1.25),
            ("close",),
        ]
        assert driver.frames_captured == 3

    async def test_rejects_backward_seek(self, animated_svg, fake_rasterizer):
        async with CaptureDriver(fake_rasterizer, settle_delay=0) as driver:
            await driver.start(animated_svg, Viewport(16, 8))
            await driver.capture(1.0)
            with pytest.raises(RasterizerError):
                await driver.capture(0.5)

    async def test_capture_before_start(self, fake_rasterizer):
        with pytest.raises(RasterizerError):
            await CaptureDriver(fake_rasterizer).capture(0.0)

    async def test_open_failure(self, animated_svg):
        driver = CaptureDriver(FakeRasterizer(fail_on_open=True), settle_delay=0)
        with pytest.raises(RasterizerError, match="browser not installed") as exc_info:
            await driver.start(animated_svg, Viewport(16, 8))
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert not driver.is_started

    async def test_capture_failure_closes_session(self, animated_svg):
        rasterizer = FakeRasterizer(fail_on_capture=2)
        with pytest.raises(RasterizerError, match="renderer crashed"):
            async with CaptureDriver(rasterizer, settle_delay=0) as driver:
                await driver.start(animated_svg, Viewport(16, 8))
                await driver.capture(0.0)
                await driver.capture(0.1)

        assert rasterizer.sessions[0].closed

    async def test_close_is_idempotent(self, animated_svg, fake_rasterizer):
        driver = CaptureDriver(fake_rasterizer, settle_delay=0)
        await driver.start(animated_svg, Viewport(16, 8))
        await driver.close()
        await driver.close()
        assert fake_rasterizer.calls.count(("close",)) == 1


class TestDecodePng:
    """Tests for screenshot decoding."""

    def test_decodes_rgb_to_rgba(self):
        buffer = io.BytesIO()
        Image.new("RGB", (3, 2), (10, 20, 30)).save(buffer, format="PNG")
        bitmap = decode_png(buffer.getvalue())
        assert bitmap.shape == (2, 3, 4)
        assert tuple(bitmap[0, 0]) == (10, 20, 30, 255)


@pytest.fixture
async def chromium():
    """Playwright rasterizer, skipped when Chromium cannot be launched."""
    pytest.importorskip("playwright.async_api")
    rasterizer = PlaywrightRasterizer()
    try:
        session = await rasterizer.open(32, 32, 1.0)
    except Exception as e:
        pytest.skip(f"Chromium not available: {e}")
    await session.close()
    return rasterizer


@pytest.mark.playwright
class TestPlaywrightRasterizer:
    """End-to-end capture with a real browser."""

    async def test_captures_animation_states(self, chromium):
        markup = (
            '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 10 10">'
            '<rect width="10" height="10" fill="rgb(255,0,0)">'
            '<animate attributeName="fill" values="rgb(255,0,0);rgb(0,0,255)" calcMode="discrete" '
            'keyTimes="0;0.5" dur="2s" fill="freeze"/>'
            "</rect></svg>"
        )
        async with CaptureDriver(chromium) as driver:
            await driver.start(markup, Viewport(40, 40, 1.0))
            start = await driver.capture(0.0)
            end = await driver.capture(2.0)

        assert start.shape == (40, 40, 4)
        center_start = start[20, 20]
        center_end = end[20, 20]
        assert center_start[0] > 200 and center_start[2] < 50
        assert center_end[2] > 200 and center_end[0] < 50
