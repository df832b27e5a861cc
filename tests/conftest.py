"""
Pytest fixtures for stagreel tests

Provides an in-memory rasterizer so pipeline, job and API tests run without
a browser. Each captured bitmap is filled with a color derived from the
animation time, which keeps consecutive GIF frames distinct.
"""

import asyncio

import numpy as np
import pytest

from stagreel.capture import Rasterizer, RasterizerSession
from stagreel.jobs import JobOrchestrator, JobRegistry
from stagreel.models import RenderConfig

ANIMATED_SVG = """<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 50">
  <rect width="100" height="50" fill="white"/>
  <circle cx="10" cy="25" r="8" fill="red">
    <animate attributeName="cx" from="10" to="90" begin="0.5s" dur="2s" fill="freeze"/>
  </circle>
</svg>"""

STATIC_SVG = """<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 10 10">
  <rect width="10" height="10" fill="blue"/>
</svg>"""


class FakeSession(RasterizerSession):
    """Session recording every call on its rasterizer."""

    def __init__(self, rasterizer: "FakeRasterizer", width: int, height: int, pixel_scale: float):
        self._rasterizer = rasterizer
        self.width = round(width * pixel_scale)
        self.height = round(height * pixel_scale)
        self.document: str | None = None
        self.time = 0.0
        self.closed = False

    async def load(self, document: str) -> None:
        self._rasterizer.calls.append(("load",))
        self.document = document

    async def pause(self) -> None:
        self._rasterizer.calls.append(("pause",))

    async def seek(self, time_seconds: float) -> None:
        self._rasterizer.calls.append(("seek", time_seconds))
        self.time = time_seconds

    async def capture_bitmap(self) -> np.ndarray:
        rasterizer = self._rasterizer
        rasterizer.captures += 1
        if rasterizer.gate is not None and rasterizer.captures > rasterizer.gate_after:
            await rasterizer.gate.wait()
        if rasterizer.fail_on_capture == rasterizer.captures:
            raise RuntimeError("renderer crashed")
        rasterizer.calls.append(("capture", self.time))

        bitmap = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        bitmap[..., 0] = int(self.time * 40) % 256
        bitmap[..., 1] = rasterizer.captures * 10 % 256
        bitmap[..., 3] = 255
        return bitmap

    async def close(self) -> None:
        self._rasterizer.calls.append(("close",))
        self.closed = True


class FakeRasterizer(Rasterizer):
    """Rasterizer double.

    Args:
        fail_on_open: Raise when a session is opened.
        fail_on_capture: Raise on the n-th capture (1-based, counted across sessions).
        gate: If set, captures wait for this event.
        gate_after: Number of captures allowed before the gate applies.
    """

    def __init__(self, fail_on_open: bool = False, fail_on_capture: int | None = None,
                 gate: asyncio.Event | None = None, gate_after: int = 0):
        self.fail_on_open = fail_on_open
        self.fail_on_capture = fail_on_capture
        self.gate = gate
        self.gate_after = gate_after
        self.calls: list[tuple] = []
        self.sessions: list[FakeSession] = []
        self.captures = 0

    async def open(self, width: int, height: int, pixel_scale: float) -> FakeSession:
        self.calls.append(("open", width, height, pixel_scale))
        if self.fail_on_open:
            raise RuntimeError("browser not installed")
        session = FakeSession(self, width, height, pixel_scale)
        self.sessions.append(session)
        return session

    @property
    def seeks(self) -> list[float]:
        return [call[1] for call in self.calls if call[0] == "seek"]


@pytest.fixture
def animated_svg() -> str:
    return ANIMATED_SVG


@pytest.fixture
def static_svg() -> str:
    return STATIC_SVG


@pytest.fixture
def small_config() -> RenderConfig:
    """Tiny, fast render: 16x8 px canvas for ANIMATED_SVG, 4 fps."""
    return RenderConfig(fps=4, canvas_width=16, device_pixel_scale=1, hold_seconds=0.5)


@pytest.fixture
def fake_rasterizer() -> FakeRasterizer:
    return FakeRasterizer()


@pytest.fixture
async def orchestrator(fake_rasterizer):
    """Orchestrator backed by the fake rasterizer, without settle delays."""
    orchestrator = JobOrchestrator(
        registry=JobRegistry(),
        rasterizer=fake_rasterizer,
        settle_delay=0,
    )
    yield orchestrator
    await orchestrator.shutdown()
