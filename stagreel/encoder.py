"""GIF assembly.

GifEncoder collects frames into a palette GIF with Pillow. encode_frames()
feeds it from an async stream of captured bitmaps, running the quantization
work in a worker thread so the event loop keeps serving other jobs.
"""

import asyncio
import io
import logging
from contextlib import contextmanager
from typing import AsyncIterable

import numpy as np
from PIL import Image

from .exceptions import EncoderError

logger = logging.getLogger(__name__)

QUANTIZE_METHODS = {
    "mediancut": Image.Quantize.MEDIANCUT,
    "maxcoverage": Image.Quantize.MAXCOVERAGE,
    "fastoctree": Image.Quantize.FASTOCTREE,
}

MIN_QUALITY = 1
MAX_QUALITY = 30
# Qualities up to this value are dithered
DITHER_QUALITY_LIMIT = 10


def palette_colors(quality: int) -> int:
    """Palette size for a quality level: 256 colors at 1, fewer for faster levels."""
    return max(16, 256 - (quality - 1) * 8)


def quantize_frame(
    image: Image.Image,
    colors: int,
    method: Image.Quantize = Image.Quantize.MEDIANCUT,
    dither: Image.Dither = Image.Dither.FLOYDSTEINBERG,
) -> Image.Image:
    """Reduce an image to a palette image of at most `colors` colors.

    Pillow only applies dithering when remapping onto an existing palette,
    so the palette is computed first and the image is then mapped onto it.
    """
    # Median cut and max coverage only accept RGB input
    rgb = image.convert("RGB")
    palette = rgb.quantize(colors=colors, method=method)
    return rgb.quantize(palette=palette, dither=dither)


class GifEncoder:
    """Incremental animated GIF writer.

    Configure with set_quality() before the first append_frame(); frames are
    written in the order they are appended.
    """

    def __init__(
        self,
        width: int,
        height: int,
        palette_mode: str = "mediancut",
        loop_forever: bool = True,
    ):
        if palette_mode not in QUANTIZE_METHODS:
            raise EncoderError(f"Unknown palette mode: {palette_mode!r}")
        if width <= 0 or height <= 0:
            raise EncoderError(f"Invalid frame size: {width}x{height}")
        self.width = width
        self.height = height
        self.palette_mode = palette_mode
        self.loop_forever = loop_forever
        self.quality = MIN_QUALITY
        self._frames: list[Image.Image] = []
        self._delays: list[int] = []
        self._finished = False

    def set_quality(self, quality: int) -> None:
        """Set the quality level (1 = best, 30 = fastest)."""
        if self._frames:
            raise EncoderError("Quality cannot change after frames were added")
        if not MIN_QUALITY <= quality <= MAX_QUALITY:
            raise EncoderError(f"Quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}")
        self.quality = quality

    def append_frame(self, bitmap: np.ndarray, delay_ms: int) -> None:
        """Quantize an RGBA bitmap of shape (height, width, 4) and append it."""
        if self._finished:
            raise EncoderError("Encoder already finished")
        if bitmap.shape[:2] != (self.height, self.width):
            raise EncoderError(
                f"Frame size {bitmap.shape[1]}x{bitmap.shape[0]} does not match "
                f"encoder size {self.width}x{self.height}"
            )
        if delay_ms < 0:
            raise EncoderError(f"Negative frame delay: {delay_ms}")

        image = Image.fromarray(np.ascontiguousarray(bitmap, dtype=np.uint8))
        dither = (
            Image.Dither.FLOYDSTEINBERG
            if self.quality <= DITHER_QUALITY_LIMIT
            else Image.Dither.NONE
        )
        quantized = quantize_frame(
            image, palette_colors(self.quality), QUANTIZE_METHODS[self.palette_mode], dither
        )
        self._frames.append(quantized)
        self._delays.append(int(delay_ms))

    def finish(self) -> bytes:
        """Write all frames and return the GIF bytes."""
        if not self._frames:
            raise EncoderError("No frames to encode")
        self._finished = True

        options = {
            "format": "GIF",
            "save_all": True,
            "append_images": self._frames[1:],
            "duration": self._delays,
            "disposal": 1,
        }
        if self.loop_forever:
            options["loop"] = 0

        buffer = io.BytesIO()
        self._frames[0].save(buffer, **options)
        return buffer.getvalue()


@contextmanager
def _encoder_errors(action: str):
    """Re-raise anything but EncoderError as EncoderError."""
    try:
        yield
    except EncoderError:
        raise
    except Exception as e:
        raise EncoderError(f"{action} failed: {str(e) or type(e).__name__}") from e


async def encode_frames(
    frames: AsyncIterable[tuple[np.ndarray, int]],
    quality: int = MIN_QUALITY,
    palette_mode: str = "mediancut",
    encoder_factory=GifEncoder,
) -> bytes:
    """Encode a stream of (bitmap, delay_ms) pairs into a looping GIF.

    The encoder is created from the size of the first frame and configured
    once before that frame is appended. No bytes are returned until the
    stream is exhausted.

    Raises:
        EncoderError: If the stream is empty or the encoder fails.
    """
    encoder = None
    count = 0
    async for bitmap, delay_ms in frames:
        if encoder is None:
            height, width = bitmap.shape[:2]
            with _encoder_errors("Creating encoder"):
                encoder = encoder_factory(width, height, palette_mode, True)
                encoder.set_quality(quality)
        with _encoder_errors("Appending frame"):
            await asyncio.to_thread(encoder.append_frame, bitmap, delay_ms)
        count += 1

    if encoder is None:
        raise EncoderError("No frames to encode")

    with _encoder_errors("Finishing GIF"):
        data = await asyncio.to_thread(encoder.finish)
    logger.debug(f"Encoded {count} frames into {len(data)} bytes")
    return data
