"""stagreel command line.

    stagreel render logo.svg                 # writes logo.gif next to it
    stagreel render logo.svg out/logo.gif --fps=15 --width=560 --scale=1 --quality=5
    stagreel serve --port 3000
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from .capture import PlaywrightRasterizer, Viewport
from .config import settings
from .events import ProgressEvent
from .exceptions import StagreelError
from .models import RenderConfig
from .pipeline import render_animation, resolve_spec
from .planner import FramePhase, check_frame_budget


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stagreel", description="Render animated SVGs into GIFs")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    render = commands.add_parser("render", help="Render an SVG file into a GIF")
    render.add_argument("input", type=Path, help="SVG file")
    render.add_argument("output", type=Path, nargs="?", default=None,
                        help="GIF file (default: input path with .gif)")
    render.add_argument("--fps", type=int, default=24, help="Frames per second (default: 24)")
    render.add_argument("--width", type=int, default=800, help="Canvas width in px (default: 800)")
    render.add_argument("--scale", type=float, default=2.0, help="Device pixel ratio (default: 2)")
    render.add_argument("--quality", type=int, default=1, help="GIF quality 1=best 30=fast (default: 1)")
    render.add_argument("--hold", type=float, default=2.0, help="Hold last frame in seconds (default: 2)")
    render.add_argument("--bg", default="white", help="Background color (default: white)")
    render.add_argument("--duration", type=float, default=None,
                        help="Animation duration in seconds (default: detected)")
    render.add_argument("--palette", default="mediancut",
                        choices=["mediancut", "maxcoverage", "fastoctree"],
                        help="Palette quantizer (default: mediancut)")

    serve = commands.add_parser("serve", help="Run the HTTP render service")
    serve.add_argument("--port", "-p", type=int, default=None,
                       help=f"HTTP port (default: {settings.PORT}, env: STAGREEL_PORT)")
    serve.add_argument("--host", "-H", default=None,
                       help=f"Host to bind to (default: {settings.HOST}, env: STAGREEL_HOST)")
    serve.add_argument("--reload", action="store_true", help="Enable auto-reload")
    return parser


def _print_progress(event: ProgressEvent) -> None:
    if event.phase == FramePhase.HOLDING:
        print("  Adding hold frame...")
    else:
        print(f"  Frame {event.current} / {event.total}")


def run_render(args: argparse.Namespace) -> int:
    svg_path = args.input.resolve()
    if not svg_path.is_file():
        print(f"Error: SVG file not found: {svg_path}", file=sys.stderr)
        return 1
    output = (args.output or svg_path.with_suffix(".gif")).resolve()

    try:
        config = RenderConfig(
            fps=args.fps,
            canvas_width=args.width,
            device_pixel_scale=args.scale,
            quality=args.quality,
            hold_seconds=args.hold,
            background_color=args.bg,
            duration_override=args.duration,
            palette_mode=args.palette,
        )
    except ValidationError as e:
        print(f"Error: invalid options:\n{e}", file=sys.stderr)
        return 1

    try:
        markup = svg_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: cannot read {svg_path}: {e}", file=sys.stderr)
        return 1
    spec = resolve_spec(markup, config)
    try:
        check_frame_budget(spec, config, settings.MAX_FRAMES)
    except StagreelError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    viewport = Viewport.for_animation(config, spec.aspect_ratio)

    print(f"\nSVG  : {svg_path}")
    print(f"OUT  : {output}")
    print(f"Size : {viewport.width}x{viewport.height} @ {viewport.pixel_scale:g}x")
    print(f"FPS  : {config.fps}   Duration: {spec.duration_seconds:.2f}s + {config.hold_seconds:g}s hold\n")

    try:
        result = asyncio.run(
            render_animation(
                markup,
                config,
                rasterizer=PlaywrightRasterizer(headless=settings.BROWSER_HEADLESS),
                on_progress=_print_progress,
                settle_delay=settings.SETTLE_DELAY_SECONDS,
                max_frames=settings.MAX_FRAMES,
            )
        )
    except StagreelError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(result.data)
    print(f"\nDone: {output}  ({result.size / 1024:.0f} KB)")
    return 0


def run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    host = args.host or settings.HOST
    port = args.port or settings.PORT
    print(f"[stagreel] Starting HTTP server on {host}:{port}")
    uvicorn.run(
        "stagreel.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=args.reload,
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the command line."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command == "render":
        return run_render(args)
    return run_serve(args)


if __name__ == "__main__":
    sys.exit(main())
