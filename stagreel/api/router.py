"""Render job endpoints.

POST /generate            upload an SVG, returns a job id
GET  /progress/{job_id}   Server-Sent Events until the job finishes
GET  /download/{job_id}   the finished GIF
"""

import json
import re
from pathlib import PurePath
from typing import AsyncIterator

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import Response, StreamingResponse

from .. import __version__
from ..events import JobEvent
from ..exceptions import InvalidInputError, JobNotFoundError
from ..jobs import JobOrchestrator, Subscription

router = APIRouter()

# Form field -> RenderConfig field
_FORM_OPTIONS = {
    "fps": "fps",
    "width": "canvas_width",
    "scale": "device_pixel_scale",
    "quality": "quality",
    "hold": "hold_seconds",
    "bg": "background_color",
}

_UNSAFE_FILENAME_CHARS = re.compile(r'[^\x20-\x7e]|["\;]')


def get_orchestrator(request: Request) -> JobOrchestrator:
    """Job orchestrator of the running application."""
    return request.app.state.orchestrator


def output_filename(raw_name: str | None) -> str:
    """Derive the download name of the GIF from the uploaded name."""
    name = PurePath((raw_name or "").replace("\\", "/")).name
    name = _UNSAFE_FILENAME_CHARS.sub("_", name).strip()
    name = re.sub(r"\.svg$", "", name, flags=re.IGNORECASE)
    return f"{name or 'output'}.gif"


def format_sse(event: JobEvent) -> str:
    """Encode an event as one Server-Sent Events message."""
    return f"data: {json.dumps(event.to_dict())}\n\n"


async def _event_stream(subscription: Subscription) -> AsyncIterator[str]:
    try:
        async for event in subscription:
            yield format_sse(event)
    finally:
        subscription.close()


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@router.post("/generate")
async def generate(
    request: Request,
    svg: UploadFile | None = File(None),
    fps: int | None = Form(None),
    width: int | None = Form(None),
    scale: float | None = Form(None),
    quality: int | None = Form(None),
    hold: float | None = Form(None),
    bg: str | None = Form(None),
    filename: str | None = Form(None),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Start rendering an uploaded SVG.

    Returns immediately with the job id; follow /progress/{job_id} and fetch
    the result from /download/{job_id}.
    """
    if svg is None:
        raise HTTPException(status_code=400, detail="No SVG file uploaded.")

    max_bytes = request.app.state.settings.MAX_UPLOAD_BYTES
    data = await svg.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise HTTPException(status_code=413, detail=f"SVG file too large (max {max_bytes} bytes)")
    try:
        markup = data.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="SVG file is not valid UTF-8")

    values = {"fps": fps, "width": width, "scale": scale, "quality": quality, "hold": hold, "bg": bg}
    options = {_FORM_OPTIONS[key]: value for key, value in values.items() if value is not None}
    gif_name = output_filename(filename or svg.filename or "output.svg")

    try:
        job_id = orchestrator.submit(markup, options, display_name=gif_name)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"job_id": job_id, "filename": gif_name}


@router.get("/progress/{job_id}")
async def progress(
    job_id: str,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """Stream a job's progress as Server-Sent Events.

    Each message carries a JSON object with a "type" of "progress", "done"
    or "error". The stream closes after the done or error message.
    """
    try:
        subscription = orchestrator.subscribe(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")

    return StreamingResponse(
        _event_stream(subscription),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.get("/download/{job_id}")
async def download(
    job_id: str,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Download the GIF of a finished job."""
    try:
        data = orchestrator.fetch_result(job_id)
        job = orchestrator.get_job(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="GIF not ready or not found.")

    return Response(
        content=data,
        media_type="image/gif",
        headers={"Content-Disposition": f'attachment; filename="{job.display_name}"'},
    )
