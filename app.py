#!/usr/bin/env python3
"""
TikSound Extractor - Pulls the original sound out of a TikTok clip
Probes the clip with yt-dlp, downloads it if the audio looks original, transcodes to MP3 with ffmpeg
"""

import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse

from constants import DOWNLOAD_CACHE_SECONDS, MSG_FAILED, MSG_INVALID_URL, VERSION
from middleware import RateLimitMiddleware
from models import ExtractRequest, ExtractResponse
from pipeline import process_extraction
from scratch import RetentionSweeper, resolve_audio_file
from settings import ToolConfig, get_tool_config


# =============================================================================
# Application Setup
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_tool_config()
    config.scratch_dir.mkdir(parents=True, exist_ok=True)
    if config.retention_seconds <= config.longest_pipeline_seconds:
        print(
            f"WARNING: retention window ({config.retention_seconds}s) is shorter than the "
            f"longest possible extraction ({config.longest_pipeline_seconds}s); the sweeper "
            "may delete files mid-request."
        )

    sweeper = RetentionSweeper(config.scratch_dir, config.sweep_interval_seconds, config.retention_seconds)
    sweeper.start()
    print(f"TikSound {VERSION} ({config.environment}) - scratch directory: {config.scratch_dir}")
    print(f"yt-dlp: {config.ytdlp_path}  ffmpeg: {config.ffmpeg_path}")
    try:
        yield
    finally:
        sweeper.stop()


app = FastAPI(title="TikSound Extractor", version=VERSION, lifespan=lifespan)

# Register middleware
app.add_middleware(RateLimitMiddleware)


def _error(status_code: int, message: str) -> JSONResponse:
    body = ExtractResponse(status="error", message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies get the same answer as a bad URL."""
    if request.url.path == "/extract":
        return _error(400, MSG_INVALID_URL)
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


# =============================================================================
# Extraction API
# =============================================================================

def _download_url(request: Request, config: ToolConfig, filename: str) -> str:
    base = config.public_base_url or str(request.base_url).rstrip("/")
    return f"{base}/download/{filename}"


@app.post("/extract")
def extract(body: ExtractRequest, request: Request, config: ToolConfig = Depends(get_tool_config)):
    """Check a TikTok clip for original sound and, if it has it, extract the MP3"""
    try:
        result = process_extraction(body.url, config)
    except Exception as e:
        print(f"Extraction error: {type(e).__name__}: {e}")
        return _error(500, MSG_FAILED)

    if result.outcome == "rejected":
        return _error(400, result.message)
    if result.outcome == "failed":
        return _error(500, result.message)

    if result.outcome == "filtered":
        response = ExtractResponse(status="success", original_sound=False, message=result.message)
    else:
        response = ExtractResponse(
            status="success",
            original_sound=True,
            download_url=_download_url(request, config, result.audio_filename),
            title=result.title,
            message=result.message,
        )
    return response.model_dump(by_alias=True, exclude_none=True)


@app.get("/download/{filename}")
def download(filename: str, config: ToolConfig = Depends(get_tool_config)):
    """Serve an extracted MP3 as an attachment"""
    file_path = resolve_audio_file(config.scratch_dir, filename)
    if file_path is None:
        return JSONResponse(status_code=404, content={"error": "File not found"})

    return FileResponse(
        file_path,
        media_type="audio/mpeg",
        filename=f"tiktok_sound_{int(time.time() * 1000)}.mp3",
        headers={"Cache-Control": f"public, max-age={DOWNLOAD_CACHE_SECONDS}"},
    )


@app.get("/health")
def health():
    return {"status": "ok", "message": "TikSound Extractor Backend is running", "version": VERSION}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_tool_config().port)
