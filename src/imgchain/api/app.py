from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from ..config import ServiceConfig
from ..errors import (
    DownloadFailedError,
    EmptyPipelineError,
    EngineInvocationError,
    InvalidOperationTypeError,
    InvalidUploadError,
    MissingRequiredParameterError,
    PipelineError,
    SourceFileNotFoundError,
    UnsupportedOperationTypeError,
    UploadTooLargeError,
)
from ..logging import setup_logging
from ..resources import parse_http_url
from ..service import ImageProcessingService
from ..utils.images import describe_image

app = FastAPI(title="imgchain", version="0.1.0")
logger = logging.getLogger("imgchain.api")


def _cors_origins() -> list[str]:
    raw = os.getenv("IMGCHAIN_CORS_ORIGINS", "").strip()
    if not raw:
        return ["*"]
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)

_STATUS_BY_ERROR = (
    (UploadTooLargeError, 413),
    (InvalidUploadError, 400),
    (EmptyPipelineError, 400),
    (InvalidOperationTypeError, 400),
    (UnsupportedOperationTypeError, 400),
    (MissingRequiredParameterError, 400),
    (SourceFileNotFoundError, 404),
    (DownloadFailedError, 502),
    (EngineInvocationError, 500),
)


def status_for(exc: PipelineError) -> int:
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status
    return 500


@lru_cache(maxsize=1)
def get_service() -> ImageProcessingService:
    cfg = ServiceConfig.from_env()
    setup_logging(cfg.log_level)
    return ImageProcessingService(cfg)


class OperationPayload(BaseModel):
    type: Optional[str] = None
    params: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def _none_params(cls, v: Any) -> Any:
        return {} if v is None else v


class ProcessRequest(BaseModel):
    filename: str
    operations: List[OperationPayload]


class InfoRequest(BaseModel):
    filename: str


@app.exception_handler(PipelineError)
async def _pipeline_error_handler(_, exc: PipelineError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error(f"pipeline failed: {exc}")
    return JSONResponse(status_code=status, content={"success": False, "error": exc.message, "detail": exc.to_dict()})


@app.exception_handler(HTTPException)
async def _http_error_handler(_, exc: HTTPException) -> JSONResponse:
    message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": message, "detail": {"type": "HTTPException", "message": message}},
        headers=getattr(exc, "headers", None),
    )


@app.get("/api/health")
async def health() -> JSONResponse:
    status = await get_service().engine.check_installation()
    if not status.get("installed"):
        return JSONResponse(status_code=500, content={"status": "unhealthy", "imagemagick": status})
    return JSONResponse({"status": "healthy", "imagemagick": status})


@app.post("/api/info")
async def info(req: InfoRequest) -> Dict[str, Any]:
    service = get_service()
    path = service.resolver.local_path(req.filename)
    return {"success": True, "info": describe_image(path)}


@app.post("/api/process")
async def process(req: ProcessRequest) -> Dict[str, Any]:
    """Run an operation chain against an uploaded filename or an http(s) URL."""
    if not req.filename.strip():
        raise HTTPException(status_code=400, detail="filename is required")
    operations = [op.model_dump() for op in req.operations]
    result = await get_service().process(req.filename, operations)
    return result.to_dict()


async def _chunks(upload: UploadFile, size: int = 1024 * 1024) -> AsyncIterator[bytes]:
    while True:
        chunk = await upload.read(size)
        if not chunk:
            break
        yield chunk


def _upload_result(path: Path, original_name: str, source: str) -> Dict[str, Any]:
    return {
        "success": True,
        "filename": path.name,
        "originalName": original_name,
        "path": f"/uploads/{path.name}",
        "size": path.stat().st_size,
        "source": source,
    }


@app.post("/api/upload")
async def upload(request: Request) -> Dict[str, Any]:
    """Put an image into the uploads area.

    Accepts either a multipart form with an `image` file field, or a JSON
    body `{"url": "https://..."}` whose target is downloaded.
    """
    resolver = get_service().resolver
    if request.headers.get("content-type", "").startswith("multipart/form-data"):
        form = await request.form()
        image = form.get("image")
        # plain form fields come back as str
        if image is None or isinstance(image, str):
            raise HTTPException(status_code=400, detail="No file uploaded")
        path = await resolver.save_upload(image.filename or "", image.content_type, _chunks(image))
        return _upload_result(path, image.filename or path.name, "local")

    try:
        payload = await request.json()
    except ValueError:
        payload = None
    raw_url = payload.get("url") if isinstance(payload, dict) else None
    url = parse_http_url(raw_url) if isinstance(raw_url, str) else None
    if url is None:
        raise HTTPException(status_code=400, detail="Invalid URL")
    path = await resolver.download(url)
    return _upload_result(path, PurePosixPath(url.path).name or "downloaded_image", "url")
