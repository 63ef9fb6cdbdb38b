from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, List, Optional

import httpx

from .artifacts import discard, unique_token
from .errors import DownloadFailedError, InvalidUploadError, SourceFileNotFoundError, UploadTooLargeError
from .types import ResolvedSource

logger = logging.getLogger("imgchain.resources")

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/bmp": ".bmp",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
    "image/tiff": ".tiff",
    "image/x-icon": ".ico",
}
DEFAULT_EXTENSION = ".jpg"
DEFAULT_TIMEOUT_S = 30.0

UPLOAD_EXTENSIONS = ("jpeg", "jpg", "png", "gif", "bmp", "webp", "svg", "tiff", "ico")
MAX_UPLOAD_BYTES = 100 * 1024 * 1024


def parse_http_url(value: str) -> Optional[httpx.URL]:
    """Return the parsed URL if `value` is an absolute http(s) URL, else None."""
    text = value.strip()
    if not text.lower().startswith(("http://", "https://")):
        return None
    try:
        url = httpx.URL(text)
    except (httpx.InvalidURL, TypeError, ValueError):
        return None
    if url.scheme not in ("http", "https") or not url.host:
        return None
    return url


def extension_for(url: httpx.URL, content_type: Optional[str]) -> str:
    suffix = PurePosixPath(url.path).suffix
    if suffix:
        return suffix.lower()
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    return CONTENT_TYPE_EXTENSIONS.get(mime, DEFAULT_EXTENSION)


class ResourceResolver:
    """Turn a filename-or-URL into a local file inside the uploads area.

    URLs are downloaded under a generated name (provenance "remote");
    anything else must name an existing file in `uploads_dir` ("local").
    """

    def __init__(
        self,
        uploads_dir: Path,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.uploads_dir = Path(uploads_dir)
        self.timeout_s = timeout_s
        self._client = client

    async def resolve(self, identifier: str) -> ResolvedSource:
        url = parse_http_url(identifier)
        if url is not None:
            path = await self.download(url)
            return ResolvedSource(path=path, filename=path.name, provenance="remote", requested=identifier)
        path = self.local_path(identifier)
        return ResolvedSource(path=path, filename=path.name, provenance="local", requested=identifier)

    def local_path(self, filename: str) -> Path:
        name = (filename or "").strip()
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise SourceFileNotFoundError(filename)
        path = self.uploads_dir / name
        if not path.is_file():
            raise SourceFileNotFoundError(filename)
        return path

    async def download(self, url: httpx.URL) -> Path:
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"[download] {url}")
        if self._client is not None:
            return await self._download_with(self._client, url)
        async with httpx.AsyncClient(timeout=self.timeout_s, follow_redirects=True) as client:
            return await self._download_with(client, url)

    async def _download_with(self, client: httpx.AsyncClient, url: httpx.URL) -> Path:
        # httpx timeouts are per phase; wait_for bounds the whole fetch.
        written: List[Path] = []
        try:
            return await asyncio.wait_for(self._fetch(client, url, written), timeout=self.timeout_s)
        except httpx.HTTPStatusError as exc:
            raise DownloadFailedError(str(url), f"HTTP {exc.response.status_code}") from exc
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            _discard_all(written)
            raise DownloadFailedError(str(url), f"timed out after {self.timeout_s:g}s") from exc
        except (httpx.HTTPError, OSError) as exc:
            _discard_all(written)
            raise DownloadFailedError(str(url), str(exc) or type(exc).__name__) from exc

    async def _fetch(self, client: httpx.AsyncClient, url: httpx.URL, written: List[Path]) -> Path:
        async with client.stream("GET", url, timeout=self.timeout_s) as r:
            r.raise_for_status()
            ext = extension_for(url, r.headers.get("content-type"))
            path = self.uploads_dir / f"downloaded_{unique_token()}{ext}"
            written.append(path)
            with path.open("wb") as f:
                async for chunk in r.aiter_bytes():
                    f.write(chunk)
        logger.info(f"[download] saved {path.name}")
        return path

    async def save_upload(
        self,
        original_name: str,
        content_type: Optional[str],
        chunks: AsyncIterator[bytes],
        *,
        max_bytes: int = MAX_UPLOAD_BYTES,
    ) -> Path:
        """Store an uploaded image in the uploads area under a generated name.

        Both the file extension and the declared content type must name one of
        UPLOAD_EXTENSIONS.
        """
        ext = PurePosixPath((original_name or "").replace("\\", "/")).suffix.lower()
        mime = (content_type or "").lower()
        if ext.lstrip(".") not in UPLOAD_EXTENSIONS or not any(kind in mime for kind in UPLOAD_EXTENSIONS):
            raise InvalidUploadError(f"Only image files are accepted: {', '.join(UPLOAD_EXTENSIONS)}")

        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        path = self.uploads_dir / f"{unique_token()}{ext}"
        size = 0
        try:
            with path.open("wb") as f:
                async for chunk in chunks:
                    size += len(chunk)
                    if size > max_bytes:
                        raise UploadTooLargeError(max_bytes)
                    f.write(chunk)
        except BaseException:
            discard(path)
            raise
        if size == 0:
            discard(path)
            raise InvalidUploadError("Uploaded file is empty")
        logger.info(f"[upload] saved {path.name} ({size} bytes)")
        return path


def _discard_all(paths: List[Path]) -> None:
    for path in paths:
        discard(path)
