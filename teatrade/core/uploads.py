"""
Single-file upload gate for CSV/Excel imports

A file whose MIME type is not CSV/Excel, or which exceeds the size cap, is
dropped: the handler sees no file instead of an error.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from starlette.datastructures import UploadFile

logger = logging.getLogger(__name__)

UPLOAD_FIELD = "file"
DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024

ALLOWED_MIME_TYPES = frozenset({
    "text/csv",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
})


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


async def accept_upload(upload: UploadFile,
                        max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> Optional[UploadedFile]:
    """Read ``upload`` if it is an allowed type within the size cap, else None"""
    content_type = (upload.content_type or "").split(";")[0].strip().lower()
    if content_type not in ALLOWED_MIME_TYPES:
        logger.info(f"Ignoring upload {upload.filename!r} with type {content_type!r}")
        return None

    content = await upload.read(max_bytes + 1)
    if len(content) > max_bytes:
        logger.info(f"Ignoring upload {upload.filename!r}: larger than {max_bytes} bytes")
        return None

    return UploadedFile(filename=upload.filename or "upload", content_type=content_type, content=content)


async def upload_single_file(request: Request) -> Optional[UploadedFile]:
    """
    FastAPI dependency reading the multipart field ``file``.

    Returns:
        UploadedFile, or None when nothing acceptable was attached
    """
    form = await request.form()
    upload = form.get(UPLOAD_FIELD)
    if not isinstance(upload, UploadFile):
        return None

    max_bytes = request.app.state.settings.MAX_UPLOAD_BYTES
    return await accept_upload(upload, max_bytes)
