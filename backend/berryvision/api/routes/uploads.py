import logging
import time
import uuid
from pathlib import Path
from typing import Any

from fastapi import APIRouter, File, HTTPException, UploadFile

from berryvision.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "heic"}


def _extension(filename: str | None) -> str:
    ext = (filename or "").rsplit(".", 1)[-1].lower() if "." in (filename or "") else ""
    return ext if ext in ALLOWED_EXTENSIONS else "jpg"


@router.post("/upload-image")
async def upload_image(file: UploadFile | None = File(None)) -> Any:
    """Store an uploaded photo in the upload folder and return its public URL."""
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if file.content_type and not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail=f"Unsupported file type: {file.content_type}")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail="Uploaded file is too large")

    upload_dir = Path(settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    filename = f"training_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.{_extension(file.filename)}"
    (upload_dir / filename).write_bytes(content)
    logger.info(f"Stored upload {filename} ({len(content)} bytes)")

    return {"success": True, "image_url": f"{settings.UPLOAD_URL_PREFIX.rstrip('/')}/{filename}"}
