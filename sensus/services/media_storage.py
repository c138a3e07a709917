import logging
import time
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)


def content_type_for(mime_type: str | None) -> str:
    """Uploads are images when the client says so; everything else is treated as audio."""
    if mime_type and mime_type.startswith("image"):
        return "image"
    return "audio"


class MediaStorage:
    """File-backed blob area for image and audio payloads."""

    def __init__(self, upload_dir: str) -> None:
        self._upload_dir = Path(upload_dir)

    def save(self, filename: str, data: bytes) -> str:
        """Write the payload and return the stored path used as the submission content."""
        self._upload_dir.mkdir(parents=True, exist_ok=True)
        safe_name = Path(filename or "upload").name or "upload"
        path = self._upload_dir / f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{safe_name}"
        path.write_bytes(data)
        logger.info("[media] stored | path=%s | bytes=%d", path, len(data))
        return str(path)
