"""Object-storage boundary for avatar and cover-image uploads."""

import asyncio
from pathlib import Path
from typing import Protocol
from uuid import uuid4

import structlog

from account_service.config import Settings
from account_service.errors import ValidationError

logger = structlog.get_logger(__name__)


class MediaStorage(Protocol):
    """Anything that can persist an uploaded file and return its public URL."""

    async def upload(self, filename: str, content: bytes) -> str: ...


class LocalMediaStorage:
    """Writes uploads under ``media_root`` and serves them from ``media_base_url``."""

    def __init__(self, settings: Settings):
        self.root = Path(settings.media_root)
        self.base_url = settings.media_base_url.rstrip("/")
        self.max_bytes = settings.max_upload_bytes

    def _write(self, stored_name: str, content: bytes) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / stored_name).write_bytes(content)

    async def upload(self, filename: str, content: bytes) -> str:
        """Store a file under a random name, keeping the original extension.

        Raises:
            ValidationError: If the file is empty or larger than ``max_upload_bytes``
        """
        if not content:
            raise ValidationError(f"Uploaded file '{filename}' is empty")
        if len(content) > self.max_bytes:
            raise ValidationError(
                f"Uploaded file '{filename}' exceeds {self.max_bytes} bytes"
            )

        stored_name = f"{uuid4().hex}{Path(filename).suffix.lower()}"
        await asyncio.to_thread(self._write, stored_name, content)

        logger.info("media_uploaded", original=filename, stored=stored_name, size=len(content))
        return f"{self.base_url}/{stored_name}"
