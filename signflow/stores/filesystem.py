"""
Blob store on the local filesystem.
"""
import uuid
import logging
from datetime import datetime, timezone
from pathlib import Path

import aiofiles

from .base import BlobStore

logger = logging.getLogger(__name__)


class FileSystemBlobStore(BlobStore):
    """Stores blobs as files: <root>/<year>/<month>/<uuid>.pdf"""

    def __init__(self, storage_path: str):
        self.storage_path = Path(storage_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)

    async def put(self, data: bytes) -> str:
        now = datetime.now(timezone.utc)
        dir_path = self.storage_path / str(now.year) / f"{now.month:02d}"
        dir_path.mkdir(parents=True, exist_ok=True)

        file_path = dir_path / f"{uuid.uuid4().hex}.pdf"
        async with aiofiles.open(file_path, "wb") as f:
            await f.write(data)

        # Relative path is the handle
        relative_path = str(file_path.relative_to(self.storage_path))
        logger.debug(f"Stored {len(data)} bytes as {relative_path}")
        return relative_path

    async def get(self, handle: str) -> bytes:
        file_path = (self.storage_path / handle).resolve()
        if self.storage_path.resolve() not in file_path.parents:
            raise KeyError(f"Handle outside of storage root: {handle}")
        async with aiofiles.open(file_path, "rb") as f:
            return await f.read()
