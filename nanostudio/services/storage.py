"""
Storage Service
Local on-disk cache of generated images with a prompt sidecar file.
"""

import logging
from pathlib import Path
from typing import Optional

import httpx

from nanostudio.core.config import settings
from nanostudio.models.generation import Generation
from nanostudio.services.normalizer import is_data_uri, split_data_uri

logger = logging.getLogger(__name__)


class StorageService:
    """Service for locally cached generation files."""

    def __init__(self, base_path: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_path = Path(base_path or settings.LOCAL_STORAGE_PATH)
        self._transport = transport

    async def _image_bytes(self, image: str) -> bytes:
        if is_data_uri(image):
            data, _ = split_data_uri(image)
            return data
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.get(image, timeout=30.0)
            response.raise_for_status()
            return response.content

    async def cache_image(self, generation: Generation) -> Optional[str]:
        """
        Write the generation's image to disk with a .txt prompt sidecar.

        Returns the local path, or None when there is nothing to cache or the
        download fails. Caching never fails a generation.
        """
        if not generation.image_url:
            return None
        try:
            data = await self._image_bytes(generation.image_url)
            folder = self.base_path / "generations"
            folder.mkdir(parents=True, exist_ok=True)
            image_path = folder / f"{generation.id}.png"
            image_path.write_bytes(data)
            image_path.with_suffix(".txt").write_text(generation.prompt or "", encoding="utf-8")
            logger.info(f"[Storage] Cached generation {generation.id} at {image_path}")
            return str(image_path)
        except Exception as e:
            logger.error(f"[Storage] Failed to cache generation {generation.id}: {e}")
            return None

    def remove_cached(self, local_path: Optional[str]) -> bool:
        """
        Delete a cached image and its sidecar.

        Returns False (after logging) when the file cannot be removed; callers
        still delete the database row.
        """
        if not local_path:
            return True
        path = Path(local_path)
        try:
            if path.exists():
                path.unlink()
            sidecar = path.with_suffix(".txt")
            if sidecar.exists():
                sidecar.unlink()
            return True
        except OSError as e:
            logger.error(f"[Storage] Failed to delete file {local_path}: {e}")
            return False
