"""
Object storage for uploaded images.

Blobs are stored under ``<folder>/<uuid>.<ext>`` and served back through the
``/media`` route, so the public URL is ``<PUBLIC_BASE_URL>/media/<folder>/<name>``.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

import gridfs
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.concurrency import run_in_threadpool

from errors import RecordNotFound, RuleViolation, StoreError

logger = logging.getLogger(__name__)

MEDIA_PREFIX = "/media/"


@dataclass
class ImageUpload:
    filename: str
    content_type: str
    data: bytes


def check_image(upload: ImageUpload) -> None:
    if not (upload.content_type or "").startswith("image/"):
        raise RuleViolation(f"{upload.filename or 'File'} is not an image")


def _object_name(filename: str, folder: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in (filename or "") else "bin"
    return f"{folder.strip('/')}/{uuid.uuid4()}.{ext}"


class ImageStore:
    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{MEDIA_PREFIX}{path}"

    def path_from_url(self, url: str) -> str:
        path = urlparse(url).path
        if not path.startswith(MEDIA_PREFIX):
            raise RecordNotFound(f"Not a stored image: {url}")
        return path[len(MEDIA_PREFIX):]

    def upload(self, upload: ImageUpload, folder: str = "images") -> str:
        check_image(upload)
        path = _object_name(upload.filename, folder)
        self._put(path, upload)
        url = self.url_for(path)
        logger.info(f"Image uploaded to {path}")
        return url

    async def upload_many(self, uploads: List[ImageUpload], folder: str = "images") -> List[str]:
        """Upload concurrently; a single failure fails the whole batch."""
        for upload in uploads:
            check_image(upload)
        return list(await asyncio.gather(
            *(run_in_threadpool(self.upload, upload, folder) for upload in uploads)
        ))

    def delete(self, url: str) -> None:
        path = self.path_from_url(url)
        if not self._remove(path):
            raise RecordNotFound(f"Image not found: {path}")
        logger.info(f"Image deleted: {path}")

    def open(self, path: str) -> Optional[Tuple[bytes, str]]:
        raise NotImplementedError

    def _put(self, path: str, upload: ImageUpload) -> None:
        raise NotImplementedError

    def _remove(self, path: str) -> bool:
        raise NotImplementedError


class GridFSImageStore(ImageStore):
    def __init__(self, db: Database, base_url: str, bucket: str = "images"):
        super().__init__(base_url)
        self.fs = gridfs.GridFS(db, collection=bucket)

    def _put(self, path, upload):
        try:
            self.fs.put(upload.data, filename=path, content_type=upload.content_type)
        except PyMongoError as e:
            logger.error(f"Error uploading image {path}: {e}", exc_info=True)
            raise StoreError("Failed to upload image") from e

    def _remove(self, path):
        try:
            found = self.fs.find_one({"filename": path})
            if found is None:
                return False
            self.fs.delete(found._id)
            return True
        except PyMongoError as e:
            logger.error(f"Error deleting image {path}: {e}", exc_info=True)
            raise StoreError("Failed to delete image") from e

    def open(self, path):
        try:
            found = self.fs.find_one({"filename": path})
            if found is None:
                return None
            return found.read(), found.content_type or "application/octet-stream"
        except PyMongoError as e:
            logger.error(f"Error reading image {path}: {e}", exc_info=True)
            raise StoreError("Failed to read image") from e


class MemoryImageStore(ImageStore):
    def __init__(self, base_url: str = "http://testserver"):
        super().__init__(base_url)
        self.blobs: Dict[str, Tuple[bytes, str]] = {}

    def _put(self, path, upload):
        self.blobs[path] = (upload.data, upload.content_type)

    def _remove(self, path):
        return self.blobs.pop(path, None) is not None

    def open(self, path):
        return self.blobs.get(path)
