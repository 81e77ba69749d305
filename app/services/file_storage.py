# app/services/file_storage.py
import logging
import uuid
from pathlib import Path
from typing import Optional

from app.core.config import settings

logger = logging.getLogger(__name__)


class StoredFileNotFound(Exception):
    pass


class LocalFileStorage:
    """
    Blob store on the local filesystem. Keys are relative paths of the form
    ``<company_id>/<uuid>.<ext>`` and are what documents keep in ``file_url``.
    """

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.UPLOAD_DIR)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise StoredFileNotFound(key)
        return path

    def save(self, company_id: int, filename: str, data: bytes) -> str:
        suffix = Path(filename).suffix.lower()
        key = f"{company_id}/{uuid.uuid4().hex}{suffix}"
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info(f"Stored upload {filename} as {key} ({len(data)} bytes)")
        return key

    def read(self, key: str) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise StoredFileNotFound(key)
        return path.read_bytes()

    def path_for(self, key: str) -> Path:
        path = self._path(key)
        if not path.is_file():
            raise StoredFileNotFound(key)
        return path

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.is_file():
            path.unlink()
            logger.info(f"Deleted stored file {key}")


def get_storage() -> LocalFileStorage:
    return LocalFileStorage()
