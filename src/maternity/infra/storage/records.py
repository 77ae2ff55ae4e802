from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from src.maternity.config import settings
from src.maternity.errors import DomainValidationError

logger = logging.getLogger("maternity.storage")


class RecordStorageBackend(ABC):
    @abstractmethod
    def save_file(self, content: bytes, *, key: str) -> str:
        """Persist file bytes under ``key`` and return a storage reference."""

    @abstractmethod
    def read_file(self, ref: str) -> bytes:
        """Return the bytes stored under a reference returned by save_file."""

    @abstractmethod
    def delete_file(self, ref: str) -> None:
        """Best-effort deletion of a previously saved file."""


class LocalRecordStorageBackend(RecordStorageBackend):
    """Stores record blobs as files under a single base directory.

    Every path handled here must resolve inside the base directory.
    """

    def __init__(self, base: Optional[Path] = None) -> None:
        self._base: Path = base or settings.record_upload_dir

    def _contained(self, path: Path) -> Path:
        resolved = path.resolve()
        if not resolved.is_relative_to(self._base.resolve()):
            raise DomainValidationError("Storage path escapes the upload directory")
        return resolved

    def save_file(self, content: bytes, *, key: str) -> str:
        dest_path = self._contained(self._base / key)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        dest_path.write_bytes(content)
        return str(dest_path)

    def read_file(self, ref: str) -> bytes:
        return self._contained(Path(ref)).read_bytes()

    def delete_file(self, ref: str) -> None:
        path = self._contained(Path(ref))
        if not path.exists():
            return
        try:
            path.unlink()
        except OSError:
            logger.warning("Could not delete stored record file %s", ref)


record_storage_backend: RecordStorageBackend = LocalRecordStorageBackend()
