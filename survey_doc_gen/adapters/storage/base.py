"""Base storage backend definitions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


@dataclass
class StorageObject:
    """Represents a stored artifact's metadata."""

    key: str
    size: Optional[int] = None
    content_type: Optional[str] = None


class StorageError(RuntimeError):
    """Raised when storage operations fail."""


class StorageBackend:
    """Abstract interface for artifact storage backends."""

    def put_bytes(self, key: str, data: bytes, content_type: Optional[str] = None) -> StorageObject:
        raise NotImplementedError

    def get_bytes(self, key: str) -> bytes:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def list(self, prefix: str) -> List[StorageObject]:
        raise NotImplementedError
