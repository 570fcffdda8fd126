"""Artifact storage backends."""

from .base import StorageBackend, StorageError, StorageObject
from .local import LocalStorageBackend

__all__ = [
    "StorageBackend",
    "StorageError",
    "StorageObject",
    "LocalStorageBackend",
]
