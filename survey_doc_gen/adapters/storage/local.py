"""Filesystem-backed storage backend."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from .base import StorageBackend, StorageError, StorageObject


class LocalStorageBackend(StorageBackend):
    """Store artifacts on the local filesystem under a base directory."""

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = Path(base_dir).resolve()
        self._base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _resolve(self, key: str) -> Path:
        target = (self._base_dir / key).resolve()
        if target != self._base_dir and self._base_dir not in target.parents:
            raise StorageError(f"Key escapes storage root: {key}")
        return target

    def put_bytes(self, key: str, data: bytes, content_type: Optional[str] = None) -> StorageObject:
        target = self._resolve(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Failed to write {key}: {exc}") from exc
        return StorageObject(key=key, size=len(data), content_type=content_type)

    def get_bytes(self, key: str) -> bytes:
        source = self._resolve(key)
        if not source.is_file():
            raise FileNotFoundError(source)
        return source.read_bytes()

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def delete(self, key: str) -> None:
        target = self._resolve(key)
        try:
            if target.exists():
                target.unlink()
            # Drop the run directory once it is empty.
            parent = target.parent
            if parent != self._base_dir and parent.exists() and not any(parent.iterdir()):
                parent.rmdir()
        except OSError as exc:
            raise StorageError(f"Failed to delete {key}: {exc}") from exc

    def list(self, prefix: str) -> List[StorageObject]:
        base = self._resolve(prefix)
        objects: List[StorageObject] = []
        if base.is_file():
            rel_key = base.relative_to(self._base_dir).as_posix()
            objects.append(StorageObject(key=rel_key, size=base.stat().st_size))
            return objects
        if not base.exists():
            return []
        for path in sorted(base.rglob("*")):
            if path.is_file():
                rel = path.relative_to(self._base_dir).as_posix()
                objects.append(StorageObject(key=rel, size=path.stat().st_size))
        return objects
