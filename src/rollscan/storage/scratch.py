"""
Filesystem scratch store for per-chunk attempt, result and error records.

Records are JSON files named ``{key}.json`` inside one run directory.
"""

import json
import os
from pathlib import Path
from typing import Any, Union

import structlog
from pydantic import BaseModel

from rollscan.core.exceptions import StorageError

logger = structlog.get_logger(__name__)

_SAFE_CHARS = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789.-_")


class ScratchStore:
    """
    Key/value store backed by a directory of JSON files.

    Only ``put``, ``get``, ``exists`` and ``delete_all`` are needed by the
    pipeline. Writes go through a temporary file and ``os.replace`` so a
    record is either fully written or absent.

    ``delete_all`` only removes files this store wrote, and the directory
    only if this store created it and it is left empty.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self._written: set[Path] = set()
        self._created_root = False

    def prepare(self) -> None:
        """Create the scratch directory if it does not exist."""
        if self.root.exists():
            return
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            self._created_root = True
        except OSError as e:
            raise StorageError(
                message=f"Cannot create scratch directory {self.root}",
                store_type="scratch",
                operation="prepare",
                cause=e,
            )
        logger.info("Created scratch directory", path=str(self.root))

    def _path_for(self, key: str) -> Path:
        sanitized = "".join(c if c in _SAFE_CHARS else "_" for c in key)
        if not sanitized or sanitized.startswith("."):
            sanitized = "_" + sanitized
        return self.root / f"{sanitized[:200]}.json"

    def put(self, key: str, value: Union[BaseModel, dict[str, Any]]) -> Path:
        """Durably write a JSON-serializable record under ``key``."""
        if isinstance(value, BaseModel):
            data = value.model_dump(mode="json")
        else:
            data = value

        path = self._path_for(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            if not self.root.exists():
                self.root.mkdir(parents=True, exist_ok=True)
                self._created_root = True
            self._written.add(tmp_path)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
            self._written.discard(tmp_path)
            self._written.add(path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(
                message=f"Failed to write scratch record {key}",
                store_type="scratch",
                operation="put",
                details={"key": key},
                cause=e,
            )
        return path

    def get(self, key: str) -> dict[str, Any]:
        """Read the record stored under ``key``."""
        path = self._path_for(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(
                message=f"Failed to read scratch record {key}",
                store_type="scratch",
                operation="get",
                details={"key": key},
                cause=e,
            )

    def exists(self, key: str) -> bool:
        return self._path_for(key).is_file()

    def keys(self) -> list[str]:
        """List stored keys in name order."""
        if not self.root.is_dir():
            return []
        return sorted(p.stem for p in self.root.glob("*.json"))

    def delete_all(self) -> None:
        """Remove the records written by this store, then its directory if empty."""
        try:
            for path in sorted(self._written):
                path.unlink(missing_ok=True)
            self._written.clear()
            if self._created_root and self.root.is_dir() and not any(self.root.iterdir()):
                self.root.rmdir()
                self._created_root = False
        except OSError as e:
            raise StorageError(
                message=f"Failed to clean scratch directory {self.root}",
                store_type="scratch",
                operation="delete_all",
                cause=e,
            )
        logger.info("Cleaned up scratch records", path=str(self.root))
