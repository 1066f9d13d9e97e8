"""Durable namespace → JSON blob storage on the local filesystem."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import structlog

logger = structlog.get_logger()

NAMESPACES = (
    "settings",
    "vocabulary",
    "analysis_cache",
    "translation_cache",
    "workspace_items",
    "files_cache",
)


class JsonFileStore:
    """One ``<namespace>.json`` file per namespace under a data directory.

    Storage is best effort: a missing or unreadable file reads as None so a
    cold start simply begins with empty state.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def _path(self, namespace: str) -> Path:
        return self.data_dir / f"{namespace}.json"

    def get(self, namespace: str) -> Optional[Any]:
        """Read a namespace, or None if absent or corrupt."""
        path = self._path(namespace)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("store_read_failed", namespace=namespace, error=str(e))
            return None

    def set(self, namespace: str, blob: Any) -> None:
        """Write a namespace atomically (temp file + replace)."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{namespace}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(blob, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self._path(namespace))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, namespace: str) -> None:
        self._path(namespace).unlink(missing_ok=True)

    def clear(self) -> None:
        """Remove every known namespace."""
        for namespace in NAMESPACES:
            self.delete(namespace)
