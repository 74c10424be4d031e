"""Persistent JSON blob stores."""

import copy
import json
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

CONVERSATION_CONTEXT_KEY = "conversation_context"
MEMORY_SEGMENTS_KEY = "memory_segments"

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class BlobStoreError(Exception):
    """Raised when a document cannot be read or written."""


class BlobStore(ABC):
    """Key-value store of JSON documents."""

    @abstractmethod
    def read_json(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the document stored under ``key`` or None if there is none.

        Raises:
            BlobStoreError: If the document exists but cannot be read or parsed.
        """
        ...

    @abstractmethod
    def write_json(self, key: str, document: Dict[str, Any]) -> None:
        """Replace the document stored under ``key``.

        Raises:
            BlobStoreError: If the document cannot be written.
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the document under ``key`` if present."""
        ...


class MemoryBlobStore(BlobStore):
    """In-process store, used for ephemeral sessions and tests."""

    def __init__(self) -> None:
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.write_count = 0

    def read_json(self, key: str) -> Optional[Dict[str, Any]]:
        document = self.documents.get(key)
        return copy.deepcopy(document) if document is not None else None

    def write_json(self, key: str, document: Dict[str, Any]) -> None:
        # Round-trip through JSON so unserializable documents fail like on disk
        try:
            self.documents[key] = json.loads(json.dumps(document))
        except (TypeError, ValueError) as e:
            raise BlobStoreError(f"Cannot serialize document '{key}': {e}") from e
        self.write_count += 1

    def delete(self, key: str) -> None:
        self.documents.pop(key, None)


class JsonFileBlobStore(BlobStore):
    """Stores each document as ``<directory>/<key>.json``."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory).expanduser()

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid blob key: {key!r}")
        return self.directory / f"{key}.json"

    def read_json(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise BlobStoreError(f"Failed to read {path}: {e}") from e
        if not isinstance(data, dict):
            raise BlobStoreError(f"{path} does not contain a JSON object")
        return data

    def write_json(self, key: str, document: Dict[str, Any]) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            # Write to a temp file first so a crash never leaves half a document
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise BlobStoreError(f"Failed to write {path}: {e}") from e
        logger.debug(f"Wrote {path}")

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise BlobStoreError(f"Failed to delete {path}: {e}") from e
