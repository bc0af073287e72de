# ABOUTME: Content-addressed blob cache on the local filesystem
# ABOUTME: Keeps fetched bodies and extracted text out of the relational store

import asyncio
import hashlib
import os
import tempfile
from pathlib import Path

from linkdump.utils.logging import get_logger


class BlobCache:
    """Key/value blob storage addressed by content digest.

    Layout under ``root``::

        content/<ab>/<sha256 of data>   blob bytes, shared by identical content
        index/<cd>/<sha256 of key>      hex digest of the blob the key points at

    Nothing is ever evicted.
    """

    def __init__(self, root: Path | str):
        self.root = Path(root).expanduser()
        self.logger = get_logger(__name__)

    @staticmethod
    def _digest(data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()

    def _content_path(self, digest: str) -> Path:
        return self.root / "content" / digest[:2] / digest

    def _index_path(self, key: str) -> Path:
        digest = self._digest(key.encode("utf-8"))
        return self.root / "index" / digest[:2] / digest

    @staticmethod
    def _atomic_write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _read_sync(self, key: str) -> bytes | None:
        index_path = self._index_path(key)
        if not index_path.exists():
            return None

        digest = index_path.read_text(encoding="ascii").strip()
        content_path = self._content_path(digest)
        if not content_path.exists():
            self.logger.warning("Blob index points at missing content", key=key, digest=digest)
            return None

        data = content_path.read_bytes()
        if self._digest(data) != digest:
            self.logger.warning("Blob content failed integrity check", key=key, digest=digest)
            return None
        return data

    def _write_sync(self, key: str, data: bytes) -> str:
        digest = self._digest(data)
        content_path = self._content_path(digest)
        if not content_path.exists():
            self._atomic_write(content_path, data)
        self._atomic_write(self._index_path(key), digest.encode("ascii"))
        return digest

    async def read(self, key: str) -> bytes | None:
        """Return the blob stored under ``key``, or None if absent."""
        return await asyncio.to_thread(self._read_sync, key)

    async def write(self, key: str, data: bytes) -> None:
        """Store ``data`` under ``key``, replacing any previous blob for the key."""
        digest = await asyncio.to_thread(self._write_sync, key, data)
        self.logger.debug("Cached blob", key=key, digest=digest, size=len(data))
