"""Attachment blob storage on the local filesystem."""

import asyncio
import re
from pathlib import Path, PurePosixPath
from typing import Protocol

from ..errors import NotFoundError, PersistenceError
from ..logging_config import get_logger

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_file_name(name: str) -> str:
    """Replace anything outside [a-zA-Z0-9.-] with '_'."""
    cleaned = _UNSAFE_CHARS.sub("_", PurePosixPath(name or "").name)
    return cleaned.lstrip(".") or "file"


class IFileStore(Protocol):
    """Stores attachment bytes and hands back a stable reference."""

    async def save(self, path: str, data: bytes, content_type: str) -> str:
        """Store data under a relative path; return the storage reference."""
        ...

    async def read(self, ref: str) -> bytes:
        """Return the bytes behind a reference."""
        ...

    async def delete(self, ref: str) -> None:
        """Remove a stored object. Missing objects are ignored."""
        ...


class LocalFileStore:
    """Keeps blobs under a root directory; references are relative paths."""

    def __init__(self, root: str | Path):
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, ref: str) -> Path:
        target = (self._root / ref).resolve()
        if self._root != target and self._root not in target.parents:
            raise ValueError(f"Storage reference escapes root: {ref}")
        return target

    async def save(self, path: str, data: bytes, content_type: str) -> str:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as f:
                f.write(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            logger.error("Failed to store %s: %s", path, e, exc_info=True)
            raise PersistenceError("Failed to upload file") from e

        logger.debug(
            "Stored attachment",
            extra={"context": {"ref": path, "size": len(data), "content_type": content_type}},
        )
        return path

    async def read(self, ref: str) -> bytes:
        target = self._resolve(ref)
        if not target.is_file():
            raise NotFoundError(f"Attachment {ref} not found")
        return await asyncio.to_thread(target.read_bytes)

    async def delete(self, ref: str) -> None:
        target = self._resolve(ref)
        await asyncio.to_thread(target.unlink, missing_ok=True)
