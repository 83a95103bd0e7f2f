"""Attachment blob storage and upload validation."""

from __future__ import annotations

import os
import uuid
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Iterator, Protocol

from fastapi import UploadFile

from .config import settings
from .errors import ValidationError

ATTACHMENT_NAMESPACE = "tasks_attachments"
CHUNK_SIZE = 64 * 1024


class BlobStore(Protocol):
    def save(self, path: str, data: bytes) -> None: ...

    def exists(self, path: str) -> bool: ...

    def delete(self, path: str) -> None: ...

    def open(self, path: str) -> BinaryIO: ...


class LocalBlobStore:
    """Blobs as files under `root`; paths are relative POSIX strings."""

    def __init__(self, root: str | os.PathLike[str]):
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        rel = PurePosixPath(path)
        if rel.is_absolute() or ".." in rel.parts:
            raise ValueError(f"invalid blob path: {path!r}")
        return self.root.joinpath(*rel.parts)

    def save(self, path: str, data: bytes) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def delete(self, path: str) -> None:
        self._resolve(path).unlink(missing_ok=True)

    def open(self, path: str) -> BinaryIO:
        return self._resolve(path).open("rb")


def iter_blob(fh: BinaryIO) -> Iterator[bytes]:
    """Yield a file in chunks and close it when exhausted."""
    try:
        while chunk := fh.read(CHUNK_SIZE):
            yield chunk
    finally:
        fh.close()


def attachment_extension(filename: str | None) -> str:
    return PurePosixPath(filename or "").suffix.lower().lstrip(".")


def validate_attachment(upload: UploadFile) -> bytes:
    """Check extension and size of an upload; return its content."""
    ext = attachment_extension(upload.filename)
    allowed = [e.lower() for e in settings.ATTACHMENT_EXTENSIONS]
    if ext not in allowed:
        raise ValidationError.single(
            "attachment",
            f"The attachment field must be a file of type: {', '.join(allowed)}.",
        )
    data = upload.file.read()
    if len(data) > settings.ATTACHMENT_MAX_KB * 1024:
        raise ValidationError.single(
            "attachment",
            f"The attachment field must not be greater than {settings.ATTACHMENT_MAX_KB} kilobytes.",
        )
    return data


def attachment_path(task_id: int, filename: str | None) -> str:
    """Task-scoped path with a random name and the original extension."""
    return f"{ATTACHMENT_NAMESPACE}/{task_id}/{uuid.uuid4().hex}.{attachment_extension(filename)}"
