from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path
from uuid import uuid4

from fastapi import HTTPException, UploadFile, status

logger = logging.getLogger(__name__)

UPLOAD_SUFFIX = ".csv"


class UploadedFile:
    """A request-scoped copy of an uploaded file on local disk.

    ``release`` deletes the file and may be called from every exit path of an
    upload; only the first call touches the filesystem.
    """

    def __init__(self, path: Path, *, original_filename: str | None = None, size_bytes: int = 0) -> None:
        self.path = path
        self.original_filename = original_filename
        self.size_bytes = size_bytes
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            self.path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove uploaded file %s", self.path, exc_info=True)

    def __repr__(self) -> str:
        return f"UploadedFile(path={str(self.path)!r}, released={self._released})"


def _check_upload_size(file: UploadFile, max_upload_bytes: int) -> int:
    file.file.seek(0, 2)
    size = file.file.tell()
    file.file.seek(0)
    if size > max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"CSV file exceeds maximum size of {max_upload_bytes} bytes.",
        )
    return size


def save_upload(file: UploadFile, *, upload_dir: Path, max_upload_bytes: int) -> UploadedFile:
    size = _check_upload_size(file, max_upload_bytes=max_upload_bytes)
    upload_dir.mkdir(parents=True, exist_ok=True)
    destination = upload_dir / f"{uuid4().hex}{UPLOAD_SUFFIX}"

    with destination.open("wb") as out_f:
        shutil.copyfileobj(file.file, out_f)
    file.file.seek(0)
    return UploadedFile(destination, original_filename=file.filename, size_bytes=size)


def list_stale_uploads(upload_dir: Path, *, older_than_seconds: float, now: float | None = None) -> list[Path]:
    if not upload_dir.exists():
        return []
    cutoff = (now if now is not None else time.time()) - older_than_seconds
    return sorted(
        path
        for path in upload_dir.glob(f"*{UPLOAD_SUFFIX}")
        if path.is_file() and path.stat().st_mtime < cutoff
    )


def remove_stale_uploads(upload_dir: Path, *, older_than_seconds: float, now: float | None = None) -> int:
    removed = 0
    for path in list_stale_uploads(upload_dir, older_than_seconds=older_than_seconds, now=now):
        UploadedFile(path).release()
        if not path.exists():
            removed += 1
    return removed
