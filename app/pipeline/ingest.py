from __future__ import annotations

import asyncio
import csv
import logging
from pathlib import Path
from typing import Final

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.errors import IngestError, IngestTimeout, ParseError, PersistError
from app.pipeline.normalize import normalize_row
from app.pipeline.settlement import SettlementGate
from app.pipeline.types import IngestResult
from app.services import job_service
from app.services.storage_service import UploadedFile

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS: Final[float] = 60.0
DEFAULT_CHUNK_SIZE: Final[int] = 500


def parse_csv(path: Path) -> list[dict[str, str]]:
    """Read a header-delimited CSV file into a list of rows.

    Short rows are padded with empty strings. Rows with more fields than the
    header, broken quoting and undecodable bytes raise ``ParseError``.
    """
    rows: list[dict[str, str]] = []
    try:
        with path.open("r", encoding="utf-8-sig", newline="") as handle:
            reader = csv.DictReader(handle, restval="", strict=True)
            if not reader.fieldnames:
                raise ParseError("missing header row")
            for row in reader:
                extra = row.pop(None, None)
                if extra is not None:
                    raise ParseError(
                        f"line {reader.line_num}: expected {len(reader.fieldnames)} columns, "
                        f"got {len(reader.fieldnames) + len(extra)}"
                    )
                rows.append(row)
    except (csv.Error, UnicodeDecodeError, OSError) as exc:
        raise ParseError(str(exc)) from exc
    return rows


def _storage_detail(exc: SQLAlchemyError) -> str:
    return str(getattr(exc, "orig", None) or exc)


class IngestPipeline:
    """Turns one uploaded CSV file into a job sheet and its jobs.

    Each call to ``ingest`` registers the sheet, parses the file, stores the
    rows that carry a tile id and finalizes the sheet's job count. The outcome
    is delivered through a ``SettlementGate`` shared by the worker and the
    safety timer, so exactly one of success, a failure or ``IngestTimeout``
    reaches the caller. The uploaded file is released on every path.

    Blocking storage and file work runs in the threadpool. A timeout stops the
    caller from waiting but does not cancel work already handed to a thread.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.session_factory = session_factory
        self.timeout_seconds = timeout_seconds
        self.chunk_size = chunk_size
        self._workers: set[asyncio.Task[None]] = set()

    async def ingest(self, batch_name: str, upload: UploadedFile) -> IngestResult:
        gate: SettlementGate[IngestResult] = SettlementGate(label=f"upload of sheet {batch_name!r}")
        loop = asyncio.get_running_loop()
        timer = loop.call_later(self.timeout_seconds, self._expire, gate, upload)

        worker = asyncio.create_task(self._run(batch_name, upload, gate))
        self._workers.add(worker)
        worker.add_done_callback(self._workers.discard)
        try:
            return await gate.wait()
        finally:
            timer.cancel()

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for workers still running after their callers returned."""
        if not self._workers:
            return
        _, pending = await asyncio.wait(set(self._workers), timeout=timeout)
        if pending:
            logger.warning("%d ingest worker(s) still running", len(pending))

    def register_batch(self, batch_name: str) -> int:
        with self.session_factory() as db:
            return job_service.create_job_sheet(db, name=batch_name).id

    def parse_rows(self, path: Path) -> list[dict[str, str]]:
        return parse_csv(path)

    def persist_rows(self, sheet_id: int, rows: list[dict[str, str]]) -> int:
        normalized = [item for item in map(normalize_row, rows) if item.tile_id is not None]
        with self.session_factory() as db:
            try:
                stored = job_service.insert_jobs(
                    db,
                    sheet_id=sheet_id,
                    rows=normalized,
                    chunk_size=self.chunk_size,
                )
                job_service.finalize_job_sheet(db, sheet_id=sheet_id, total_jobs=stored)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                raise PersistError(_storage_detail(exc)) from exc

        skipped = len(rows) - stored
        if skipped:
            logger.info("Skipped %d row(s) without a tile id for sheet id=%s", skipped, sheet_id)
        return stored

    async def _run(self, batch_name: str, upload: UploadedFile, gate: SettlementGate[IngestResult]) -> None:
        logger.info("Ingest started for sheet %r from %s", batch_name, upload.path.name)
        try:
            sheet_id = await run_in_threadpool(self.register_batch, batch_name)
            if self._abandoned(gate, batch_name):
                return
            rows = await run_in_threadpool(self.parse_rows, upload.path)
            if self._abandoned(gate, batch_name):
                return
            stored = await run_in_threadpool(self.persist_rows, sheet_id, rows)
        except IngestError as exc:
            self._fail(gate, upload, exc)
            return
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error while ingesting sheet %r", batch_name)
            self._fail(gate, upload, PersistError(str(exc)))
            return

        upload.release()
        if gate.resolve(IngestResult(sheet_id=sheet_id, sheet_name=batch_name, rows_stored=stored)):
            logger.info("Ingested %d job(s) into sheet %r (id=%s)", stored, batch_name, sheet_id)

    def _abandoned(self, gate: SettlementGate[IngestResult], batch_name: str) -> bool:
        if gate.settled:
            logger.warning("Stopping ingest of sheet %r: outcome already delivered", batch_name)
            return True
        return False

    def _fail(self, gate: SettlementGate[IngestResult], upload: UploadedFile, exc: IngestError) -> None:
        upload.release()
        if gate.reject(exc):
            logger.warning("Ingest of %s failed: %s", gate.label, exc.message)

    def _expire(self, gate: SettlementGate[IngestResult], upload: UploadedFile) -> None:
        if gate.reject(IngestTimeout()):
            logger.error("Ingest of %s timed out after %.1fs", gate.label, self.timeout_seconds)
        upload.release()
