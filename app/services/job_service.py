from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from itertools import islice

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import DuplicateBatchName, TileUnavailable, UserNotFound
from app.db.models import JOB_STATUS_ASSIGNED, JOB_STATUS_UNASSIGNED, Job, JobSheet, User
from app.pipeline.types import NormalizedRow

USER_SEARCH_LIMIT = 10


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_job_sheet(db: Session, *, name: str) -> JobSheet:
    sheet = JobSheet(name=name, total_jobs=0)
    db.add(sheet)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateBatchName() from exc
    db.refresh(sheet)
    return sheet


def list_job_sheets(db: Session) -> list[JobSheet]:
    stmt = select(JobSheet).order_by(JobSheet.uploaded_at.desc(), JobSheet.id.desc())
    return list(db.scalars(stmt).all())


def insert_jobs(db: Session, *, sheet_id: int, rows: Iterable[NormalizedRow], chunk_size: int = 500) -> int:
    """Insert one Job per row, in order, without committing.

    Rows must already carry a tile id. Returns the number of rows inserted.
    """
    inserted = 0
    iterator = iter(rows)
    while chunk := list(islice(iterator, chunk_size)):
        db.execute(
            insert(Job),
            [
                {
                    "job_sheet_id": sheet_id,
                    "tile_id": row.tile_id,
                    "row_data": row.payload,
                    "status": JOB_STATUS_UNASSIGNED,
                }
                for row in chunk
            ],
        )
        inserted += len(chunk)
    return inserted


def finalize_job_sheet(db: Session, *, sheet_id: int, total_jobs: int) -> None:
    db.execute(update(JobSheet).where(JobSheet.id == sheet_id).values(total_jobs=total_jobs))


def search_users(db: Session, query: str | None, *, limit: int = USER_SEARCH_LIMIT) -> list[User]:
    if not query or not query.strip():
        return []
    stmt = (
        select(User)
        .where(User.full_name.icontains(query, autoescape=True))
        .order_by(User.full_name, User.id)
        .limit(limit)
    )
    return list(db.scalars(stmt).all())


def find_user_by_name(db: Session, full_name: str) -> User | None:
    stmt = select(User).where(User.full_name == full_name).order_by(User.id).limit(1)
    return db.scalar(stmt)


def unassigned_tile_counts(db: Session, sheet_id: int) -> dict[str, int]:
    stmt = (
        select(Job.tile_id, func.count(Job.id))
        .where(Job.job_sheet_id == sheet_id, Job.status == JOB_STATUS_UNASSIGNED)
        .group_by(Job.tile_id)
        .order_by(Job.tile_id)
    )
    return {tile_id: int(count) for tile_id, count in db.execute(stmt).all()}


def assign_tile(db: Session, *, user_name: str, sheet_id: int, tile_id: str) -> int:
    """Claim every unassigned job of ``tile_id`` in one sheet for a user.

    A single conditional UPDATE does the claim; its affected-row count decides
    the outcome, so two concurrent callers cannot both win the same tile.
    """
    user = find_user_by_name(db, user_name)
    if user is None:
        raise UserNotFound()

    stmt = (
        update(Job)
        .where(
            Job.job_sheet_id == sheet_id,
            Job.tile_id == tile_id,
            Job.status == JOB_STATUS_UNASSIGNED,
            Job.assigned_user_id.is_(None),
        )
        .values(
            status=JOB_STATUS_ASSIGNED,
            assigned_user_id=user.id,
            assigned_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()

    if result.rowcount == 0:
        raise TileUnavailable()
    return result.rowcount
