from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from app.db.base import Base

JOB_STATUS_UNASSIGNED = "Unassigned"
JOB_STATUS_ASSIGNED = "Assigned"


def _json_type() -> Any:
    return JSON().with_variant(JSONB(), "postgresql")


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)


class JobSheet(Base):
    __tablename__ = "job_sheets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    total_jobs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    jobs: Mapped[list["Job"]] = relationship(
        back_populates="job_sheet",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_job_sheets_uploaded_at_desc", "uploaded_at"),
    )


class Job(Base):
    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_sheet_id: Mapped[int] = mapped_column(ForeignKey("job_sheets.id", ondelete="CASCADE"), nullable=False)
    tile_id: Mapped[str] = mapped_column(String(255), nullable=False)
    row_data: Mapped[dict[str, Any]] = mapped_column(_json_type(), nullable=False, default=dict)
    assigned_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=JOB_STATUS_UNASSIGNED)
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    job_sheet: Mapped[JobSheet] = relationship(back_populates="jobs")

    __table_args__ = (
        Index("ix_jobs_sheet_tile_status", "job_sheet_id", "tile_id", "status"),
    )
