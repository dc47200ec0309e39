from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from app.core.errors import DuplicateBatchName, TileUnavailable, UserNotFound
from app.db.models import JOB_STATUS_ASSIGNED, JOB_STATUS_UNASSIGNED, Job, JobSheet
from app.db.session import Database
from app.pipeline.types import NormalizedRow
from app.services import job_service


def _seed_sheet(database: Database, name: str, tiles: list[str]) -> int:
    with database.session_factory() as db:
        sheet = job_service.create_job_sheet(db, name=name)
        stored = job_service.insert_jobs(
            db,
            sheet_id=sheet.id,
            rows=[NormalizedRow(tile_id=tile, payload={"n": str(i)}) for i, tile in enumerate(tiles)],
        )
        job_service.finalize_job_sheet(db, sheet_id=sheet.id, total_jobs=stored)
        db.commit()
        return sheet.id


def _tile_jobs(database: Database, sheet_id: int, tile_id: str) -> list[Job]:
    with database.session_factory() as db:
        stmt = select(Job).where(Job.job_sheet_id == sheet_id, Job.tile_id == tile_id)
        return list(db.scalars(stmt).all())


def test_create_job_sheet_rejects_duplicate_name(database: Database) -> None:
    with database.session_factory() as db:
        job_service.create_job_sheet(db, name="Survey-A")
        with pytest.raises(DuplicateBatchName):
            job_service.create_job_sheet(db, name="Survey-A")
        assert len(job_service.list_job_sheets(db)) == 1


def test_list_job_sheets_newest_first(database: Database) -> None:
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    with database.session_factory() as db:
        db.add_all(
            [
                JobSheet(name="old", total_jobs=1, uploaded_at=base),
                JobSheet(name="new", total_jobs=2, uploaded_at=base + timedelta(days=2)),
                JobSheet(name="middle", total_jobs=3, uploaded_at=base + timedelta(days=1)),
            ]
        )
        db.commit()

        assert [sheet.name for sheet in job_service.list_job_sheets(db)] == ["new", "middle", "old"]


def test_search_users_blank_query_skips_storage() -> None:
    db = MagicMock()

    assert job_service.search_users(db, "") == []
    assert job_service.search_users(db, "   ") == []
    assert job_service.search_users(db, None) == []
    db.assert_not_called()
    assert db.method_calls == []


def test_search_users_is_case_insensitive_and_capped(database: Database, add_users) -> None:
    add_users(database, "Alice Smith", "Bob Jones", "ALICIA Keys", *[f"Alan {i:02d}" for i in range(12)])

    with database.session_factory() as db:
        assert [user.full_name for user in job_service.search_users(db, "alic")] == ["ALICIA Keys", "Alice Smith"]
        assert len(job_service.search_users(db, "al")) == job_service.USER_SEARCH_LIMIT
        assert job_service.search_users(db, "%") == []


def test_unassigned_tile_counts(database: Database, add_users) -> None:
    add_users(database, "alice")
    sheet_id = _seed_sheet(database, "Survey-A", ["T1", "T1", "T2", "T3", "T3", "T3"])

    with database.session_factory() as db:
        assert job_service.unassigned_tile_counts(db, sheet_id) == {"T1": 2, "T2": 1, "T3": 3}
        job_service.assign_tile(db, user_name="alice", sheet_id=sheet_id, tile_id="T3")
        assert job_service.unassigned_tile_counts(db, sheet_id) == {"T1": 2, "T2": 1}
        assert job_service.unassigned_tile_counts(db, sheet_id + 100) == {}


def test_assign_tile_claims_every_job_of_the_tile(database: Database, add_users) -> None:
    (alice_id,) = add_users(database, "alice")
    sheet_id = _seed_sheet(database, "Survey-A", ["T1", "T2", "T1", "T1"])

    with database.session_factory() as db:
        assert job_service.assign_tile(db, user_name="alice", sheet_id=sheet_id, tile_id="T1") == 3

    jobs = _tile_jobs(database, sheet_id, "T1")
    assert {job.status for job in jobs} == {JOB_STATUS_ASSIGNED}
    assert {job.assigned_user_id for job in jobs} == {alice_id}
    assert len({job.assigned_at for job in jobs}) == 1
    assert jobs[0].assigned_at is not None

    other = _tile_jobs(database, sheet_id, "T2")
    assert [(job.status, job.assigned_user_id) for job in other] == [(JOB_STATUS_UNASSIGNED, None)]


def test_assign_tile_unknown_user(database: Database) -> None:
    sheet_id = _seed_sheet(database, "Survey-A", ["T1"])

    with database.session_factory() as db:
        with pytest.raises(UserNotFound):
            job_service.assign_tile(db, user_name="nobody", sheet_id=sheet_id, tile_id="T1")


def test_assign_tile_already_assigned(database: Database, add_users) -> None:
    alice_id, _ = add_users(database, "alice", "bob")
    sheet_id = _seed_sheet(database, "Survey-A", ["T1", "T1"])

    with database.session_factory() as db:
        job_service.assign_tile(db, user_name="alice", sheet_id=sheet_id, tile_id="T1")
        with pytest.raises(TileUnavailable):
            job_service.assign_tile(db, user_name="bob", sheet_id=sheet_id, tile_id="T1")
        with pytest.raises(TileUnavailable):
            job_service.assign_tile(db, user_name="bob", sheet_id=sheet_id, tile_id="missing")

    assert {job.assigned_user_id for job in _tile_jobs(database, sheet_id, "T1")} == {alice_id}


def test_concurrent_assignments_have_one_winner(database: Database, add_users) -> None:
    add_users(database, "alice", "bob")
    sheet_id = _seed_sheet(database, "Survey-A", ["T1"] * 5)
    barrier = threading.Barrier(2)
    outcomes: dict[str, int | Exception] = {}

    def claim(user_name: str) -> None:
        with database.session_factory() as db:
            barrier.wait()
            try:
                outcomes[user_name] = job_service.assign_tile(
                    db, user_name=user_name, sheet_id=sheet_id, tile_id="T1"
                )
            except TileUnavailable as exc:
                outcomes[user_name] = exc

    threads = [threading.Thread(target=claim, args=(name,)) for name in ("alice", "bob")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    winners = [value for value in outcomes.values() if isinstance(value, int)]
    losers = [value for value in outcomes.values() if isinstance(value, TileUnavailable)]
    assert winners == [5]
    assert len(losers) == 1
    assert len({job.assigned_user_id for job in _tile_jobs(database, sheet_id, "T1")}) == 1
