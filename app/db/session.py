from __future__ import annotations

from collections.abc import Generator
from datetime import datetime

from fastapi import Request
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker

from app.db import models  # noqa: F401  registers mapped classes
from app.db.base import Base


class Database:
    """Engine and session factory with an explicit lifecycle.

    One instance is built when the application starts and disposed when it
    stops; request handlers and the ingest pipeline receive it (or its
    ``session_factory``) rather than importing a module-level engine.
    """

    def __init__(self, url: str) -> None:
        engine_kwargs: dict = {"pool_pre_ping": True}
        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        self.url = url
        self.engine = create_engine(url, **engine_kwargs)
        self.session_factory = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def ping(self) -> datetime | str:
        with self.engine.connect() as conn:
            return conn.execute(select(func.current_timestamp())).scalar_one()

    def dispose(self) -> None:
        self.engine.dispose()


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request) -> Generator[Session, None, None]:
    db = get_database(request).session_factory()
    try:
        yield db
    finally:
        db.close()
