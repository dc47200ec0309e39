from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from app.api.handlers import register_exception_handlers
from app.api.routes.allocation import router as allocation_router
from app.api.routes.health import router as health_router
from app.api.routes.sheets import router as sheets_router
from app.api.routes.users import router as users_router
from app.core.config import Settings, get_settings
from app.db.session import Database
from app.pipeline.ingest import IngestPipeline

logger = logging.getLogger(__name__)


def _open_database(settings: Settings) -> Database:
    database = Database(settings.database_url)
    try:
        now = database.ping()
    except SQLAlchemyError as exc:
        logger.error("Database connection failed: %s", exc)
        return database
    logger.info("Database connected, server time %s", now)
    database.create_all()
    return database


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings.upload_dir.mkdir(parents=True, exist_ok=True)
        database = _open_database(settings)
        pipeline = IngestPipeline(
            database.session_factory,
            timeout_seconds=settings.ingest_timeout_seconds,
            chunk_size=settings.ingest_chunk_size,
        )
        app.state.database = database
        app.state.ingest_pipeline = pipeline
        try:
            yield
        finally:
            await pipeline.drain(timeout=settings.ingest_timeout_seconds)
            database.dispose()

    app = FastAPI(title=settings.app_name, version="1.0.0", lifespan=lifespan)
    app.state.settings = settings

    if settings.cors_allow_all:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=False,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    elif settings.cors_origin_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origin_list,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_exception_handlers(app)
    app.include_router(health_router)
    app.include_router(sheets_router)
    app.include_router(users_router)
    app.include_router(allocation_router)
    return app


app = create_app()
