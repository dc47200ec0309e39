from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.db.session import Database, get_database

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
def health_live() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready")
def health_ready(database: Database = Depends(get_database)) -> JSONResponse:
    checks: dict[str, str] = {"database": "ok"}

    try:
        database.ping()
    except SQLAlchemyError:
        checks["database"] = "error"

    if "error" in checks.values():
        return JSONResponse(status_code=503, content={"status": "error", **checks})
    return JSONResponse(status_code=200, content={"status": "ok", **checks})
