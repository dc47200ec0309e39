from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import parse_sheet_id
from app.api.schemas.allocation import AllocateRequest, AllocateResponse
from app.core.errors import ValidationError
from app.db.session import get_db
from app.services import job_service

router = APIRouter(tags=["allocation"])


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


@router.post("/allocate-job", response_model=AllocateResponse)
def allocate_job(payload: AllocateRequest, db: Session = Depends(get_db)) -> AllocateResponse:
    if _is_blank(payload.userName) or _is_blank(payload.sheetId) or _is_blank(payload.tileId):
        raise ValidationError("userName, sheetId, and tileId are required")

    sheet_id = parse_sheet_id(payload.sheetId)
    tile_id = str(payload.tileId)
    assigned = job_service.assign_tile(db, user_name=payload.userName, sheet_id=sheet_id, tile_id=tile_id)
    return AllocateResponse(message=f"Assigned Tile ID: {tile_id} ({assigned} rows) to {payload.userName}")
