from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.schemas.users import UserResponse
from app.db.session import get_db
from app.services import job_service

router = APIRouter(tags=["users"])


@router.get("/search-users", response_model=list[UserResponse])
def search_users(q: str | None = Query(default=None), db: Session = Depends(get_db)) -> list[UserResponse]:
    return [UserResponse.model_validate(user) for user in job_service.search_users(db, q)]
