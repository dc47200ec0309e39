from __future__ import annotations

from fastapi import Request

from app.core.config import Settings
from app.core.errors import ValidationError
from app.pipeline.ingest import IngestPipeline


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_ingest_pipeline(request: Request) -> IngestPipeline:
    return request.app.state.ingest_pipeline


def parse_sheet_id(value: int | str | None) -> int:
    if isinstance(value, bool):
        raise ValidationError("sheetId must be an integer")
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError("sheetId must be an integer") from None
