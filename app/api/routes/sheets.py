from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from app.api.deps import get_app_settings, get_ingest_pipeline, parse_sheet_id
from app.api.schemas.sheets import JobSheetResponse, UploadResponse
from app.core.config import Settings
from app.core.errors import ValidationError
from app.db.session import get_db
from app.pipeline.ingest import IngestPipeline
from app.services import job_service
from app.services.storage_service import save_upload

router = APIRouter(tags=["job-sheets"])


@router.post("/upload-csv", response_model=UploadResponse)
async def upload_csv(
    sheet_name: str | None = Form(default=None, alias="sheetName"),
    csv_file: UploadFile | None = File(default=None, alias="csvFile"),
    settings: Settings = Depends(get_app_settings),
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
) -> UploadResponse:
    if not sheet_name or not sheet_name.strip():
        raise ValidationError("Sheet name is required")
    if csv_file is None:
        raise ValidationError("CSV file is required")

    upload = save_upload(
        csv_file,
        upload_dir=settings.upload_dir,
        max_upload_bytes=settings.max_upload_bytes,
    )
    try:
        result = await pipeline.ingest(sheet_name.strip(), upload)
    finally:
        upload.release()

    return UploadResponse(message=result.message, sheet_id=result.sheet_id)


@router.get("/job-sheets", response_model=list[JobSheetResponse])
def list_job_sheets(db: Session = Depends(get_db)) -> list[JobSheetResponse]:
    return [JobSheetResponse.model_validate(sheet) for sheet in job_service.list_job_sheets(db)]


@router.get("/available-tiles/{sheet_id}", response_model=dict[str, int])
def available_tiles(sheet_id: str, db: Session = Depends(get_db)) -> dict[str, int]:
    return job_service.unassigned_tile_counts(db, parse_sheet_id(sheet_id))
