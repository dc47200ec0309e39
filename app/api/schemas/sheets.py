from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class UploadResponse(BaseModel):
    message: str
    sheet_id: int


class JobSheetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    total_jobs: int
    uploaded_at: datetime
