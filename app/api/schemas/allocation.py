from __future__ import annotations

from pydantic import BaseModel


class AllocateRequest(BaseModel):
    # Field names follow the JSON body sent by the allocation form.
    userName: str | None = None
    sheetId: int | str | None = None
    tileId: str | int | None = None


class AllocateResponse(BaseModel):
    message: str
