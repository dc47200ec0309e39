from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class NormalizedRow:
    tile_id: str | None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class IngestResult:
    sheet_id: int
    sheet_name: str
    rows_stored: int

    @property
    def message(self) -> str:
        return f'Uploaded {self.rows_stored} rows to sheet "{self.sheet_name}"'
