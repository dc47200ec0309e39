from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final

from app.pipeline.types import NormalizedRow

# Spellings of the tile identifier column seen in uploaded sheets, in priority order.
TILE_ID_KEYS: Final[tuple[str, ...]] = ("tile_id", "TileId", "Tile_ID", "tileID")


def extract_tile_id(row: Mapping[str, Any]) -> str | None:
    for key in TILE_ID_KEYS:
        value = row.get(key)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return None


def normalize_row(row: Mapping[str, Any]) -> NormalizedRow:
    """Split a parsed CSV row into its tile id and the payload stored with the job.

    Every tile id spelling is dropped from the payload, whichever one held the
    value. ``tile_id`` is ``None`` when no spelling carries a non-blank value.
    """
    payload = {key: value for key, value in row.items() if key not in TILE_ID_KEYS}
    return NormalizedRow(tile_id=extract_tile_id(row), payload=payload)
