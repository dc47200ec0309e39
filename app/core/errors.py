"""Error taxonomy shared by the ingest pipeline, the job service and the API.

Every error carries the HTTP status it is rendered with; the handlers in
``app.main`` turn them into ``{"error": message}`` bodies.
"""

from __future__ import annotations

from fastapi import status


class AllocatorError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AllocatorError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class IngestError(AllocatorError):
    """Terminal failure of a single upload."""


class DuplicateBatchName(IngestError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Sheet name must be unique"


class ParseError(IngestError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"CSV parse error: {detail}")


class PersistError(IngestError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class IngestTimeout(IngestError):
    default_message = "Server timeout during file processing"


class UserNotFound(AllocatorError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found"


class TileUnavailable(AllocatorError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "This tile is already assigned or not found"
