"""
Service-level errors rendered as structured JSON responses.

Every error carries a user-facing ``message`` and an optional ``detail`` with
diagnostic text (for example the underlying database error).
"""

from fastapi import status


class APIError(Exception):
    """Base error translated into ``{"message": ..., "detail": ...}``."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, detail: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, str]:
        body = {"message": self.message}
        if self.detail:
            body["detail"] = self.detail
        return body


class ValidationError(APIError):
    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenError(APIError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(APIError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(APIError):
    status_code = status.HTTP_409_CONFLICT


class UpstreamError(APIError):
    """An external dependency (GitHub, email provider) failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
