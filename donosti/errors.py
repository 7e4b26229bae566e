"""Application error taxonomy.

Services raise these; the handlers registered in ``main`` turn them into
``{"error": message}`` JSON responses with the matching status code.
"""
from __future__ import annotations

from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Conflict"


class AlreadyReported(Conflict):
    default_message = "Already reported"


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class UpstreamFailure(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Upstream service failure"


__all__ = [
    "AppError",
    "Unauthenticated",
    "Forbidden",
    "NotFound",
    "Conflict",
    "AlreadyReported",
    "ValidationFailed",
    "UpstreamFailure",
]
