import logging
from contextlib import contextmanager

from fastapi import HTTPException

logger = logging.getLogger(__name__)


class AppError(HTTPException):
    """Base for errors raised by the services; rendered as {"detail": message}."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(status_code=self.status_code, detail=detail)


class ValidationError(AppError):
    status_code = 400


class ConflictError(AppError):
    status_code = 400


class AuthError(AppError):
    status_code = 400


class VerificationError(AppError):
    status_code = 401


class ForbiddenError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class StockError(AppError):
    status_code = 400


class InternalError(AppError):
    status_code = 500


class IdGenerationError(InternalError):
    pass


@contextmanager
def internal_errors(context: str):
    """Let HTTP errors through; turn anything else into a 500 carrying its message."""
    try:
        yield
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(context)
        raise InternalError(f"{context}: {e}") from e
