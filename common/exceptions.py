"""
common.exceptions
~~~~~~~~~~~~~~~~~
Centralised DRF exception handler and custom exception classes.

Taxonomy
--------
NotFoundError          – tenant, parent or unit missing (404)
ConflictError          – sibling name collision, delete with children (409)
InvalidInputError      – self-parent, detected cycle, malformed values (400)
InvalidReferenceError  – dangling foreign key rejected by the store (400)
InternalError          – unexpected store failure or inconsistent data (500)
"""
from contextlib import contextmanager
from typing import Iterator

import structlog
from django.db import DatabaseError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = structlog.get_logger(__name__)

GENERIC_INTERNAL_DETAIL = "An internal error occurred. Please try again later."


class AppError(Exception):
    """Base application error.  Subclass to define domain-specific errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_code: str = "error"
    default_detail: str = "An error occurred."

    def __init__(self, detail: str | None = None, code: str | None = None) -> None:
        self.detail = detail or self.default_detail
        self.code = code or self.default_code
        super().__init__(self.detail)

    def __str__(self) -> str:
        return self.detail


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"
    default_detail = "The requested resource was not found."


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "conflict"
    default_detail = "A resource conflict occurred."


class InvalidInputError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "invalid_input"
    default_detail = "Invalid input."


class TreeTooLargeError(InvalidInputError):
    default_code = "tree_too_large"
    default_detail = (
        "The hierarchy is too large to assemble in memory. "
        "Use the paginated listing instead."
    )


class InvalidReferenceError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "invalid_reference"
    default_detail = (
        "Invalid reference. Ensure the referenced tenant, parent or leader user exist."
    )


class InternalError(AppError):
    """
    Unexpected failure.  ``detail`` is kept for server-side logs only; the
    HTTP response always carries :data:`GENERIC_INTERNAL_DETAIL`.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "internal_error"
    default_detail = "An unexpected error occurred."


class HierarchyInconsistencyError(InternalError):
    """The stored parent chain loops back on itself."""

    default_code = "hierarchy_inconsistent"
    default_detail = "Inconsistent organization unit hierarchy detected."


@contextmanager
def database_errors(context: str) -> Iterator[None]:
    """Re-raise a Django ``DatabaseError`` from the block as :class:`InternalError`."""
    try:
        yield
    except DatabaseError as exc:
        logger.error("database_error", context=context, error=str(exc))
        raise InternalError(f"Database error in {context}: {exc}") from exc


def custom_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    Global DRF exception handler.
    Converts AppError subclasses to JSON responses and delegates everything
    else to the default DRF handler so standard DRF exceptions still work.
    """
    if isinstance(exc, InternalError):
        logger.error(
            "internal_error",
            code=exc.code,
            detail=exc.detail,
            exc_info=exc,
        )
        return Response(
            {"code": exc.code, "detail": GENERIC_INTERNAL_DETAIL},
            status=exc.status_code,
        )

    if isinstance(exc, AppError):
        logger.warning(
            "app_error",
            code=exc.code,
            detail=exc.detail,
            status_code=exc.status_code,
        )
        return Response(
            {"code": exc.code, "detail": exc.detail},
            status=exc.status_code,
        )

    response = drf_exception_handler(exc, context)
    if response is not None:
        logger.warning(
            "drf_error",
            detail=response.data,
            status_code=response.status_code,
        )
    else:
        logger.exception("unhandled_exception", exc_info=exc)

    return response
