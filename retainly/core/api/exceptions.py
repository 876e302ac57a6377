"""
DRF exception handler for engine errors.

Registered as REST_FRAMEWORK["EXCEPTION_HANDLER"]. Engine errors become a
``{"detail": reason}`` body with the matching status code. Anything else
falls through to DRF's default handler.
"""

from __future__ import annotations

from http import HTTPStatus

from rest_framework.response import Response
from rest_framework.views import exception_handler

from retainly.core.exceptions import BadRequestError
from retainly.core.exceptions import ConflictError
from retainly.core.exceptions import NotFoundError
from retainly.core.exceptions import RetainlyError

STATUS_BY_ERROR = (
    (NotFoundError, HTTPStatus.NOT_FOUND),
    (ConflictError, HTTPStatus.CONFLICT),
    (BadRequestError, HTTPStatus.BAD_REQUEST),
)


def retainly_exception_handler(exc, context):
    if isinstance(exc, RetainlyError):
        for error_class, status_code in STATUS_BY_ERROR:
            if isinstance(exc, error_class):
                return Response({"detail": exc.reason}, status=status_code)
        return Response({"detail": exc.reason}, status=HTTPStatus.BAD_REQUEST)
    return exception_handler(exc, context)
