"""
Tests for the DRF exception handler.

These tests cover:
- Each engine error maps to its status code with a detail body
- Non-engine exceptions fall through to DRF's handler
"""

from http import HTTPStatus

import pytest
from rest_framework.exceptions import PermissionDenied

from retainly.core.api.exceptions import retainly_exception_handler
from retainly.core.exceptions import BadRequestError
from retainly.core.exceptions import ConflictError
from retainly.core.exceptions import NotFoundError
from retainly.core.exceptions import RetainlyError


class TestRetainlyExceptionHandler:
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (NotFoundError("Plan 4 not found"), HTTPStatus.NOT_FOUND),
            (ConflictError("SKU is already in use"), HTTPStatus.CONFLICT),
            (BadRequestError("Offer has expired"), HTTPStatus.BAD_REQUEST),
            (RetainlyError("Something odd"), HTTPStatus.BAD_REQUEST),
        ],
    )
    def test_engine_errors(self, error, expected):
        response = retainly_exception_handler(error, {})

        assert response.status_code == expected
        assert response.data == {"detail": error.reason}

    def test_drf_errors_fall_through(self):
        response = retainly_exception_handler(PermissionDenied(), {})

        assert response.status_code == HTTPStatus.FORBIDDEN

    def test_unknown_errors_are_not_handled(self):
        assert retainly_exception_handler(ValueError("boom"), {}) is None
