"""Tests for api/base.py - Unified API response format."""

from datetime import timezone

from api.base import (
    success_response,
    error_response,
    ErrorCodes,
)


class TestSuccessResponse:
    """Tests for success_response()."""

    def test_structure(self):
        resp = success_response({"foo": "bar"})
        assert resp.success is True
        assert resp.data == {"foo": "bar"}
        assert resp.error is None

    def test_request_id_generated(self):
        resp = success_response({})
        assert resp.meta.request_id

    def test_request_id_passed_through(self):
        resp = success_response({}, request_id="abc")
        assert resp.meta.request_id == "abc"

    def test_timestamp_is_utc(self):
        resp = success_response({})
        assert resp.meta.timestamp.tzinfo == timezone.utc


class TestErrorResponse:
    """Tests for error_response()."""

    def test_structure(self):
        resp = error_response("AMOUNT_EXCEEDS_BALANCE", "Too much")
        assert resp.success is False
        assert resp.data is None
        assert resp.error.code == "AMOUNT_EXCEEDS_BALANCE"
        assert resp.error.message == "Too much"

    def test_serializes_to_envelope(self):
        body = error_response("ERR", "msg", request_id="r1").model_dump(mode="json")
        assert set(body) == {"success", "data", "error", "meta"}
        assert body["meta"]["request_id"] == "r1"


class TestErrorCodes:

    def test_generic_codes(self):
        assert ErrorCodes.VALIDATION_ERROR == "VALIDATION_ERROR"
        assert ErrorCodes.INVALID_REQUEST == "INVALID_REQUEST"
        assert ErrorCodes.INTERNAL_ERROR == "INTERNAL_ERROR"
        assert ErrorCodes.EMAIL_DELIVERY_FAILED == "EMAIL_DELIVERY_FAILED"
