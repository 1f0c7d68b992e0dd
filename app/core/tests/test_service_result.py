"""
Tests for ServiceResult and BaseService helpers.

These tests verify that:
- Success and failure results render the API body views return
- Application errors keep their own error code
- validate_required reports every missing field at once
"""

from __future__ import annotations

import logging

from payments.exceptions import PlanNotFoundError
from core.services import BaseService, ServiceResult


class TestServiceResult:
    def test_success_response(self):
        result = ServiceResult.success({"paymentId": "abc"})

        assert bool(result) is True
        assert result.to_response() == {"success": True, "data": {"paymentId": "abc"}}

    def test_failure_response(self):
        result = ServiceResult.failure("Plan not found", error_code="PLAN_NOT_FOUND")

        assert bool(result) is False
        assert result.to_response() == {
            "success": False,
            "message": "Plan not found",
            "error_code": "PLAN_NOT_FOUND",
        }

    def test_failure_carries_data(self):
        result = ServiceResult.failure(
            "Refund window has expired",
            error_code="REFUND_WINDOW_EXPIRED",
            data={"daysElapsed": 12},
        )

        assert result.to_response()["data"] == {"daysElapsed": 12}

    def test_from_application_error(self):
        result = ServiceResult.from_exception(PlanNotFoundError("Plan not found"))

        assert result.error == "Plan not found"
        assert result.error_code == "PLAN_NOT_FOUND"

    def test_from_plain_exception(self):
        result = ServiceResult.from_exception(KeyError("plan"))

        assert result.error_code == "KEYERROR"

    def test_error_code_override(self):
        result = ServiceResult.from_exception(PlanNotFoundError("gone"), error_code="INVALID_ARGUMENT")

        assert result.error_code == "INVALID_ARGUMENT"


class TestBaseService:
    def test_validate_required_passes(self):
        assert BaseService.validate_required(plan_id="p1", owner_id=1) is None

    def test_validate_required_collects_missing(self):
        result = BaseService.validate_required(plan_id="  ", owner_id=None, reason="ok")

        assert result.error_code == "INVALID_ARGUMENT"
        assert set(result.errors) == {"plan_id", "owner_id"}

    def test_handle_exception_logs(self, caplog):
        with caplog.at_level(logging.WARNING):
            result = BaseService.handle_exception(
                PlanNotFoundError("missing"), "Lookup failed", log_level=logging.WARNING
            )

        assert result.error_code == "PLAN_NOT_FOUND"
        assert "Lookup failed" in caplog.text

    def test_logger_named_after_service(self):
        class PlanService(BaseService):
            pass

        assert PlanService.get_logger().name.endswith("PlanService")

    def test_handle_exception_logs_error_details(self, caplog):
        from payments.exceptions import StripeCardDeclinedError

        with caplog.at_level(logging.WARNING):
            BaseService.handle_exception(
                StripeCardDeclinedError("Card declined", stripe_code="card_declined"),
                "Checkout failed",
                log_level=logging.WARNING,
            )

        assert caplog.records[-1].error_details == {"stripe_code": "card_declined"}
