"""
Service-layer contract for billing operations.

Every billing operation returns a ServiceResult. Expected outcomes that are
not successes (duplicate subscription, expired refund window, unknown
plan) are failures with an error code; views map the code to an HTTP
status. Exceptions are left for things that should not happen: database
errors, bugs, and gateway errors that services translate through
handle_exception.

    class RefundService(BaseService):
        def refund(self, payment_id, owner_id, reason) -> ServiceResult[dict]:
            validation = self.validate_required(payment_id=payment_id, reason=reason)
            if validation is not None:
                return validation
            ...
            return ServiceResult.success({"refunded": True})

    # view
    result = RefundService().refund(...)
    return Response(result.to_response(), status=200 if result else 400)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of a service call; truthy on success.

    A failure may still carry data, e.g. the refund window numbers that
    explain a REFUND_WINDOW_EXPIRED. errors holds per-field messages for
    INVALID_ARGUMENT failures.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
        data: T | None = None,
    ) -> ServiceResult[T]:
        return cls(success=False, data=data, error=error, error_code=error_code, errors=errors)

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Failure built from a caught exception.

        Application errors contribute their message and error code; anything
        else is coded by its class name (KeyError -> KEYERROR). error_code,
        when given, wins over both.
        """
        from core.exceptions import BaseApplicationError

        if isinstance(exc, BaseApplicationError):
            message, code = exc.message, exc.error_code
        else:
            message, code = str(exc), exc.__class__.__name__.upper()
        return cls(success=False, error=message, error_code=error_code or code)

    def to_response(self) -> dict[str, Any]:
        """
        API body:

            {"success": true, "data": ...}
            {"success": false, "message": ..., "error_code": ..., "errors"?: ..., "data"?: ...}
        """
        if self.success:
            return {"success": True, "data": self.data}

        body: dict[str, Any] = {"success": False, "message": self.error}
        if self.error_code:
            body["error_code"] = self.error_code
        if self.errors:
            body["errors"] = self.errors
        if self.data is not None:
            body["data"] = self.data
        return body

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Shared helpers for billing services.

    Services that reach Stripe are instantiated with a gateway factory so
    tests can hand them a fake; the rest use classmethods.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """transaction.atomic(), spelled so transaction edges stand out in service code."""
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
        error_code: str | None = None,
    ) -> ServiceResult:
        """Log exc under this service's logger and turn it into a failure."""
        message = f"{context}: {exc}" if context else str(exc)
        cls.get_logger().log(
            log_level,
            message,
            exc_info=log_level >= logging.ERROR,
            extra={"error_details": getattr(exc, "details", None) or {}},
        )
        return ServiceResult.from_exception(exc, error_code)

    @classmethod
    def validate_required(cls, **fields) -> ServiceResult | None:
        """
        INVALID_ARGUMENT failure naming every None or blank field, or None
        when all are present. The failure is falsy, so compare with None.
        """
        errors = {
            name: ["This field is required."]
            for name, value in fields.items()
            if value is None or (isinstance(value, str) and not value.strip())
        }
        if not errors:
            return None
        return ServiceResult.failure(
            f"Required fields missing: {', '.join(errors)}",
            error_code="INVALID_ARGUMENT",
            errors=errors,
        )
