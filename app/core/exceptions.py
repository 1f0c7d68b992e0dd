"""
Root of the application exception hierarchy.

Subclasses declare a default_error_code; ServiceResult.from_exception
carries that code to the API, where views map it to an HTTP status.

    class PlanNotFoundError(PaymentError):
        default_error_code = "PLAN_NOT_FOUND"

    raise PlanNotFoundError("Plan not found", details={"plan_id": plan_id})
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Exception with a machine-readable code.

    message is safe to show to API clients; details is for logs only.
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, error_code={self.error_code!r})"
