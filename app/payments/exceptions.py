"""
Billing exceptions.

    PaymentError
    ├── PlanNotFoundError          PLAN_NOT_FOUND
    ├── PaymentsDisabledError      PAYMENTS_DISABLED
    ├── GatewayNotConfiguredError  GATEWAY_NOT_CONFIGURED
    └── StripeError                GATEWAY_ERROR
        ├── StripeCardDeclinedError
        ├── StripeInvalidRequestError
        ├── StripeRateLimitError        (retryable)
        ├── StripeAPIUnavailableError   (retryable)
        └── StripeTimeoutError          (retryable)

    WebhookSignatureError          INVALID_SIGNATURE
    ImmutableRecordError           IMMUTABLE_RECORD

Only the gateway raises Stripe* errors; services catch StripeError and
return a GATEWAY_ERROR failure whose data carries is_retryable as
{"retryable": bool}, so API clients know whether to try again. Request
handlers never retry on their own.
"""

from __future__ import annotations

from core.exceptions import BaseApplicationError


class PaymentError(BaseApplicationError):
    default_error_code = "PAYMENT_ERROR"


class PlanNotFoundError(PaymentError):
    default_error_code = "PLAN_NOT_FOUND"


class PaymentsDisabledError(PaymentError):
    """Stripe is switched off in IntegrationSettings."""

    default_error_code = "PAYMENTS_DISABLED"


class GatewayNotConfiguredError(PaymentError):
    """No secret key in IntegrationSettings or the environment."""

    default_error_code = "GATEWAY_NOT_CONFIGURED"


class StripeError(PaymentError):
    """
    A Stripe request failed.

    stripe_code is Stripe's own code (card_declined, resource_missing,
    rate_limit, ...). decline_code is set for card declines only.
    """

    default_error_code = "GATEWAY_ERROR"
    is_retryable = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
    ):
        details = {"stripe_code": stripe_code, "decline_code": decline_code}
        super().__init__(
            message,
            error_code=error_code,
            details={key: value for key, value in details.items() if value},
        )
        self.stripe_code = stripe_code
        self.decline_code = decline_code


class StripeCardDeclinedError(StripeError):
    pass


class StripeInvalidRequestError(StripeError):
    """Unknown intent, refund of an uncaptured intent, cancel after success."""


class StripeRateLimitError(StripeError):
    is_retryable = True


class StripeAPIUnavailableError(StripeError):
    """Network failure, Stripe 5xx, or a rejected API key."""

    is_retryable = True


class StripeTimeoutError(StripeError):
    """
    No answer in time; Stripe may still have done the work. A retry with
    the same idempotency key returns the original result.
    """

    is_retryable = True


class WebhookSignatureError(BaseApplicationError):
    default_error_code = "INVALID_SIGNATURE"


class ImmutableRecordError(BaseApplicationError):
    """Update or delete attempted on a BillingHistory row."""

    default_error_code = "IMMUTABLE_RECORD"


__all__ = [
    "PaymentError",
    "PlanNotFoundError",
    "PaymentsDisabledError",
    "GatewayNotConfiguredError",
    "StripeError",
    "StripeCardDeclinedError",
    "StripeInvalidRequestError",
    "StripeRateLimitError",
    "StripeAPIUnavailableError",
    "StripeTimeoutError",
    "WebhookSignatureError",
    "ImmutableRecordError",
]
