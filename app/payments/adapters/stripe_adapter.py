"""
StripeGateway: the only place billing code talks to the Stripe SDK.

A gateway lives for one service call. Services build it from a
GatewayConfig read from IntegrationSettings at that moment, and every
request carries api_key= explicitly, so two gateways with different keys
can coexist in one worker. Timeout and network retries are process-wide
and set in PaymentsConfig.ready().

SDK exceptions never leave this module: they are logged with the call's
context and re-raised as payments.exceptions.Stripe* errors, all of which
surface to API clients as GATEWAY_ERROR.

Usage:
    gateway = StripeGateway(GatewayConfig(secret_key="sk_test_..."))
    intent = gateway.create_intent(
        CreateIntentParams(
            amount_cents=to_minor_units(plan.price),
            currency="usd",
            idempotency_key=IdempotencyKeyGenerator.generate("create_intent", payment.id),
            metadata={"subscription_payment_id": str(payment.id)},
        )
    )
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import stripe
from django.conf import settings

from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
    WebhookSignatureError,
)


@dataclass(frozen=True)
class GatewayConfig:
    secret_key: str
    webhook_secret: str = ""
    currency: str = "usd"

    @classmethod
    def from_integration_settings(cls, integration_settings) -> GatewayConfig:
        return cls(
            secret_key=integration_settings.secret_key,
            webhook_secret=integration_settings.webhook_secret,
            currency=getattr(settings, "STRIPE_CURRENCY", "usd"),
        )


@dataclass
class CreateIntentParams:
    """
    What a PaymentIntent is created with.

    metadata must carry the local row id (subscription_payment_id or
    payment_id); the webhook reconciler falls back to it when the intent id
    lookup misses.
    """

    amount_cents: int
    currency: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)
    description: str = ""

    def __post_init__(self) -> None:
        if self.amount_cents <= 0:
            raise ValueError("amount_cents must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if not self.currency:
            raise ValueError("currency is required")


@dataclass
class PaymentIntentResult:
    id: str
    status: str
    amount_cents: int
    currency: str
    client_secret: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_stripe(cls, intent) -> PaymentIntentResult:
        return cls(
            id=intent.id,
            status=intent.status,
            amount_cents=intent.amount,
            currency=intent.currency,
            client_secret=intent.client_secret,
            metadata=dict(intent.metadata or {}),
        )


@dataclass
class RefundResult:
    id: str
    status: str
    amount_cents: int
    payment_intent_id: str | None = None

    @classmethod
    def from_stripe(cls, refund) -> RefundResult:
        return cls(
            id=refund.id,
            status=refund.status,
            amount_cents=refund.amount,
            payment_intent_id=refund.payment_intent,
        )


# Money and keys


def to_minor_units(amount: Decimal | int | float | str) -> int:
    """
    Major units to cents, half-up.

        to_minor_units(Decimal("29.00"))  # 2900
        to_minor_units(Decimal("0.005"))  # 1
    """
    cents = Decimal(str(amount)) * 100
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount_cents: int) -> Decimal:
    return (Decimal(int(amount_cents)) / 100).quantize(Decimal("0.01"))


def normalize_refund_reason(reason: str | None) -> str:
    """Owners type free text; Stripe accepts duplicate, fraudulent or requested_by_customer."""
    text = (reason or "").lower()
    if "duplicate" in text:
        return "duplicate"
    if "fraud" in text:
        return "fraudulent"
    return "requested_by_customer"


class IdempotencyKeyGenerator:
    """
    "{operation}:{row id}:{attempt}:{8-char digest}"

    Derived from the local row, so retrying an operation for the same row
    gets Stripe's first response back instead of a second intent or refund.
    The digest mixes in SECRET_KEY so keys cannot be predicted from ids.
    """

    @staticmethod
    def generate(operation: str, entity_id: uuid.UUID | str, attempt: int = 1) -> str:
        prefix = f"{operation}:{entity_id}:{attempt}"
        digest = hashlib.sha256(f"{prefix}:{settings.SECRET_KEY}".encode()).hexdigest()
        return f"{prefix}:{digest[:8]}"


# Gateway


class StripeGateway:
    """
    Usage:
        gateway = StripeGateway(config)
        gateway.create_intent(params)
        gateway.cancel_intent("pi_xxx")
        gateway.create_refund("pi_xxx", amount_cents=2900, reason="duplicate")
        event = gateway.verify_webhook_signature(request.body, signature)
    """

    def __init__(self, config: GatewayConfig):
        self.config = config

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    def create_intent(self, params: CreateIntentParams) -> PaymentIntentResult:
        """Create an intent with automatic payment methods enabled."""
        request: dict[str, Any] = {
            "amount": params.amount_cents,
            "currency": params.currency,
            "metadata": params.metadata,
            "automatic_payment_methods": {"enabled": True},
        }
        if params.description:
            request["description"] = params.description

        with self._stripe_call(
            "create_intent",
            amount_cents=params.amount_cents,
            currency=params.currency,
            idempotency_key=params.idempotency_key,
        ) as call:
            intent = stripe.PaymentIntent.create(
                api_key=self.config.secret_key,
                idempotency_key=params.idempotency_key,
                **request,
            )
            call.update(payment_intent_id=intent.id, status=intent.status)

        return PaymentIntentResult.from_stripe(intent)

    def cancel_intent(self, payment_intent_id: str) -> PaymentIntentResult:
        """Fails with StripeInvalidRequestError once the intent has succeeded."""
        with self._stripe_call("cancel_intent", payment_intent_id=payment_intent_id) as call:
            intent = stripe.PaymentIntent.cancel(payment_intent_id, api_key=self.config.secret_key)
            call.update(status=intent.status)

        return PaymentIntentResult.from_stripe(intent)

    def create_refund(
        self,
        payment_intent_id: str,
        amount_cents: int | None = None,
        reason: str | None = None,
        metadata: dict[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> RefundResult:
        """
        Refund a PaymentIntent; amount_cents=None refunds it in full.

        reason should already be one of Stripe's values, see
        normalize_refund_reason.
        """
        request: dict[str, Any] = {"payment_intent": payment_intent_id, "metadata": metadata or {}}
        if amount_cents is not None:
            request["amount"] = amount_cents
        if reason:
            request["reason"] = reason
        if idempotency_key:
            request["idempotency_key"] = idempotency_key

        with self._stripe_call(
            "create_refund",
            payment_intent_id=payment_intent_id,
            amount_cents=amount_cents,
            idempotency_key=idempotency_key,
        ) as call:
            refund = stripe.Refund.create(api_key=self.config.secret_key, **request)
            call.update(refund_id=refund.id, status=refund.status)

        return RefundResult.from_stripe(refund)

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str,
        secret: str | None = None,
    ) -> dict[str, Any]:
        """
        Check the Stripe-Signature header against the raw body and return
        the event as a plain dict.

        Raises:
            WebhookSignatureError: no signing secret, bad signature, or a
                body that is not an event
        """
        secret = secret or self.config.webhook_secret
        if not secret:
            raise WebhookSignatureError("Webhook secret is not configured")

        try:
            event = stripe.Webhook.construct_event(payload, signature, secret)
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError("Invalid webhook signature", details={"error": str(e)}) from e
        except ValueError as e:
            raise WebhookSignatureError("Invalid webhook payload", details={"error": str(e)}) from e
        return event.to_dict()

    @contextmanager
    def _stripe_call(self, operation: str, **context):
        """
        Time and log one SDK request, translating its errors.

        The body may add result fields (ids, status) to the yielded dict;
        they end up on the completion log line.
        """
        logger = self.get_logger()
        log_context: dict[str, Any] = {"operation": operation, **context}
        outcome: dict[str, Any] = {}
        started = time.monotonic()

        logger.info("Stripe request started", extra=log_context)
        try:
            yield outcome
        except stripe.StripeError as error:
            elapsed_ms = (time.monotonic() - started) * 1000
            raise translate_stripe_error(error, {**log_context, "duration_ms": elapsed_ms}) from error

        logger.info(
            "Stripe request completed",
            extra={**log_context, **outcome, "duration_ms": (time.monotonic() - started) * 1000},
        )


def translate_stripe_error(error: stripe.StripeError, log_context: dict[str, Any]):
    """Log an SDK error at the level it deserves and return the billing exception for it."""
    logger = StripeGateway.get_logger()

    if isinstance(error, stripe.CardError):
        decline_code = getattr(error, "decline_code", None)
        logger.warning("Card declined by Stripe", extra={**log_context, "decline_code": decline_code})
        return StripeCardDeclinedError(
            str(error.user_message or error),
            stripe_code=error.code,
            decline_code=decline_code,
        )

    if isinstance(error, stripe.InvalidRequestError):
        logger.error("Stripe rejected the request", extra={**log_context, "stripe_code": error.code})
        return StripeInvalidRequestError(str(error.user_message or error), stripe_code=error.code)

    if isinstance(error, stripe.RateLimitError):
        logger.warning("Rate limited by Stripe", extra=log_context)
        return StripeRateLimitError("Stripe rate limit exceeded. Please retry.", stripe_code="rate_limit")

    if isinstance(error, stripe.APIConnectionError):
        logger.error("Could not reach Stripe", extra=log_context, exc_info=error)
        if "timed out" in str(error).lower() or "timeout" in str(error).lower():
            return StripeTimeoutError("Stripe request timed out. Please retry.", stripe_code="timeout")
        return StripeAPIUnavailableError(
            "Could not connect to Stripe. Please retry.",
            stripe_code="api_connection_error",
        )

    if isinstance(error, stripe.AuthenticationError):
        # A rejected key means IntegrationSettings holds a bad secret
        logger.critical("Stripe rejected the API key", extra=log_context)
        return StripeAPIUnavailableError(
            "Stripe authentication failed",
            stripe_code="authentication_error",
        )

    logger.error("Stripe API error", extra=log_context, exc_info=error)
    return StripeAPIUnavailableError("Stripe service error. Please retry.", stripe_code="api_error")
