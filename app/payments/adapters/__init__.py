"""
Stripe gateway and the money/idempotency helpers that go with it.

Services never import stripe directly; they build a StripeGateway per call
(see payments.services.integration.build_gateway).
"""

from payments.adapters.stripe_adapter import (
    CreateIntentParams,
    GatewayConfig,
    IdempotencyKeyGenerator,
    PaymentIntentResult,
    RefundResult,
    StripeGateway,
    from_minor_units,
    normalize_refund_reason,
    to_minor_units,
)

__all__ = [
    "CreateIntentParams",
    "GatewayConfig",
    "IdempotencyKeyGenerator",
    "PaymentIntentResult",
    "RefundResult",
    "StripeGateway",
    "from_minor_units",
    "normalize_refund_reason",
    "to_minor_units",
]
