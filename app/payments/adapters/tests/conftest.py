"""
Fixtures for StripeGateway tests.

The stripe SDK's resource classes are patched at their module path; the
objects they return are real StripeObjects built with construct_from, so
attribute access behaves exactly as it does against the live API.
"""

from unittest.mock import patch

import pytest
import stripe

from payments.adapters import GatewayConfig, StripeGateway


@pytest.fixture
def gateway_config():
    return GatewayConfig(
        secret_key="sk_test_gateway",
        webhook_secret="whsec_gateway",
        currency="usd",
    )


@pytest.fixture
def gateway(gateway_config):
    return StripeGateway(gateway_config)


# =============================================================================
# Stripe objects
# =============================================================================


def build_payment_intent(**fields) -> stripe.PaymentIntent:
    values = {
        "id": "pi_test123456",
        "object": "payment_intent",
        "status": "requires_payment_method",
        "amount": 2900,
        "currency": "usd",
        "client_secret": "pi_test123456_secret_abc123",
        "metadata": {},
        **fields,
    }
    return stripe.PaymentIntent.construct_from(values, "sk_test_gateway")


def build_refund(**fields) -> stripe.Refund:
    values = {
        "id": "re_test123456",
        "object": "refund",
        "amount": 2900,
        "currency": "usd",
        "status": "succeeded",
        "payment_intent": "pi_test123456",
        **fields,
    }
    return stripe.Refund.construct_from(values, "sk_test_gateway")


@pytest.fixture
def mock_stripe_payment_intent():
    """stripe.PaymentIntent with create/cancel returning canned intents."""
    created = build_payment_intent()
    canceled = build_payment_intent(status="canceled")
    with patch("stripe.PaymentIntent") as mock:
        mock.create.return_value = created
        mock.cancel.return_value = canceled
        yield mock


@pytest.fixture
def mock_stripe_refund():
    refund = build_refund()
    with patch("stripe.Refund") as mock:
        mock.create.return_value = refund
        yield mock


@pytest.fixture
def mock_stripe_webhook():
    """stripe.Webhook whose construct_event accepts anything."""
    event = stripe.Event.construct_from(
        {
            "id": "evt_test123",
            "object": "event",
            "type": "payment_intent.succeeded",
            "data": {"object": {"id": "pi_test123", "object": "payment_intent"}},
        },
        "sk_test_gateway",
    )
    with patch("stripe.Webhook") as mock:
        mock.construct_event.return_value = event
        yield mock
