"""
Pytest fixtures for webhook tests.

Provides Stripe-shaped event payloads, WebhookEvent rows built from them
and a signer producing valid Stripe-Signature headers.
"""

import hashlib
import hmac
import json
import time
import uuid
from decimal import Decimal

import pytest

from authentication.tests.factories import UserFactory
from payments.tests.factories import (
    IntegrationSettingsFactory,
    PlanFactory,
    SubscriptionFactory,
    SubscriptionPaymentFactory,
    WebhookEventFactory,
)

WEBHOOK_SECRET = "whsec_test_factory"


@pytest.fixture(autouse=True)
def integration_settings(db):
    return IntegrationSettingsFactory(stripe_webhook_secret=WEBHOOK_SECRET)


# =============================================================================
# Domain Fixtures
# =============================================================================


@pytest.fixture
def owner(db):
    return UserFactory(name="Jane Owner", email="owner@example.com")


@pytest.fixture
def basic_plan(db):
    return PlanFactory(
        name="Basic",
        price=Decimal("29.00"),
        yearly_price=Decimal("290.00"),
        limits={"bookings": 500, "staff": 5, "locations": 1},
    )


@pytest.fixture
def pro_plan(db):
    return PlanFactory(
        name="Professional",
        price=Decimal("79.00"),
        yearly_price=Decimal("790.00"),
        limits={"bookings": 2000, "staff": 20, "locations": 3},
    )


@pytest.fixture
def pending_payment(owner, basic_plan):
    """Pending new-subscription payment awaiting payment_intent.succeeded."""
    return SubscriptionPaymentFactory(owner=owner, plan=basic_plan)


@pytest.fixture
def active_subscription(owner, basic_plan):
    """ACTIVE basic subscription created by an earlier settled payment."""
    payment = SubscriptionPaymentFactory(owner=owner, plan=basic_plan)
    payment.mark_paid()
    payment.save()
    return SubscriptionFactory(
        owner=owner,
        plan=basic_plan,
        payment=payment,
        start_date=payment.payment_date,
        usage={
            "bookings": 37,
            "bookingsLimit": 500,
            "staff": 3,
            "staffLimit": 5,
            "locations": 1,
            "locationsLimit": 1,
        },
    )


@pytest.fixture
def upgrade_payment(owner, pro_plan, active_subscription):
    """Pending yearly upgrade of active_subscription to the pro plan."""
    return SubscriptionPaymentFactory(
        owner=owner,
        plan=pro_plan,
        amount=pro_plan.yearly_price,
        billing_cycle="yearly",
        metadata={
            "upgrade_type": "upgrade",
            "current_subscription_id": str(active_subscription.id),
            "previous_plan_id": str(active_subscription.plan_id),
        },
    )


# =============================================================================
# Event Fixtures
# =============================================================================


def _intent_payload(event_type: str, payment_intent_id: str, **object_fields) -> dict:
    """Minimal Stripe event envelope around a PaymentIntent object."""
    return {
        "id": f"evt_{uuid.uuid4().hex[:16]}",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": payment_intent_id,
                "object": "payment_intent",
                **object_fields,
            }
        },
    }


def _charge_refunded_payload(payment_intent_id: str, amount_refunded: int, refund_id: str = "re_test_1") -> dict:
    return {
        "id": f"evt_{uuid.uuid4().hex[:16]}",
        "object": "event",
        "type": "charge.refunded",
        "data": {
            "object": {
                "id": f"ch_{uuid.uuid4().hex[:12]}",
                "object": "charge",
                "payment_intent": payment_intent_id,
                "amount_refunded": amount_refunded,
                "refunds": {"data": [{"id": refund_id, "amount": amount_refunded}]},
            }
        },
    }


@pytest.fixture
def make_event(db):
    """Persist a WebhookEvent for a payload built by one of the helpers above."""

    def _make(payload: dict):
        return WebhookEventFactory(
            stripe_event_id=payload["id"],
            event_type=payload["type"],
            payload=payload,
        )

    return _make


@pytest.fixture
def sign_payload():
    """Build a Stripe-Signature header for a raw body."""

    def _sign(body: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
        timestamp = timestamp or int(time.time())
        signed = f"{timestamp}.{body.decode()}".encode()
        signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={signature}"

    return _sign


@pytest.fixture
def post_event(client, sign_payload):
    """POST a signed event to the webhook endpoint."""

    def _post(payload: dict, signature: str | None = None):
        body = json.dumps(payload).encode()
        headers = {}
        if signature is None:
            signature = sign_payload(body)
        if signature:
            headers["HTTP_STRIPE_SIGNATURE"] = signature
        return client.post(
            "/api/v1/payments/webhooks/stripe/",
            data=body,
            content_type="application/json",
            **headers,
        )

    return _post


@pytest.fixture
def intent_payload():
    return _intent_payload


@pytest.fixture
def refund_payload():
    return _charge_refunded_payload
