"""
Test configuration and fixtures for billing tests.

Sections:
    - Integration Fixtures
    - Fake Gateway Fixtures
    - Domain Fixtures
    - API Client Fixtures

Usage:
    def test_example(owner, basic_plan, gateway_factory):
        service = PaymentIntentService(gateway_factory=gateway_factory)
        result = service.create_subscription_intent(basic_plan.id, owner.id, "monthly")
        assert result.success
"""

import uuid
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import BillingAdminFactory, UserFactory
from payments.adapters import GatewayConfig, PaymentIntentResult, RefundResult, StripeGateway
from payments.state_machines import SubscriptionPaymentState
from payments.tests.factories import (
    IntegrationSettingsFactory,
    PlanFactory,
    SubscriptionFactory,
    SubscriptionPaymentFactory,
)


# =============================================================================
# Integration Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def integration_settings(db):
    """Enabled Stripe configuration used by every billing test."""
    return IntegrationSettingsFactory()


@pytest.fixture
def payments_disabled(integration_settings):
    integration_settings.stripe_enabled = False
    integration_settings.save()
    return integration_settings


# =============================================================================
# Fake Gateway Fixtures
# =============================================================================


@pytest.fixture
def fake_gateway():
    """
    In-memory stand-in for StripeGateway.

    create_intent echoes the request back with a fresh pi_ id; create_refund
    returns a succeeded refund for the requested amount.
    """
    gateway = MagicMock()
    gateway.config = GatewayConfig(
        secret_key="sk_test_factory",
        webhook_secret="whsec_test_factory",
        currency="usd",
    )

    def _create_intent(params):
        intent_id = f"pi_fake_{uuid.uuid4().hex[:12]}"
        return PaymentIntentResult(
            id=intent_id,
            status="requires_payment_method",
            amount_cents=params.amount_cents,
            currency=params.currency,
            client_secret=f"{intent_id}_secret_fake",
            metadata=params.metadata,
        )

    def _create_refund(payment_intent_id, amount_cents=None, **kwargs):
        return RefundResult(
            id="re_fake_123",
            status="succeeded",
            amount_cents=amount_cents or 0,
            payment_intent_id=payment_intent_id,
        )

    gateway.create_intent.side_effect = _create_intent
    gateway.create_refund.side_effect = _create_refund
    return gateway


@pytest.fixture
def gateway_factory(fake_gateway):
    """Factory handed to services; records the GatewayConfig it was built with."""
    return MagicMock(return_value=fake_gateway)


@pytest.fixture
def stripe_calls(fake_gateway):
    """
    Patch StripeGateway's network methods for API tests.

    Views build their own gateway, so the real class is patched and each
    call is forwarded to fake_gateway (which also records it).
    """
    with (
        patch.object(
            StripeGateway,
            "create_intent",
            autospec=True,
            side_effect=lambda gateway, params: fake_gateway.create_intent(params),
        ),
        patch.object(
            StripeGateway,
            "cancel_intent",
            autospec=True,
            side_effect=lambda gateway, intent_id: fake_gateway.cancel_intent(intent_id),
        ),
        patch.object(
            StripeGateway,
            "create_refund",
            autospec=True,
            side_effect=lambda gateway, *args, **kwargs: fake_gateway.create_refund(*args, **kwargs),
        ),
    ):
        yield fake_gateway


# =============================================================================
# Domain Fixtures
# =============================================================================


@pytest.fixture
def owner(db):
    """Salon owner buying subscriptions."""
    return UserFactory(name="Jane Owner", email="owner@example.com")


@pytest.fixture
def other_owner(db):
    return UserFactory(email="other@example.com")


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
def paid_payment(owner, basic_plan):
    """A settled new-subscription payment for the basic plan."""
    payment = SubscriptionPaymentFactory(owner=owner, plan=basic_plan)
    payment.mark_paid()
    payment.save()
    return payment


@pytest.fixture
def active_subscription(owner, basic_plan, paid_payment):
    """ACTIVE basic subscription created by paid_payment."""
    return SubscriptionFactory(
        owner=owner,
        plan=basic_plan,
        payment=paid_payment,
        start_date=paid_payment.payment_date,
    )


@pytest.fixture
def pending_payment(owner, basic_plan):
    return SubscriptionPaymentFactory(owner=owner, plan=basic_plan)


@pytest.fixture
def failed_payment(owner, basic_plan):
    return SubscriptionPaymentFactory(
        owner=owner,
        plan=basic_plan,
        status=SubscriptionPaymentState.FAILED,
    )


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def owner_client(owner):
    """API client authenticated as owner with a JWT access token."""
    client = APIClient()
    refresh = RefreshToken.for_user(owner)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


@pytest.fixture
def admin_client(db):
    admin = BillingAdminFactory(email="admin@example.com")
    client = APIClient()
    refresh = RefreshToken.for_user(admin)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client
