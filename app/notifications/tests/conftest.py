"""
Test configuration and fixtures for notification tests.

Usage:
    def test_example(paid_payment, mailoutbox):
        InvoiceEmailService.send_invoice_email(paid_payment)
        assert len(mailoutbox) == 1
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from payments.state_machines import SubscriptionPaymentState
from payments.tests.factories import (
    IntegrationSettingsFactory,
    PlanFactory,
    SubscriptionFactory,
    SubscriptionPaymentFactory,
)


@pytest.fixture
def owner(db):
    """Salon owner receiving billing emails."""
    return UserFactory(name="Jane Owner", email="jane@example.com")


@pytest.fixture
def other_user(db):
    return UserFactory()


@pytest.fixture
def plan(db):
    return PlanFactory(name="Professional")


@pytest.fixture
def paid_payment(db, owner, plan):
    """A settled monthly subscription payment."""
    return SubscriptionPaymentFactory(
        owner=owner,
        plan=plan,
        status=SubscriptionPaymentState.PAID,
    )


@pytest.fixture
def subscription(db, owner, plan, paid_payment):
    return SubscriptionFactory(owner=owner, plan=plan, payment=paid_payment)


@pytest.fixture
def emails_disabled(db):
    """Integration settings with billing emails switched off."""
    return IntegrationSettingsFactory(email_enabled=False)


@pytest.fixture
def owner_client(owner):
    """API client authenticated as owner with a JWT access token."""
    client = APIClient()
    refresh = RefreshToken.for_user(owner)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client
