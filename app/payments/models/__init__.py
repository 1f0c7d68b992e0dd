"""
Payment domain models.

This module contains all billing-related models:
- Plan: Subscription plan catalog
- IntegrationSettings: Admin-managed Stripe configuration
- Subscription: An owner's current plan (one active per owner)
- SubscriptionPayment: Pending/settled payment for a new plan or plan change
- BillingHistory: Append-only billing ledger
- Payment: One-off appointment payment
- WebhookEvent: Stripe webhook event tracking for idempotent processing
"""

from payments.models.billing_history import BillingHistory
from payments.models.integration_settings import IntegrationSettings
from payments.models.payment import Payment
from payments.models.plan import Plan
from payments.models.subscription import Subscription
from payments.models.subscription_payment import SubscriptionPayment
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "BillingHistory",
    "IntegrationSettings",
    "Payment",
    "Plan",
    "Subscription",
    "SubscriptionPayment",
    "WebhookEvent",
]
