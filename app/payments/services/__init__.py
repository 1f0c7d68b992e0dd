"""
Billing services for the subscription and payment lifecycle.

This module provides:
- PlanCatalog: Plan lookups
- PaymentIntentService: New subscription, upgrade and downgrade intents
- RefundService: Owner cancel of pending payments and refunds in the window
- AppointmentPaymentService: Appointment checkout and cancel
- SubscriptionService: Subscription creation, plan changes, cancellation
- BillingLedgerService: Append-only billing history

Usage:
    from payments.services import PaymentIntentService

    result = PaymentIntentService().create_upgrade_intent(
        plan_id=plan.id,
        owner_id=owner.id,
        billing_cycle="monthly",
    )

    # Refund a settled payment
    from payments.services import RefundService

    result = RefundService().refund_subscription_payment(
        payment_id=payment.id,
        owner_id=owner.id,
        reason="Duplicate charge",
    )
"""

from payments.services.appointment_payment_service import AppointmentPaymentService
from payments.services.billing_ledger import (
    BillingLedgerService,
    InvoiceNumberExhaustedError,
)
from payments.services.integration import build_gateway, current_gateway_config
from payments.services.payment_intent_service import PaymentIntentService
from payments.services.plan_catalog import PlanCatalog
from payments.services.refund_service import RefundService
from payments.services.subscription_service import SubscriptionService

__all__ = [
    "AppointmentPaymentService",
    "BillingLedgerService",
    "InvoiceNumberExhaustedError",
    "PaymentIntentService",
    "PlanCatalog",
    "RefundService",
    "SubscriptionService",
    "build_gateway",
    "current_gateway_config",
]
