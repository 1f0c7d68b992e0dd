"""
State enums for payment models.

This module defines all state enums used by billing models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

SubscriptionPayment States:
    pending → paid → refunded
    pending → failed
    pending → cancelled (owner cancel, gateway cancel, duplicate at settlement, expiry)

Subscription States:
    active → pending_cancellation → cancelled
    active → cancelled (refund)
    active/pending_cancellation → expired

Payment (appointment) States:
    pending → paid → refunded
    pending → failed
    pending → cancelled
"""

from django.db import models


class SubscriptionPaymentState(models.TextChoices):
    """
    States for a SubscriptionPayment (pending payment intent).

    Terminal states: FAILED, CANCELLED, REFUNDED

    State Flow:
        PENDING → PAID (payment_intent.succeeded)
        PENDING → FAILED (payment_intent.payment_failed)
        PENDING → CANCELLED (owner cancel, payment_intent.canceled, expiry sweep)
        PAID → REFUNDED (owner refund or charge.refunded)
    """

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"


class SubscriptionState(models.TextChoices):
    """
    States for the Subscription model lifecycle.

    At most one ACTIVE subscription may exist per owner.

    State Flow:
        ACTIVE → PENDING_CANCELLATION (owner cancels at period end)
        PENDING_CANCELLATION → CANCELLED (owner cancels now)
        ACTIVE → CANCELLED (refund, or owner cancels now)
        PENDING_CANCELLATION → EXPIRED (lapse sweep at the billing date)
    """

    ACTIVE = "active", "Active"
    PENDING_CANCELLATION = "pending_cancellation", "Pending Cancellation"
    CANCELLED = "cancelled", "Cancelled"
    EXPIRED = "expired", "Expired"


class PaymentState(models.TextChoices):
    """States for a one-off appointment Payment."""

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"


class BillingCycle(models.TextChoices):
    """Recurrence period that selects which plan price applies."""

    MONTHLY = "monthly", "Monthly"
    YEARLY = "yearly", "Yearly"


class PlanStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class UpgradeType(models.TextChoices):
    """Direction of a plan change carried in payment metadata."""

    UPGRADE = "upgrade", "Upgrade"
    DOWNGRADE = "downgrade", "Downgrade"


class BillingHistoryKind(models.TextChoices):
    """Settlement event a BillingHistory row records."""

    CREATION = "creation", "Subscription Created"
    UPGRADE = "upgrade", "Plan Upgrade"
    DOWNGRADE = "downgrade", "Plan Downgrade"
    REFUND = "refund", "Refund"


class BillingHistoryStatus(models.TextChoices):
    PAID = "paid", "Paid"
    REFUNDED = "refunded", "Refunded"
    FAILED = "failed", "Failed"


class PaymentMethod(models.TextChoices):
    """How an appointment payment is made."""

    VISA = "visa", "Visa"
    CRYPTO = "crypto", "Crypto"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


__all__ = [
    "BillingCycle",
    "BillingHistoryKind",
    "BillingHistoryStatus",
    "PaymentMethod",
    "PaymentState",
    "PlanStatus",
    "SubscriptionPaymentState",
    "SubscriptionState",
    "UpgradeType",
    "WebhookEventStatus",
]
