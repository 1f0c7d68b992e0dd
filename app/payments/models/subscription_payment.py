"""
SubscriptionPayment model for pending and settled plan payments.

A SubscriptionPayment is persisted before the Stripe PaymentIntent is
created, so every remote intent has a local row to correlate against. The
webhook path only moves status, timestamps and metadata; the row is never
deleted.

Usage:
    from payments.models import SubscriptionPayment
    from payments.state_machines import SubscriptionPaymentState

    payment = SubscriptionPayment.objects.create(
        owner=owner,
        plan=plan,
        amount=Decimal("29.00"),
        billing_cycle=BillingCycle.MONTHLY,
        expires_at=timezone.now() + timedelta(days=30),
    )

    # After payment_intent.succeeded
    payment.mark_paid()
    payment.save()
"""

from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import (
    BillingCycle,
    SubscriptionPaymentState,
    UpgradeType,
)

# Days a pending payment stays valid before the expiry sweep cancels it
PENDING_EXPIRY_DAYS = {
    BillingCycle.MONTHLY: 30,
    BillingCycle.YEARLY: 365,
}


def compute_expires_at(billing_cycle: str, now=None):
    """Pending expiry: now + 30 days for monthly, + 365 days for yearly."""
    now = now or timezone.now()
    return now + timedelta(days=PENDING_EXPIRY_DAYS.get(billing_cycle, 30))


class SubscriptionPayment(UUIDPrimaryKeyMixin, BaseModel):
    """
    A payment for a new subscription or a plan change.

    State Flow:
        PENDING -> PAID (payment_intent.succeeded)
        PENDING -> FAILED (payment_intent.payment_failed)
        PENDING -> CANCELLED (owner cancel, payment_intent.canceled,
                              duplicate detected at settlement, expiry)
        PAID -> REFUNDED (owner refund or charge.refunded)

    Metadata:
        plan_name, owner_name, billing_cycle always; upgrade_type and
        current_subscription_id when the payment changes an existing
        subscription; refund_window_days, days_elapsed and refund_id
        after a refund; reconciliation_required when a plan change
        settles after its subscription stopped being active.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="subscription_payments",
        help_text="Salon owner making the payment",
    )

    plan = models.ForeignKey(
        "payments.Plan",
        on_delete=models.PROTECT,
        related_name="subscription_payments",
        help_text="Plan being purchased",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Amount charged in major currency units",
    )

    currency = models.CharField(
        max_length=3,
        default="usd",
        help_text="ISO 4217 currency code (lowercase)",
    )

    billing_cycle = models.CharField(
        max_length=10,
        choices=BillingCycle.choices,
        default=BillingCycle.MONTHLY,
        help_text="Billing cycle the amount pays for",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=SubscriptionPaymentState.PENDING,
        choices=SubscriptionPaymentState.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payment (managed by FSM)",
    )

    # ==========================================================================
    # Stripe Integration
    # ==========================================================================

    payment_intent_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Stripe PaymentIntent ID (pi_xxx)",
    )

    client_secret = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="PaymentIntent client secret handed to the client",
    )

    transaction_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        db_index=True,
        help_text="External transaction reference",
    )

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    expires_at = models.DateTimeField(
        db_index=True,
        help_text="When a still-pending payment is considered stale",
    )

    payment_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment settled",
    )

    failed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment failed",
    )

    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment was cancelled",
    )

    # ==========================================================================
    # Failure / Cancellation
    # ==========================================================================

    failure_reason = models.TextField(
        blank=True,
        default="",
        help_text="Gateway failure message",
    )

    cancellation_reason = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Why the payment was cancelled",
    )

    # ==========================================================================
    # Refund
    # ==========================================================================

    refund_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount refunded",
    )

    refund_reason = models.TextField(
        blank=True,
        default="",
        help_text="Owner-supplied refund reason",
    )

    refund_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Stripe Refund ID (re_xxx)",
    )

    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the refund was issued",
    )

    # ==========================================================================
    # Metadata
    # ==========================================================================

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Audit metadata (plan change details, refund window, etc.)",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription Payment"
        verbose_name_plural = "Subscription Payments"
        indexes = [
            models.Index(fields=["owner", "status"], name="subpay_owner_status_idx"),
            models.Index(fields=["status", "expires_at"], name="subpay_status_expiry_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name="subscription_payment_amount_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"SubscriptionPayment({self.id}, {self.status}, {self.amount} {self.currency.upper()})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=SubscriptionPaymentState.PENDING,
        target=SubscriptionPaymentState.PAID,
    )
    def mark_paid(self):
        """
        Mark payment as settled.

        Transition: PENDING -> PAID
        """
        self.payment_date = timezone.now()

    @transition(
        field=status,
        source=SubscriptionPaymentState.PENDING,
        target=SubscriptionPaymentState.FAILED,
    )
    def mark_failed(self, reason: str | None = None):
        """
        Mark payment as failed.

        Transition: PENDING -> FAILED

        Args:
            reason: Gateway failure message, if any
        """
        self.failed_at = timezone.now()
        if reason:
            self.failure_reason = reason

    @transition(
        field=status,
        source=SubscriptionPaymentState.PENDING,
        target=SubscriptionPaymentState.CANCELLED,
    )
    def cancel(self, reason: str = ""):
        """
        Cancel a pending payment.

        Transition: PENDING -> CANCELLED
        """
        self.cancelled_at = timezone.now()
        self.cancellation_reason = reason

    @transition(
        field=status,
        source=SubscriptionPaymentState.PENDING,
        target=SubscriptionPaymentState.CANCELLED,
    )
    def expire(self):
        """
        Cancel a pending payment whose expiry passed.

        Transition: PENDING -> CANCELLED
        """
        self.cancelled_at = timezone.now()
        self.cancellation_reason = "expired"

    @transition(
        field=status,
        source=SubscriptionPaymentState.PAID,
        target=SubscriptionPaymentState.REFUNDED,
    )
    def refund(self, amount=None, refund_id: str = "", reason: str = ""):
        """
        Mark payment as refunded.

        Transition: PAID -> REFUNDED

        Args:
            amount: Refunded amount (defaults to the full amount)
            refund_id: Stripe Refund ID
            reason: Refund reason
        """
        self.refunded_at = timezone.now()
        self.refund_amount = amount if amount is not None else self.amount
        if refund_id:
            self.refund_id = refund_id
        if reason:
            self.refund_reason = reason

    # ==========================================================================
    # Helper Properties
    # ==========================================================================

    @property
    def upgrade_type(self) -> str | None:
        """upgrade/downgrade for plan-change payments, None for new subscriptions."""
        value = (self.metadata or {}).get("upgrade_type")
        return value if value in UpgradeType.values else None

    @property
    def current_subscription_id(self) -> str | None:
        return (self.metadata or {}).get("current_subscription_id")

    @property
    def is_plan_change(self) -> bool:
        return bool(self.upgrade_type and self.current_subscription_id)

    @property
    def is_pending(self) -> bool:
        return self.status == SubscriptionPaymentState.PENDING

    @property
    def is_paid(self) -> bool:
        return self.status == SubscriptionPaymentState.PAID
