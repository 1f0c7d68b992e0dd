"""
Payment model for one-off appointment payments.

Distinct from SubscriptionPayment: reconciled by the same Stripe webhook
events, but drives the linked Appointment's status instead of a
subscription.

Usage:
    from payments.models import Payment

    payment = Payment.objects.create(
        user=customer,
        appointment=appointment,
        amount=appointment.total_price,
    )

    # After payment_intent.succeeded
    payment.mark_paid()
    appointment.book()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import PaymentMethod, PaymentState


class Payment(UUIDPrimaryKeyMixin, BaseModel):
    """
    One-off payment for a single appointment.

    State Flow:
        PENDING -> PAID -> REFUNDED
        PENDING -> FAILED
        PENDING -> CANCELLED

    Fields:
        user: Customer paying
        appointment: Appointment being paid for (one payment per appointment)
        amount: Amount in major currency units
        method: visa or crypto
        status: Current FSM state
        transaction_id: Stripe PaymentIntent ID used for correlation
        client_secret: PaymentIntent client secret handed to the client
        payment_date: When the payment settled
        refund_amount / refund_reason: Refund details
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="appointment_payments",
        help_text="Customer paying for the appointment",
    )

    appointment = models.OneToOneField(
        "salons.Appointment",
        on_delete=models.PROTECT,
        related_name="payment",
        help_text="Appointment being paid for",
    )

    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Amount in major currency units",
    )

    method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.VISA,
        help_text="Payment method",
    )

    status = FSMField(
        default=PaymentState.PENDING,
        choices=PaymentState.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payment (managed by FSM)",
    )

    transaction_id = models.CharField(
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

    payment_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment settled",
    )

    failure_reason = models.TextField(
        blank=True,
        default="",
        help_text="Gateway failure message",
    )

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
        help_text="Refund reason",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Appointment Payment"
        verbose_name_plural = "Appointment Payments"
        indexes = [
            models.Index(fields=["user", "status"], name="payment_user_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Payment({self.id}, {self.status}, {self.amount})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source=PaymentState.PENDING, target=PaymentState.PAID)
    def mark_paid(self):
        self.payment_date = timezone.now()

    @transition(field=status, source=PaymentState.PENDING, target=PaymentState.FAILED)
    def mark_failed(self, reason: str | None = None):
        if reason:
            self.failure_reason = reason

    @transition(field=status, source=PaymentState.PENDING, target=PaymentState.CANCELLED)
    def cancel(self):
        pass

    @transition(field=status, source=PaymentState.PAID, target=PaymentState.REFUNDED)
    def refund(self, amount=None, reason: str = ""):
        """
        Mark payment as refunded.

        Transition: PAID -> REFUNDED
        """
        self.refund_amount = amount if amount is not None else self.amount
        if reason:
            self.refund_reason = reason
