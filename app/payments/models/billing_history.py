"""
BillingHistory model: the append-only billing ledger.

One row per settlement event (creation, upgrade, downgrade, refund).
Rows are immutable once written; corrections are made by appending a new
row (a refund appends a negative-amount row rather than editing the
original charge).

Usage:
    from payments.services import BillingLedgerService

    entry = BillingLedgerService.record_settlement(
        subscription=subscription,
        payment=payment,
        kind=BillingHistoryKind.CREATION,
    )
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin

from payments.exceptions import ImmutableRecordError
from payments.state_machines import BillingHistoryKind, BillingHistoryStatus


class BillingHistory(UUIDPrimaryKeyMixin, models.Model):
    """
    Immutable billing ledger row for a subscription.

    Fields:
        subscription: Subscription the event belongs to
        payment: SubscriptionPayment that produced the event
        date: When the event happened
        amount: Signed amount (negative for refunds)
        status: paid / refunded / failed
        kind: creation / upgrade / downgrade / refund
        description: Human-readable description
        transaction_id: External transaction reference (pi_xxx / re_xxx)
        invoice_number: Unique invoice number (INV-YYYY-NNNN)
        subtotal / tax_amount / total: Invoice breakdown
        idempotency_key: One row per settlement event

    Constraints:
        - invoice_number must be unique
        - idempotency_key must be unique
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this row was recorded",
    )

    subscription = models.ForeignKey(
        "payments.Subscription",
        on_delete=models.PROTECT,
        related_name="billing_history",
        help_text="Subscription this entry belongs to",
    )

    payment = models.ForeignKey(
        "payments.SubscriptionPayment",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="billing_history",
        help_text="Payment that produced this entry",
    )

    date = models.DateTimeField(
        db_index=True,
        help_text="When the billing event happened",
    )

    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Signed amount; negative for refunds",
    )

    status = models.CharField(
        max_length=20,
        choices=BillingHistoryStatus.choices,
        help_text="Billing status of this entry",
    )

    kind = models.CharField(
        max_length=20,
        choices=BillingHistoryKind.choices,
        help_text="Settlement event this entry records",
    )

    description = models.TextField(
        blank=True,
        default="",
        help_text="Human-readable description",
    )

    transaction_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="External transaction reference",
    )

    invoice_number = models.CharField(
        max_length=32,
        unique=True,
        help_text="Invoice number (INV-YYYY-NNNN)",
    )

    subtotal = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Amount before tax",
    )

    tax_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=0,
        help_text="Tax charged",
    )

    total = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="subtotal + tax_amount",
    )

    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Unique key to prevent duplicate entries for one event",
    )

    class Meta:
        ordering = ["-date"]
        verbose_name = "Billing History"
        verbose_name_plural = "Billing History"
        indexes = [
            models.Index(fields=["subscription", "date"], name="billing_sub_date_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.invoice_number}: {self.amount} ({self.get_kind_display()})"

    def save(self, *args, **kwargs):
        """Insert-only: saving an existing row raises ImmutableRecordError."""
        if not self._state.adding:
            raise ImmutableRecordError(
                "BillingHistory entries are immutable",
                details={"billing_history_id": str(self.pk)},
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError(
            "BillingHistory entries cannot be deleted",
            details={"billing_history_id": str(self.pk)},
        )
