"""
Billing ledger service.

Appends BillingHistory rows for settlement and refund events. The ledger
is append-only: one row per settlement event, guarded by a unique
idempotency key so a redelivered webhook cannot write a second row.

Invoice Numbers:
    INV-{YYYY}-{NNNN} with four random digits, regenerated on collision.

Usage:
    from payments.services import BillingLedgerService
    from payments.state_machines import BillingHistoryKind

    entry = BillingLedgerService.record_settlement(
        subscription=subscription,
        payment=payment,
        kind=BillingHistoryKind.CREATION,
        description="Subscription to Professional plan (monthly)",
    )

    # Backfill rows for paid payments that have none
    summary = BillingLedgerService.ensure_history_for_all_payments()
    # {"created": 2, "existing": 10, "total": 12}
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import TYPE_CHECKING

from django.utils import timezone

from core.services import BaseService

from payments.models import BillingHistory, SubscriptionPayment
from payments.services.subscription_service import SubscriptionService
from payments.state_machines import (
    BillingHistoryKind,
    BillingHistoryStatus,
    SubscriptionPaymentState,
    UpgradeType,
)

if TYPE_CHECKING:
    from datetime import datetime

    from payments.models import Subscription

INVOICE_NUMBER_ATTEMPTS = 20


class InvoiceNumberExhaustedError(RuntimeError):
    """No free invoice number was found for the current year."""


class BillingLedgerService(BaseService):
    """Append-only writes and reads for the billing ledger."""

    # =========================================================================
    # Keys & Numbers
    # =========================================================================

    @staticmethod
    def settlement_key(payment: SubscriptionPayment) -> str:
        return f"settlement:{payment.id}"

    @staticmethod
    def refund_key(payment: SubscriptionPayment) -> str:
        return f"refund:{payment.id}"

    @classmethod
    def generate_invoice_number(cls, now: datetime | None = None) -> str:
        """
        Generate an unused invoice number for the current year.

        Raises:
            InvoiceNumberExhaustedError: Every attempt collided
        """
        year = (now or timezone.now()).year
        for _ in range(INVOICE_NUMBER_ATTEMPTS):
            candidate = f"INV-{year}-{secrets.randbelow(10000):04d}"
            if not BillingHistory.objects.filter(invoice_number=candidate).exists():
                return candidate
        raise InvoiceNumberExhaustedError(f"No free invoice number for {year}")

    @staticmethod
    def kind_for_payment(payment: SubscriptionPayment) -> str:
        if payment.upgrade_type == UpgradeType.UPGRADE:
            return BillingHistoryKind.UPGRADE
        if payment.upgrade_type == UpgradeType.DOWNGRADE:
            return BillingHistoryKind.DOWNGRADE
        return BillingHistoryKind.CREATION

    @staticmethod
    def describe(payment: SubscriptionPayment, kind: str) -> str:
        plan_name = payment.plan.name
        cycle = payment.billing_cycle
        if kind == BillingHistoryKind.UPGRADE:
            return f"Upgrade to {plan_name} plan ({cycle})"
        if kind == BillingHistoryKind.DOWNGRADE:
            return f"Downgrade to {plan_name} plan ({cycle})"
        return f"Subscription to {plan_name} plan ({cycle})"

    # =========================================================================
    # Writes
    # =========================================================================

    @classmethod
    def record_settlement(
        cls,
        subscription: Subscription,
        payment: SubscriptionPayment,
        kind: str | None = None,
        description: str | None = None,
    ) -> BillingHistory:
        """
        Append the ledger row for a settled payment.

        subtotal is the payment amount, tax is zero, total is subtotal + tax.
        Must be called inside the settlement transaction.
        """
        kind = kind or cls.kind_for_payment(payment)
        date = payment.payment_date or timezone.now()
        subtotal = payment.amount
        tax_amount = Decimal("0.00")

        entry = BillingHistory.objects.create(
            subscription=subscription,
            payment=payment,
            date=date,
            amount=payment.amount,
            status=BillingHistoryStatus.PAID,
            kind=kind,
            description=description or cls.describe(payment, kind),
            transaction_id=payment.transaction_id or payment.payment_intent_id or "",
            invoice_number=cls.generate_invoice_number(date),
            subtotal=subtotal,
            tax_amount=tax_amount,
            total=subtotal + tax_amount,
            idempotency_key=cls.settlement_key(payment),
        )

        cls.get_logger().info(
            "Billing history recorded",
            extra={
                "billing_history_id": str(entry.id),
                "invoice_number": entry.invoice_number,
                "subscription_id": str(subscription.id),
                "payment_id": str(payment.id),
                "kind": kind,
            },
        )
        return entry

    @classmethod
    def record_refund(
        cls,
        subscription: Subscription,
        payment: SubscriptionPayment,
        amount: Decimal | None = None,
        refund_id: str = "",
    ) -> BillingHistory | None:
        """
        Append a negative ledger row for a refund.

        Returns None if the refund for this payment is already recorded
        (owner-initiated refund followed by the charge.refunded webhook).
        """
        key = cls.refund_key(payment)
        if BillingHistory.objects.filter(idempotency_key=key).exists():
            return None

        refunded = amount if amount is not None else payment.amount
        now = timezone.now()

        entry = BillingHistory.objects.create(
            subscription=subscription,
            payment=payment,
            date=now,
            amount=-refunded,
            status=BillingHistoryStatus.REFUNDED,
            kind=BillingHistoryKind.REFUND,
            description=f"Refund for {payment.plan.name} plan ({payment.billing_cycle})",
            transaction_id=refund_id,
            invoice_number=cls.generate_invoice_number(now),
            subtotal=-refunded,
            tax_amount=Decimal("0.00"),
            total=-refunded,
            idempotency_key=key,
        )

        cls.get_logger().info(
            "Refund recorded in billing history",
            extra={
                "billing_history_id": str(entry.id),
                "payment_id": str(payment.id),
                "refund_id": refund_id,
            },
        )
        return entry

    @classmethod
    def ensure_history_for_all_payments(cls) -> dict[str, int]:
        """
        Backfill settlement rows for paid payments that have none.

        Paid payments whose subscription cannot be found are skipped and
        logged; they count toward total but neither created nor existing.

        Returns:
            {"created": int, "existing": int, "total": int}
        """
        logger = cls.get_logger()
        created = 0
        existing = 0

        payments = SubscriptionPayment.objects.filter(
            status__in=[SubscriptionPaymentState.PAID, SubscriptionPaymentState.REFUNDED],
        ).select_related("plan")

        total = 0
        for payment in payments.iterator():
            total += 1
            if BillingHistory.objects.filter(idempotency_key=cls.settlement_key(payment)).exists():
                existing += 1
                continue

            subscription = SubscriptionService.subscription_for_payment(payment)
            if subscription is None:
                logger.warning(
                    "No subscription for paid payment; skipping backfill",
                    extra={"payment_id": str(payment.id)},
                )
                continue

            with cls.atomic():
                cls.record_settlement(subscription, payment)
            created += 1

        summary = {"created": created, "existing": existing, "total": total}
        logger.info(
            "Billing history backfill finished",
            extra={"rows_created": created, "rows_existing": existing, "payments_total": total},
        )
        return summary

    # =========================================================================
    # Reads
    # =========================================================================

    @classmethod
    def history_for_owner(cls, owner):
        return (
            BillingHistory.objects.filter(subscription__owner=owner)
            .select_related("subscription", "subscription__plan", "payment")
            .order_by("-date")
        )

    @classmethod
    def history_for_payment(cls, payment: SubscriptionPayment) -> BillingHistory | None:
        return BillingHistory.objects.filter(idempotency_key=cls.settlement_key(payment)).first()
