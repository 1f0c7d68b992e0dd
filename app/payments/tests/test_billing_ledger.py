"""
Tests for BillingLedgerService.

Test Classes:
    TestInvoiceNumbers: INV-YYYY-NNNN format and collision handling
    TestRecordSettlement: Settlement rows per payment kind
    TestRecordRefund: Negative rows and per-payment deduplication
    TestBackfill: ensure_history_for_all_payments()
    TestReads: Owner and payment lookups
"""

import re
from decimal import Decimal
from unittest.mock import patch

import pytest
from freezegun import freeze_time

from payments.models import BillingHistory
from payments.services import BillingLedgerService, InvoiceNumberExhaustedError
from payments.state_machines import (
    BillingCycle,
    BillingHistoryKind,
    BillingHistoryStatus,
    SubscriptionPaymentState,
)
from payments.tests.factories import SubscriptionFactory, SubscriptionPaymentFactory

INVOICE_PATTERN = re.compile(r"^INV-\d{4}-\d{4}$")


class TestInvoiceNumbers:
    @freeze_time("2026-03-14 10:00:00")
    def test_format_uses_current_year(self, db):
        number = BillingLedgerService.generate_invoice_number()

        assert INVOICE_PATTERN.match(number)
        assert number.startswith("INV-2026-")

    def test_retries_on_collision(self, active_subscription, paid_payment):
        BillingLedgerService.record_settlement(active_subscription, paid_payment)
        taken = BillingHistory.objects.get().invoice_number
        taken_suffix = int(taken.rsplit("-", 1)[1])

        with patch(
            "payments.services.billing_ledger.secrets.randbelow",
            side_effect=[taken_suffix, taken_suffix, 4242],
        ):
            number = BillingLedgerService.generate_invoice_number(paid_payment.payment_date)

        assert number.endswith("-4242")

    def test_exhausted_after_twenty_attempts(self, active_subscription, paid_payment):
        entry = BillingLedgerService.record_settlement(active_subscription, paid_payment)
        suffix = int(entry.invoice_number.rsplit("-", 1)[1])

        with patch(
            "payments.services.billing_ledger.secrets.randbelow",
            return_value=suffix,
        ) as randbelow:
            with pytest.raises(InvoiceNumberExhaustedError):
                BillingLedgerService.generate_invoice_number(entry.date)

        assert randbelow.call_count == 20


class TestRecordSettlement:
    """
    Verifies:
    - Amount, totals and zero tax
    - Kind and description follow the payment's upgrade type
    - Idempotency key is derived from the payment
    """

    def test_new_subscription_row(self, active_subscription, paid_payment):
        entry = BillingLedgerService.record_settlement(active_subscription, paid_payment)

        assert entry.kind == BillingHistoryKind.CREATION
        assert entry.status == BillingHistoryStatus.PAID
        assert entry.amount == Decimal("29.00")
        assert entry.subtotal == Decimal("29.00")
        assert entry.tax_amount == Decimal("0.00")
        assert entry.total == Decimal("29.00")
        assert entry.description == "Subscription to Basic plan (monthly)"
        assert entry.transaction_id == paid_payment.payment_intent_id
        assert entry.idempotency_key == f"settlement:{paid_payment.id}"
        assert entry.date == paid_payment.payment_date
        assert INVOICE_PATTERN.match(entry.invoice_number)

    @pytest.mark.parametrize(
        "upgrade_type,kind,prefix",
        [
            ("upgrade", BillingHistoryKind.UPGRADE, "Upgrade to"),
            ("downgrade", BillingHistoryKind.DOWNGRADE, "Downgrade to"),
        ],
    )
    def test_plan_change_rows(self, active_subscription, owner, pro_plan, upgrade_type, kind, prefix):
        payment = SubscriptionPaymentFactory(
            owner=owner,
            plan=pro_plan,
            billing_cycle=BillingCycle.YEARLY,
            amount=pro_plan.yearly_price,
            metadata={
                "upgrade_type": upgrade_type,
                "current_subscription_id": str(active_subscription.id),
            },
        )
        payment.mark_paid()
        payment.save()

        entry = BillingLedgerService.record_settlement(active_subscription, payment)

        assert entry.kind == kind
        assert entry.description == f"{prefix} Professional plan (yearly)"

    def test_explicit_kind_and_description(self, active_subscription, paid_payment):
        entry = BillingLedgerService.record_settlement(
            active_subscription,
            paid_payment,
            kind=BillingHistoryKind.CREATION,
            description="Founding member",
        )

        assert entry.description == "Founding member"


class TestRecordRefund:
    def test_negative_row(self, active_subscription, paid_payment):
        entry = BillingLedgerService.record_refund(
            active_subscription, paid_payment, refund_id="re_123"
        )

        assert entry.kind == BillingHistoryKind.REFUND
        assert entry.status == BillingHistoryStatus.REFUNDED
        assert entry.amount == Decimal("-29.00")
        assert entry.total == Decimal("-29.00")
        assert entry.transaction_id == "re_123"
        assert entry.idempotency_key == f"refund:{paid_payment.id}"
        assert entry.description == "Refund for Basic plan (monthly)"

    def test_partial_amount(self, active_subscription, paid_payment):
        entry = BillingLedgerService.record_refund(
            active_subscription, paid_payment, amount=Decimal("10.00")
        )

        assert entry.amount == Decimal("-10.00")

    def test_second_refund_is_skipped(self, active_subscription, paid_payment):
        first = BillingLedgerService.record_refund(active_subscription, paid_payment)
        second = BillingLedgerService.record_refund(active_subscription, paid_payment)

        assert first is not None
        assert second is None
        assert BillingHistory.objects.filter(kind=BillingHistoryKind.REFUND).count() == 1


class TestBackfill:
    def test_creates_missing_rows(self, active_subscription, paid_payment):
        summary = BillingLedgerService.ensure_history_for_all_payments()

        assert summary == {"created": 1, "existing": 0, "total": 1}
        assert BillingLedgerService.history_for_payment(paid_payment) is not None

    def test_second_run_is_noop(self, active_subscription, paid_payment):
        BillingLedgerService.ensure_history_for_all_payments()

        summary = BillingLedgerService.ensure_history_for_all_payments()

        assert summary == {"created": 0, "existing": 1, "total": 1}
        assert BillingHistory.objects.count() == 1

    def test_skips_payments_without_subscription(self, db):
        SubscriptionPaymentFactory(status=SubscriptionPaymentState.PAID)

        summary = BillingLedgerService.ensure_history_for_all_payments()

        assert summary == {"created": 0, "existing": 0, "total": 1}

    def test_ignores_unsettled_payments(self, pending_payment, failed_payment):
        summary = BillingLedgerService.ensure_history_for_all_payments()

        assert summary["total"] == 0


class TestReads:
    def test_history_for_owner_is_scoped(self, active_subscription, paid_payment, other_owner):
        mine = BillingLedgerService.record_settlement(active_subscription, paid_payment)
        other_payment = SubscriptionPaymentFactory(owner=other_owner, status=SubscriptionPaymentState.PAID)
        other_subscription = SubscriptionFactory(owner=other_owner, payment=other_payment)
        BillingLedgerService.record_settlement(other_subscription, other_payment)

        history = list(BillingLedgerService.history_for_owner(active_subscription.owner))

        assert history == [mine]

    def test_history_for_payment_ignores_refund_rows(self, active_subscription, paid_payment):
        settlement = BillingLedgerService.record_settlement(active_subscription, paid_payment)
        BillingLedgerService.record_refund(active_subscription, paid_payment)

        assert BillingLedgerService.history_for_payment(paid_payment) == settlement
