"""
Tests for state machine transitions using django-fsm.

Tests valid and invalid state transitions for SubscriptionPayment,
Subscription and appointment Payment models.
"""

from decimal import Decimal

import pytest
from django_fsm import TransitionNotAllowed

from payments.models import SubscriptionPayment
from payments.state_machines import (
    PaymentState,
    SubscriptionPaymentState,
    SubscriptionState,
)
from payments.tests.factories import (
    PaymentFactory,
    SubscriptionFactory,
    SubscriptionPaymentFactory,
)


# =============================================================================
# SubscriptionPayment State Transition Tests
# =============================================================================


class TestSubscriptionPaymentTransitions:
    """Tests for SubscriptionPayment state machine transitions."""

    # -------------------------------------------------------------------------
    # Valid Transitions
    # -------------------------------------------------------------------------

    def test_pending_to_paid(self, pending_payment):
        """Should transition from pending to paid and stamp payment_date."""
        pending_payment.mark_paid()
        pending_payment.save()

        assert pending_payment.status == SubscriptionPaymentState.PAID
        assert pending_payment.payment_date is not None

    def test_pending_to_failed(self, pending_payment):
        pending_payment.mark_failed(reason="Your card was declined.")
        pending_payment.save()

        assert pending_payment.status == SubscriptionPaymentState.FAILED
        assert pending_payment.failed_at is not None
        assert pending_payment.failure_reason == "Your card was declined."

    def test_pending_to_cancelled(self, pending_payment):
        pending_payment.cancel(reason="cancelled_by_owner")
        pending_payment.save()

        assert pending_payment.status == SubscriptionPaymentState.CANCELLED
        assert pending_payment.cancellation_reason == "cancelled_by_owner"
        assert pending_payment.cancelled_at is not None

    def test_expire_cancels_with_reason(self, pending_payment):
        pending_payment.expire()
        pending_payment.save()

        reloaded = SubscriptionPayment.objects.get(pk=pending_payment.pk)
        assert reloaded.status == SubscriptionPaymentState.CANCELLED
        assert reloaded.cancellation_reason == "expired"

    def test_paid_to_refunded_defaults_to_full_amount(self, paid_payment):
        paid_payment.refund(refund_id="re_123", reason="Changed my mind")
        paid_payment.save()

        assert paid_payment.status == SubscriptionPaymentState.REFUNDED
        assert paid_payment.refund_amount == paid_payment.amount
        assert paid_payment.refund_id == "re_123"
        assert paid_payment.refund_reason == "Changed my mind"
        assert paid_payment.refunded_at is not None

    def test_partial_refund_amount_kept(self, paid_payment):
        paid_payment.refund(amount=Decimal("10.00"))

        assert paid_payment.refund_amount == Decimal("10.00")

    # -------------------------------------------------------------------------
    # Invalid Transitions
    # -------------------------------------------------------------------------

    def test_cannot_refund_pending(self, pending_payment):
        """Should not allow refunding a payment that never settled."""
        with pytest.raises(TransitionNotAllowed):
            pending_payment.refund()

    def test_cannot_pay_twice(self, paid_payment):
        with pytest.raises(TransitionNotAllowed):
            paid_payment.mark_paid()

    def test_cannot_cancel_paid(self, paid_payment):
        with pytest.raises(TransitionNotAllowed):
            paid_payment.cancel(reason="too late")

    @pytest.mark.parametrize(
        "status",
        [SubscriptionPaymentState.FAILED, SubscriptionPaymentState.CANCELLED],
    )
    def test_terminal_states_cannot_settle(self, db, status):
        payment = SubscriptionPaymentFactory(status=status)

        with pytest.raises(TransitionNotAllowed):
            payment.mark_paid()

    def test_cannot_expire_refunded(self, paid_payment):
        paid_payment.refund()
        paid_payment.save()

        with pytest.raises(TransitionNotAllowed):
            paid_payment.expire()


# =============================================================================
# Subscription State Transition Tests
# =============================================================================


class TestSubscriptionTransitions:
    """Tests for Subscription state machine transitions."""

    def test_active_to_pending_cancellation(self, active_subscription):
        active_subscription.request_cancellation(reason="closing salon")
        active_subscription.save()

        assert active_subscription.status == SubscriptionState.PENDING_CANCELLATION
        assert active_subscription.cancellation_reason == "closing salon"

    def test_active_to_cancelled(self, active_subscription):
        active_subscription.cancel(reason="refunded")
        active_subscription.save()

        assert active_subscription.is_cancelled
        assert active_subscription.cancelled_at is not None
        assert active_subscription.cancellation_reason == "refunded"

    def test_pending_cancellation_to_cancelled(self, active_subscription):
        active_subscription.request_cancellation()
        active_subscription.cancel()

        assert active_subscription.status == SubscriptionState.CANCELLED

    def test_active_to_expired(self, active_subscription):
        active_subscription.expire()
        active_subscription.save()

        assert active_subscription.status == SubscriptionState.EXPIRED
        assert not active_subscription.is_active

    def test_cancelled_cannot_expire(self, db):
        subscription = SubscriptionFactory(status=SubscriptionState.CANCELLED)

        with pytest.raises(TransitionNotAllowed):
            subscription.expire()

    def test_expired_cannot_be_cancelled(self, db):
        subscription = SubscriptionFactory(status=SubscriptionState.EXPIRED)

        with pytest.raises(TransitionNotAllowed):
            subscription.cancel()


# =============================================================================
# Appointment Payment State Transition Tests
# =============================================================================


class TestPaymentTransitions:
    """Tests for appointment Payment state machine transitions."""

    def test_pending_to_paid(self, db):
        payment = PaymentFactory()

        payment.mark_paid()
        payment.save()

        assert payment.status == PaymentState.PAID
        assert payment.payment_date is not None

    def test_pending_to_failed(self, db):
        payment = PaymentFactory()

        payment.mark_failed(reason="insufficient_funds")

        assert payment.status == PaymentState.FAILED
        assert payment.failure_reason == "insufficient_funds"

    def test_paid_to_refunded(self, db):
        payment = PaymentFactory()
        payment.mark_paid()

        payment.refund(reason="salon closed")

        assert payment.status == PaymentState.REFUNDED
        assert payment.refund_amount == payment.amount
        assert payment.refund_reason == "salon closed"

    def test_cannot_cancel_paid(self, db):
        payment = PaymentFactory()
        payment.mark_paid()

        with pytest.raises(TransitionNotAllowed):
            payment.cancel()
