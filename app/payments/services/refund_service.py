"""
Refund service for owner-initiated cancellations and refunds.

This module provides the RefundService class which handles the
owner-facing ways out of a subscription:

- cancel_pending_payment: abandon a payment that has not settled yet
- cancel_subscription: stop the subscription now or at period end,
  without a refund
- refund_subscription_payment: return the money for a settled payment
  within the refund window, cancelling the subscription it paid for

Refund Window:
    Whole days elapsed since the subscription's start date (or the
    payment date when no subscription is linked). Day 10 is refundable,
    day 11 is not. An expired window is reported without calling Stripe.

Two-Phase Pattern:
    The Stripe call happens outside any transaction and without row locks
    held. Local state is then updated in one transaction under a row lock,
    re-checking status so a concurrent charge.refunded webhook cannot apply
    the same refund twice.

Usage:
    from payments.services import RefundService

    result = RefundService().refund_subscription_payment(
        payment_id=payment.id,
        owner_id=owner.id,
        reason="Not what I expected",
    )

    if not result.success and result.error_code == "REFUND_WINDOW_EXPIRED":
        days = result.data["daysElapsed"]
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from core.services import BaseService, ServiceResult

from payments.adapters import (
    IdempotencyKeyGenerator,
    StripeGateway,
    normalize_refund_reason,
    to_minor_units,
)
from payments.exceptions import (
    GatewayNotConfiguredError,
    PaymentsDisabledError,
    StripeError,
)
from payments.models import Subscription, SubscriptionPayment
from payments.services.billing_ledger import BillingLedgerService
from payments.services.integration import GatewayFactory, build_gateway
from payments.services.subscription_service import SubscriptionService
from payments.state_machines import SubscriptionPaymentState, SubscriptionState

DEFAULT_REFUND_WINDOW_DAYS = 10


def refund_window_days() -> int:
    return getattr(settings, "SUBSCRIPTION_REFUND_WINDOW_DAYS", DEFAULT_REFUND_WINDOW_DAYS)


class RefundService(BaseService):
    """Cancels pending payments and subscriptions, and refunds settled payments."""

    def __init__(self, gateway_factory: GatewayFactory = StripeGateway):
        self.gateway_factory = gateway_factory

    # =========================================================================
    # Cancel
    # =========================================================================

    def cancel_pending_payment(self, payment_id, owner_id) -> ServiceResult[dict]:
        """
        Cancel a pending payment on behalf of its owner.

        The remote intent cancel is best-effort; the local row is cancelled
        even when Stripe is unreachable or disabled.

        Returns:
            ServiceResult with {"paymentId", "status"}
        """
        logger = self.get_logger()

        validation = self.validate_required(payment_id=payment_id, owner_id=owner_id)
        if validation is not None:
            return validation

        payment = self._get_owned_payment(payment_id, owner_id)
        if payment is None:
            return ServiceResult.failure("Payment not found", error_code="PAYMENT_NOT_FOUND")
        if payment.status != SubscriptionPaymentState.PENDING:
            return self._invalid_state(payment, "Only pending payments can be cancelled")

        if payment.payment_intent_id:
            self._cancel_remote_intent(payment)

        with transaction.atomic():
            payment = SubscriptionPayment.objects.select_for_update().get(pk=payment.pk)
            if payment.status != SubscriptionPaymentState.PENDING:
                return self._invalid_state(payment, "Only pending payments can be cancelled")
            payment.cancel(reason="cancelled_by_owner")
            payment.save()

        logger.info(
            "Subscription payment cancelled by owner",
            extra={"subscription_payment_id": str(payment.id), "owner_id": str(owner_id)},
        )
        return ServiceResult.success({"paymentId": str(payment.id), "status": payment.status})

    def _cancel_remote_intent(self, payment: SubscriptionPayment) -> None:
        try:
            gateway = build_gateway(self.gateway_factory, require_enabled=False)
            gateway.cancel_intent(payment.payment_intent_id)
        except (StripeError, GatewayNotConfiguredError) as exc:
            self.get_logger().warning(
                "Remote intent cancel failed; cancelling locally",
                extra={
                    "subscription_payment_id": str(payment.id),
                    "payment_intent_id": payment.payment_intent_id,
                    "error_code": exc.error_code,
                },
            )

    def cancel_subscription(self, owner_id, reason: str, immediate: bool = False) -> ServiceResult[dict]:
        """
        Cancel the owner's subscription without refunding it.

        By default the subscription runs until its next billing date and the
        lapse sweep closes it then. With immediate=True it is cancelled now;
        that also applies to a subscription already scheduled for
        cancellation.

        Returns:
            ServiceResult with {"subscriptionId", "status", "cancellationDate"}
        """
        validation = self.validate_required(owner_id=owner_id, reason=reason)
        if validation is not None:
            return validation

        with transaction.atomic():
            subscription = (
                Subscription.objects.select_for_update()
                .filter(
                    owner_id=owner_id,
                    status__in=[SubscriptionState.ACTIVE, SubscriptionState.PENDING_CANCELLATION],
                )
                .order_by("-created_at")
                .first()
            )
            if subscription is None:
                return ServiceResult.failure("No active subscription", error_code="NO_ACTIVE_SUBSCRIPTION")

            if immediate:
                SubscriptionService.cancel(subscription, reason=reason)
                cancellation_date = subscription.cancelled_at
            elif SubscriptionService.schedule_cancellation(subscription, reason=reason):
                cancellation_date = subscription.next_billing_date
            else:
                return ServiceResult.failure(
                    "Cancellation is already scheduled",
                    error_code="INVALID_STATE",
                )

        self.get_logger().info(
            "Subscription cancelled by owner",
            extra={
                "subscription_id": str(subscription.id),
                "owner_id": str(owner_id),
                "immediate": immediate,
            },
        )
        self._notify_cancellation(subscription, cancellation_date, immediate)

        return ServiceResult.success(
            {
                "subscriptionId": str(subscription.id),
                "status": subscription.status,
                "cancellationDate": cancellation_date,
            }
        )

    def _notify_cancellation(self, subscription: Subscription, cancellation_date, immediate: bool) -> None:
        from notifications.services import PushNotificationService

        if immediate:
            body = f"Your {subscription.plan.name} plan has been cancelled."
        else:
            body = (
                f"Your {subscription.plan.name} plan will end on "
                f"{cancellation_date:%B %d, %Y}."
            )
        PushNotificationService.send_to_users(
            [subscription.owner_id],
            title="Subscription Cancelled",
            body=body,
            data={"subscription_id": str(subscription.id), "status": subscription.status},
        )

    # =========================================================================
    # Refund
    # =========================================================================

    def refund_subscription_payment(self, payment_id, owner_id, reason) -> ServiceResult[dict]:
        """
        Refund a settled subscription payment in full.

        Steps:
            1. Validate the reason and ownership, require PAID
            2. Check the refund window (no gateway call when expired)
            3. Create the Stripe refund with a normalized reason
            4. Atomically: payment -> REFUNDED, refund metadata,
               negative ledger row, linked subscription cancelled
            5. Best-effort refund confirmation email

        Returns:
            ServiceResult with {"refunded": True, ...} on success.
            An expired window fails with REFUND_WINDOW_EXPIRED and data
            {"refunded": False, "windowExpired": True,
             "refundWindowDays", "daysElapsed"}.
        """
        logger = self.get_logger()

        validation = self.validate_required(payment_id=payment_id, owner_id=owner_id, reason=reason)
        if validation is not None:
            return validation

        payment = self._get_owned_payment(payment_id, owner_id)
        if payment is None:
            return ServiceResult.failure("Payment not found", error_code="PAYMENT_NOT_FOUND")
        if payment.status != SubscriptionPaymentState.PAID:
            return self._invalid_state(payment, "Only paid payments can be refunded")
        if not payment.payment_intent_id:
            return self._invalid_state(payment, "Payment has no gateway reference to refund")

        subscription = SubscriptionService.subscription_for_payment(payment)
        window_days = refund_window_days()
        days_elapsed = self.days_elapsed(payment, subscription)

        if days_elapsed > window_days:
            logger.info(
                "Refund refused: window expired",
                extra={
                    "subscription_payment_id": str(payment.id),
                    "days_elapsed": days_elapsed,
                    "refund_window_days": window_days,
                },
            )
            return ServiceResult.failure(
                f"Refunds are only available within {window_days} days of purchase",
                error_code="REFUND_WINDOW_EXPIRED",
                data={
                    "refunded": False,
                    "windowExpired": True,
                    "refundWindowDays": window_days,
                    "daysElapsed": days_elapsed,
                },
            )

        try:
            gateway = build_gateway(self.gateway_factory)
        except (PaymentsDisabledError, GatewayNotConfiguredError) as exc:
            return self.handle_exception(exc, "Gateway unavailable for refund", log_level=logging.WARNING)

        try:
            refund = gateway.create_refund(
                payment.payment_intent_id,
                amount_cents=to_minor_units(payment.amount),
                reason=normalize_refund_reason(reason),
                metadata={
                    "subscription_payment_id": str(payment.id),
                    "owner_id": str(owner_id),
                },
                idempotency_key=IdempotencyKeyGenerator.generate("refund", payment.id),
            )
        except StripeError as exc:
            logger.error(
                "Stripe refund failed",
                extra={
                    "subscription_payment_id": str(payment.id),
                    "error_code": exc.error_code,
                    "stripe_code": exc.stripe_code,
                },
            )
            return ServiceResult.failure(
                f"Payment gateway error: {exc.message}",
                error_code="GATEWAY_ERROR",
                data={"retryable": exc.is_retryable},
            )

        subscription_cancelled = False
        with transaction.atomic():
            payment = SubscriptionPayment.objects.select_for_update().select_related("plan").get(pk=payment.pk)
            if payment.status == SubscriptionPaymentState.PAID:
                payment.refund(amount=payment.amount, refund_id=refund.id, reason=reason)
            payment.metadata = {
                **(payment.metadata or {}),
                "refund_window_days": window_days,
                "days_elapsed": days_elapsed,
                "refund_id": refund.id,
            }
            payment.save()

            if subscription is not None:
                subscription = SubscriptionService.subscription_for_payment(payment, lock=True)
                BillingLedgerService.record_refund(
                    subscription,
                    payment,
                    amount=payment.refund_amount,
                    refund_id=refund.id,
                )
                subscription_cancelled = SubscriptionService.cancel(subscription, reason="refunded")

        logger.info(
            "Subscription payment refunded",
            extra={
                "subscription_payment_id": str(payment.id),
                "refund_id": refund.id,
                "days_elapsed": days_elapsed,
                "subscription_cancelled": subscription_cancelled,
            },
        )

        self._send_refund_confirmation(payment)

        return ServiceResult.success(
            {
                "refunded": True,
                "paymentId": str(payment.id),
                "refundId": refund.id,
                "amount": payment.refund_amount,
                "refundWindowDays": window_days,
                "daysElapsed": days_elapsed,
                "subscriptionCancelled": subscription_cancelled,
            }
        )

    @staticmethod
    def days_elapsed(payment: SubscriptionPayment, subscription=None, now=None) -> int:
        """Whole days since the subscription started (or the payment settled)."""
        now = now or timezone.now()
        if subscription is not None:
            start = subscription.start_date
        else:
            start = payment.payment_date or payment.created_at
        return max((now - start).days, 0)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _get_owned_payment(payment_id, owner_id) -> SubscriptionPayment | None:
        try:
            return (
                SubscriptionPayment.objects.select_related("plan", "owner")
                .filter(id=payment_id, owner_id=owner_id)
                .first()
            )
        except (DjangoValidationError, TypeError, ValueError):
            return None

    @staticmethod
    def _invalid_state(payment: SubscriptionPayment, message: str) -> ServiceResult:
        return ServiceResult.failure(
            f"{message} (current status: {payment.status})",
            error_code="INVALID_STATE",
        )

    def _send_refund_confirmation(self, payment: SubscriptionPayment) -> None:
        from notifications.services import InvoiceEmailService

        if not InvoiceEmailService.send_refund_confirmation(payment):
            self.get_logger().warning(
                "Refund confirmation email not queued",
                extra={"subscription_payment_id": str(payment.id)},
            )
