"""
Webhook event handlers for Stripe events.

This module provides a handler registry and implementations for
reconciling local payment state with Stripe events.

Event types are parsed into the closed WebhookEventKind enum before
dispatch; anything the billing engine does not act on maps to UNKNOWN and
is acknowledged without side effects.

Each handler correlates the event to a SubscriptionPayment first (by
payment_intent_id) and falls back to an appointment Payment (by
transaction_id). PaymentIntent events for an intent id no row knows are
linked through the subscription_payment_id / payment_id in the intent
metadata first. State changes for one event happen in a single
transaction under row locks; notifications go out after it commits and
never affect the outcome.

Usage:
    from payments.webhooks.handlers import process_webhook_event, register_handler

    # Register a handler
    @register_handler(WebhookEventKind.PAYMENT_SUCCEEDED)
    def handle_payment_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    # Dispatch an event and record the outcome on the WebhookEvent row
    result = process_webhook_event(webhook_event)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import models, transaction
from django.utils import timezone

from core.services import ServiceResult

from payments.adapters import from_minor_units
from payments.models import Payment, SubscriptionPayment, WebhookEvent
from payments.services import (
    AppointmentPaymentService,
    BillingLedgerService,
    SubscriptionService,
)
from payments.state_machines import (
    BillingHistoryKind,
    PaymentState,
    SubscriptionPaymentState,
)
from salons.models import Appointment, AppointmentStatus

if TYPE_CHECKING:
    from payments.models import BillingHistory, Subscription


logger = logging.getLogger(__name__)


class WebhookEventKind(models.TextChoices):
    """Stripe event types the reconciler acts on."""

    PAYMENT_SUCCEEDED = "payment_intent.succeeded", "Payment Succeeded"
    PAYMENT_FAILED = "payment_intent.payment_failed", "Payment Failed"
    PAYMENT_CANCELED = "payment_intent.canceled", "Payment Canceled"
    CHARGE_REFUNDED = "charge.refunded", "Charge Refunded"
    UNKNOWN = "unknown", "Unknown"

    @classmethod
    def parse(cls, event_type: str | None) -> WebhookEventKind:
        if event_type in cls.values:
            return cls(event_type)
        return cls.UNKNOWN


# =============================================================================
# Handler Registry
# =============================================================================


WEBHOOK_HANDLERS: dict[WebhookEventKind, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(kind: WebhookEventKind) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler(WebhookEventKind.CHARGE_REFUNDED)
        def handle_charge_refunded(webhook_event: WebhookEvent) -> ServiceResult:
            ...
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[kind] = func
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to the handler for its kind.

    Unknown event types are logged and acknowledged with success.
    """
    kind = WebhookEventKind.parse(webhook_event.event_type)
    handler = WEBHOOK_HANDLERS.get(kind)

    if handler is None:
        logger.info(
            f"Ignoring unhandled event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )
    return handler(webhook_event)


def process_webhook_event(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Run the handler for a stored event and record the outcome.

    Handler errors are caught and stored on the WebhookEvent as FAILED;
    they never propagate to the HTTP response.
    """
    webhook_event.begin_attempt()

    try:
        result = dispatch_webhook(webhook_event)
    except Exception as exc:
        logger.exception(
            "Webhook handler raised",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "event_type": webhook_event.event_type,
            },
        )
        webhook_event.record_failure(f"{type(exc).__name__}: {exc}")
        return ServiceResult.from_exception(exc)

    if result.success:
        webhook_event.record_processed()
    else:
        logger.warning(
            "Webhook handler reported failure",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "error_code": result.error_code,
            },
        )
        webhook_event.record_failure(result.error or "Handler failed")
    return result


def _missing_intent(webhook_event: WebhookEvent) -> ServiceResult:
    logger.error(
        f"{webhook_event.event_type}: Could not extract payment_intent_id",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )
    return ServiceResult.failure(
        "Could not extract payment_intent_id from webhook",
        error_code="INVALID_WEBHOOK_PAYLOAD",
    )


def _payment_not_found(webhook_event: WebhookEvent, payment_intent_id: str) -> ServiceResult:
    logger.warning(
        "No local payment for payment_intent_id",
        extra={
            "payment_intent_id": payment_intent_id,
            "stripe_event_id": webhook_event.stripe_event_id,
        },
    )
    return ServiceResult.failure(
        f"No payment found for intent: {payment_intent_id}",
        error_code="PAYMENT_NOT_FOUND",
    )


# =============================================================================
# Correlation
# =============================================================================


def _link_intent_from_metadata(webhook_event: WebhookEvent, payment_intent_id: str) -> bool:
    """
    Attach an unknown PaymentIntent to the row named in its metadata.

    Covers an intent created at Stripe whose id never got saved locally
    (the process died between the API call and the write). Only rows with
    no intent id yet are linked, so an id is never overwritten.

    Returns:
        True if a row was linked
    """
    if SubscriptionPayment.objects.filter(payment_intent_id=payment_intent_id).exists():
        return False
    if Payment.objects.filter(transaction_id=payment_intent_id).exists():
        return False

    metadata = webhook_event.data_object.get("metadata") or {}
    now = timezone.now()
    linked = 0
    try:
        if metadata.get("subscription_payment_id"):
            linked = SubscriptionPayment.objects.filter(
                pk=metadata["subscription_payment_id"],
                payment_intent_id__isnull=True,
            ).update(payment_intent_id=payment_intent_id, transaction_id=payment_intent_id, updated_at=now)
        elif metadata.get("payment_id"):
            linked = Payment.objects.filter(
                pk=metadata["payment_id"],
                transaction_id__isnull=True,
            ).update(transaction_id=payment_intent_id, updated_at=now)
    except (DjangoValidationError, ValueError):
        linked = 0

    if linked:
        logger.warning(
            "Linked PaymentIntent to payment from intent metadata",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "payment_intent_id": payment_intent_id,
                "metadata": metadata,
            },
        )
    return bool(linked)


# =============================================================================
# payment_intent.succeeded
# =============================================================================


@register_handler(WebhookEventKind.PAYMENT_SUCCEEDED)
def handle_payment_intent_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Settle the payment behind a succeeded PaymentIntent.

    Redelivery is a no-op once the payment is PAID.
    """
    payment_intent_id = webhook_event.payment_intent_id
    if not payment_intent_id:
        return _missing_intent(webhook_event)
    _link_intent_from_metadata(webhook_event, payment_intent_id)

    if SubscriptionPayment.objects.filter(payment_intent_id=payment_intent_id).exists():
        return _settle_subscription_payment(webhook_event, payment_intent_id)
    if Payment.objects.filter(transaction_id=payment_intent_id).exists():
        return _settle_appointment_payment(webhook_event, payment_intent_id)
    return _payment_not_found(webhook_event, payment_intent_id)


def _settle_subscription_payment(webhook_event: WebhookEvent, payment_intent_id: str) -> ServiceResult:
    subscription = None
    entry = None

    with transaction.atomic():
        payment = (
            SubscriptionPayment.objects.select_for_update()
            .select_related("plan", "owner")
            .get(payment_intent_id=payment_intent_id)
        )

        if payment.status in (SubscriptionPaymentState.PAID, SubscriptionPaymentState.REFUNDED):
            logger.info(
                "Subscription payment already settled",
                extra={"subscription_payment_id": str(payment.id), "status": payment.status},
            )
            return ServiceResult.success({"paymentId": str(payment.id), "status": payment.status})

        if payment.status != SubscriptionPaymentState.PENDING:
            logger.error(
                "Charge succeeded for a payment that is no longer pending",
                extra={"subscription_payment_id": str(payment.id), "status": payment.status},
            )
            payment.metadata = {**(payment.metadata or {}), "reconciliation_required": True}
            payment.touch("metadata")
            return ServiceResult.failure(
                f"Payment {payment.id} is {payment.status}, cannot settle",
                error_code="INVALID_STATE",
            )

        if payment.is_plan_change:
            subscription, entry = _apply_plan_change(payment)
        else:
            subscription, entry = _create_subscription(payment)

    if subscription is not None:
        _notify_subscription_settled(payment, subscription, entry)

    return ServiceResult.success(
        {
            "paymentId": str(payment.id),
            "status": payment.status,
            "subscriptionId": str(subscription.id) if subscription else None,
        }
    )


def _create_subscription(
    payment: SubscriptionPayment,
) -> tuple[Subscription | None, BillingHistory | None]:
    owner = SubscriptionService.lock_owner(payment.owner_id)

    if SubscriptionService.has_active_subscription(owner):
        payment.cancel(reason="duplicate_active_subscription")
        payment.save()
        logger.warning(
            "Owner already has an active subscription; payment cancelled",
            extra={"subscription_payment_id": str(payment.id), "owner_id": str(owner.id)},
        )
        return None, None

    payment.mark_paid()
    payment.save()

    subscription = SubscriptionService.create_from_payment(payment, now=payment.payment_date)
    entry = BillingLedgerService.record_settlement(
        subscription,
        payment,
        kind=BillingHistoryKind.CREATION,
    )
    return subscription, entry


def _apply_plan_change(
    payment: SubscriptionPayment,
) -> tuple[Subscription | None, BillingHistory | None]:
    subscription = SubscriptionService.subscription_for_payment(payment, lock=True)

    payment.mark_paid()

    if subscription is None or not subscription.is_active or subscription.owner_id != payment.owner_id:
        payment.metadata = {**(payment.metadata or {}), "reconciliation_required": True}
        payment.save()
        logger.error(
            "Plan change settled but its subscription is not active",
            extra={
                "subscription_payment_id": str(payment.id),
                "subscription_id": payment.current_subscription_id,
            },
        )
        return None, None

    payment.save()
    SubscriptionService.apply_plan_change(subscription, payment, now=payment.payment_date)
    entry = BillingLedgerService.record_settlement(subscription, payment)
    return subscription, entry


def _notify_subscription_settled(
    payment: SubscriptionPayment,
    subscription: Subscription,
    entry: BillingHistory | None,
) -> None:
    from notifications.services import InvoiceEmailService, PushNotificationService

    owner = payment.owner
    plan = payment.plan

    if payment.is_plan_change:
        title = "Subscription Updated"
        body = f"Your subscription has been changed to the {plan.name} plan."
    else:
        title = "Subscription Activated"
        body = f"Your {plan.name} plan is now active."

    InvoiceEmailService.send_invoice_email(payment, billing_history=entry)
    PushNotificationService.send_to_users(
        [owner.id],
        title=title,
        body=body,
        data={"payment_id": str(payment.id), "subscription_id": str(subscription.id)},
    )


def _settle_appointment_payment(webhook_event: WebhookEvent, payment_intent_id: str) -> ServiceResult:
    with transaction.atomic():
        payment = Payment.objects.select_for_update().get(transaction_id=payment_intent_id)

        if payment.status in (PaymentState.PAID, PaymentState.REFUNDED):
            return ServiceResult.success({"paymentId": str(payment.id), "status": payment.status})
        if payment.status != PaymentState.PENDING:
            logger.error(
                "Charge succeeded for an appointment payment that is no longer pending",
                extra={"payment_id": str(payment.id), "status": payment.status},
            )
            return ServiceResult.failure(
                f"Payment {payment.id} is {payment.status}, cannot settle",
                error_code="INVALID_STATE",
            )

        payment.mark_paid()
        payment.save()

        appointment = Appointment.objects.select_for_update().get(pk=payment.appointment_id)
        if appointment.status == AppointmentStatus.PENDING:
            appointment.book()
            appointment.save()

    logger.info(
        "Appointment payment settled",
        extra={"payment_id": str(payment.id), "appointment_id": str(payment.appointment_id)},
    )

    from notifications.models import NotificationCategory
    from notifications.services import PushNotificationService

    PushNotificationService.send_to_users(
        [payment.user_id],
        title="Payment Successful",
        body=f"Your payment of ${payment.amount} for your appointment was successful.",
        data={"payment_id": str(payment.id), "appointment_id": str(payment.appointment_id)},
        category=NotificationCategory.APPOINTMENT,
    )
    return ServiceResult.success({"paymentId": str(payment.id), "status": payment.status})


# =============================================================================
# payment_intent.payment_failed / payment_intent.canceled
# =============================================================================


@register_handler(WebhookEventKind.PAYMENT_FAILED)
def handle_payment_intent_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """Mark the pending payment failed; an appointment payment also cancels its appointment."""
    payment_intent_id = webhook_event.payment_intent_id
    if not payment_intent_id:
        return _missing_intent(webhook_event)
    _link_intent_from_metadata(webhook_event, payment_intent_id)

    last_error = webhook_event.data_object.get("last_payment_error") or {}
    reason = last_error.get("message") or "Payment failed"

    with transaction.atomic():
        payment = (
            SubscriptionPayment.objects.select_for_update()
            .filter(payment_intent_id=payment_intent_id)
            .first()
        )
        if payment is not None:
            if payment.status == SubscriptionPaymentState.PENDING:
                payment.mark_failed(reason=reason)
                payment.save()
                logger.info(
                    "Subscription payment failed",
                    extra={"subscription_payment_id": str(payment.id), "reason": reason},
                )
            return ServiceResult.success({"paymentId": str(payment.id), "status": payment.status})

        appointment_payment = (
            Payment.objects.select_for_update().filter(transaction_id=payment_intent_id).first()
        )
        if appointment_payment is None:
            return _payment_not_found(webhook_event, payment_intent_id)

        if appointment_payment.status == PaymentState.PENDING:
            appointment_payment.mark_failed(reason=reason)
            appointment_payment.save()
            AppointmentPaymentService.release_appointment(appointment_payment, reason="payment_failed")

    return ServiceResult.success(
        {"paymentId": str(appointment_payment.id), "status": appointment_payment.status}
    )


@register_handler(WebhookEventKind.PAYMENT_CANCELED)
def handle_payment_intent_canceled(webhook_event: WebhookEvent) -> ServiceResult:
    """Cancel the pending payment behind a canceled PaymentIntent."""
    payment_intent_id = webhook_event.payment_intent_id
    if not payment_intent_id:
        return _missing_intent(webhook_event)
    _link_intent_from_metadata(webhook_event, payment_intent_id)

    with transaction.atomic():
        payment = (
            SubscriptionPayment.objects.select_for_update()
            .filter(payment_intent_id=payment_intent_id)
            .first()
        )
        if payment is not None:
            if payment.status == SubscriptionPaymentState.PENDING:
                payment.cancel(reason="payment_intent_canceled")
                payment.save()
            return ServiceResult.success({"paymentId": str(payment.id), "status": payment.status})

        appointment_payment = (
            Payment.objects.select_for_update().filter(transaction_id=payment_intent_id).first()
        )
        if appointment_payment is None:
            return _payment_not_found(webhook_event, payment_intent_id)

        if appointment_payment.status == PaymentState.PENDING:
            appointment_payment.cancel()
            appointment_payment.save()
            AppointmentPaymentService.release_appointment(appointment_payment, reason="payment_canceled")

    return ServiceResult.success(
        {"paymentId": str(appointment_payment.id), "status": appointment_payment.status}
    )


# =============================================================================
# charge.refunded
# =============================================================================


@register_handler(WebhookEventKind.CHARGE_REFUNDED)
def handle_charge_refunded(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Mirror a refund into local state.

    Fired for refunds issued through RefundService and for refunds made
    in the Stripe dashboard. The ledger row is keyed per payment, so an
    owner-initiated refund followed by this event records one row.
    """
    data_object = webhook_event.data_object
    payment_intent_id = webhook_event.payment_intent_id
    if not payment_intent_id:
        return _missing_intent(webhook_event)

    refunds = (data_object.get("refunds") or {}).get("data") or []
    refund_id = refunds[0].get("id", "") if refunds else ""
    amount_refunded = data_object.get("amount_refunded")
    amount = from_minor_units(amount_refunded) if amount_refunded else None

    logger.info(
        "Processing charge.refunded",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "charge_id": data_object.get("id"),
            "payment_intent_id": payment_intent_id,
            "amount_refunded": amount_refunded,
        },
    )

    with transaction.atomic():
        payment = (
            SubscriptionPayment.objects.select_for_update()
            .select_related("plan")
            .filter(payment_intent_id=payment_intent_id)
            .first()
        )
        if payment is not None:
            return _refund_subscription_payment(payment, amount, refund_id)

        appointment_payment = (
            Payment.objects.select_for_update().filter(transaction_id=payment_intent_id).first()
        )
        if appointment_payment is None:
            return _payment_not_found(webhook_event, payment_intent_id)

        if appointment_payment.status == PaymentState.PAID:
            appointment_payment.refund(amount=amount, reason="refunded")
            appointment_payment.save()
            AppointmentPaymentService.release_appointment(appointment_payment, reason="refunded")
        elif appointment_payment.status != PaymentState.REFUNDED:
            logger.error(
                "Refund received for an unsettled appointment payment; ignoring",
                extra={"payment_id": str(appointment_payment.id), "status": appointment_payment.status},
            )

    return ServiceResult.success(
        {"paymentId": str(appointment_payment.id), "status": appointment_payment.status}
    )


def _refund_subscription_payment(payment: SubscriptionPayment, amount, refund_id: str) -> ServiceResult:
    if payment.status not in (SubscriptionPaymentState.PAID, SubscriptionPaymentState.REFUNDED):
        logger.error(
            "Refund received for an unsettled subscription payment; ignoring",
            extra={"subscription_payment_id": str(payment.id), "status": payment.status},
        )
        return ServiceResult.success({"paymentId": str(payment.id), "status": payment.status})

    if payment.status == SubscriptionPaymentState.PAID:
        payment.refund(amount=amount, refund_id=refund_id, reason="refunded_via_stripe")
        payment.save()

    subscription = SubscriptionService.subscription_for_payment(payment, lock=True)
    if subscription is not None:
        BillingLedgerService.record_refund(
            subscription,
            payment,
            amount=payment.refund_amount,
            refund_id=payment.refund_id or refund_id,
        )
        SubscriptionService.cancel(subscription, reason="refunded")

    return ServiceResult.success({"paymentId": str(payment.id), "status": payment.status})
