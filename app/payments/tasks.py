"""
Celery tasks for billing maintenance.

This module provides periodic tasks for:
- Expiring stale pending subscription payments
- Expiring subscriptions once a scheduled cancellation falls due
- Retrying failed webhook events
- Cleaning up old processed webhook events

Schedules are seeded into django-celery-beat by payments migrations 0002
and 0003.

Usage:
    from payments.tasks import expire_stale_subscription_payments

    expire_stale_subscription_payments.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.db import transaction
from django.utils import timezone

from payments.exceptions import GatewayNotConfiguredError, StripeError
from payments.models import Subscription, SubscriptionPayment, WebhookEvent
from payments.services.integration import build_gateway
from payments.services.subscription_service import SubscriptionService
from payments.state_machines import SubscriptionPaymentState, SubscriptionState

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_WEBHOOK_RETRIES = 5
EXPIRY_BATCH_SIZE = 200


# =============================================================================
# Subscription Payment Expiry
# =============================================================================


@shared_task
def expire_stale_subscription_payments() -> dict:
    """
    Cancel pending subscription payments whose expires_at has passed.

    The remote intent cancel is best-effort; a payment is expired locally
    even when Stripe is unreachable. Each payment is re-checked under a
    row lock so a settlement racing the sweep wins.

    Returns:
        Dict with count of payments expired
    """
    now = timezone.now()
    stale_ids = list(
        SubscriptionPayment.objects.filter(
            status=SubscriptionPaymentState.PENDING,
            expires_at__lt=now,
        )
        .order_by("expires_at")
        .values_list("id", flat=True)[:EXPIRY_BATCH_SIZE]
    )

    gateway = None
    if stale_ids:
        try:
            gateway = build_gateway(require_enabled=False)
        except GatewayNotConfiguredError:
            logger.warning("Stripe not configured; expiring payments locally only")

    expired_count = 0
    for payment_id in stale_ids:
        with transaction.atomic():
            payment = SubscriptionPayment.objects.select_for_update().get(pk=payment_id)
            if payment.status != SubscriptionPaymentState.PENDING:
                continue
            payment.expire()
            payment.save()
        expired_count += 1

        if gateway is not None and payment.payment_intent_id:
            try:
                gateway.cancel_intent(payment.payment_intent_id)
            except StripeError as e:
                logger.warning(
                    "Failed to cancel intent for expired payment",
                    extra={
                        "subscription_payment_id": str(payment.id),
                        "payment_intent_id": payment.payment_intent_id,
                        "error_code": e.error_code,
                    },
                )

        logger.info(
            "Expired stale subscription payment",
            extra={
                "subscription_payment_id": str(payment.id),
                "expires_at": payment.expires_at.isoformat(),
            },
        )

    if expired_count > 0:
        logger.info(
            f"Expired {expired_count} stale subscription payments",
            extra={"expired_count": expired_count},
        )

    return {"expired_count": expired_count}


# =============================================================================
# Subscription Lapse
# =============================================================================


@shared_task
def expire_lapsed_subscriptions() -> dict:
    """
    Close subscriptions whose scheduled cancellation has fallen due.

    A subscription cancelled at period end stays PENDING_CANCELLATION until
    its next billing date and expires then. Each row is re-checked under a
    row lock so an immediate cancel racing the sweep wins.

    Returns:
        Dict with count of subscriptions expired
    """
    now = timezone.now()
    lapsed_ids = list(
        Subscription.objects.filter(
            status=SubscriptionState.PENDING_CANCELLATION,
            next_billing_date__lte=now,
        )
        .order_by("next_billing_date")
        .values_list("id", flat=True)[:EXPIRY_BATCH_SIZE]
    )

    expired_count = 0
    for subscription_id in lapsed_ids:
        with transaction.atomic():
            subscription = Subscription.objects.select_for_update().get(pk=subscription_id)
            if subscription.status != SubscriptionState.PENDING_CANCELLATION:
                continue
            SubscriptionService.expire(subscription)
        expired_count += 1

    if expired_count > 0:
        logger.info(
            f"Expired {expired_count} lapsed subscriptions",
            extra={"expired_count": expired_count},
        )

    return {"expired_count": expired_count}


# =============================================================================
# Webhook Maintenance
# =============================================================================


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to reprocess failed webhook events.

    Finds failed webhooks that haven't exceeded max retries and runs them
    through the handler registry again. Handlers are idempotent, so a
    partially applied event is safe to replay.

    Returns:
        Dict with counts of retried and recovered webhooks
    """
    from payments.webhooks.handlers import process_webhook_event

    failed_webhooks = WebhookEvent.objects.retryable(MAX_WEBHOOK_RETRIES)[:100]

    retried_count = 0
    recovered_count = 0
    for webhook in failed_webhooks:
        result = process_webhook_event(webhook)
        retried_count += 1
        if result.success:
            recovered_count += 1
        logger.info(
            "Retried failed webhook",
            extra={
                "webhook_event_id": str(webhook.id),
                "stripe_event_id": webhook.stripe_event_id,
                "retry_count": webhook.retry_count,
                "success": result.success,
            },
        )

    return {"retried_count": retried_count, "recovered_count": recovered_count}


@shared_task
def cleanup_old_webhooks(days: int = 90) -> dict:
    """
    Periodic task to clean up old processed webhook events.

    Failed webhooks are kept for debugging.

    Args:
        days: Delete processed webhooks older than this many days

    Returns:
        Dict with count of webhooks deleted
    """
    cutoff = timezone.now() - timedelta(days=days)

    deleted_count, _ = WebhookEvent.objects.processed_before(cutoff).delete()

    if deleted_count > 0:
        logger.info(
            f"Deleted {deleted_count} old webhook events",
            extra={
                "deleted_count": deleted_count,
                "cutoff_date": cutoff.isoformat(),
            },
        )

    return {"deleted_count": deleted_count}
