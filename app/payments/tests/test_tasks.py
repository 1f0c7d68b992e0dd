"""
Tests for billing maintenance Celery tasks.

Tasks are called directly; no broker is involved.
"""

from datetime import timedelta
from unittest.mock import patch

from django.utils import timezone
from freezegun import freeze_time

from payments.exceptions import StripeInvalidRequestError
from payments.models import Subscription, SubscriptionPayment, WebhookEvent
from payments.services import RefundService
from payments.state_machines import (
    SubscriptionPaymentState,
    SubscriptionState,
    WebhookEventStatus,
)
from payments.tasks import (
    cleanup_old_webhooks,
    expire_lapsed_subscriptions,
    expire_stale_subscription_payments,
    retry_failed_webhooks,
)
from payments.tests.factories import SubscriptionPaymentFactory, WebhookEventFactory


class TestExpireStaleSubscriptionPayments:
    """
    Verifies:
    - Pending payments past expires_at are cancelled with reason "expired"
    - Fresh pending and settled payments are left alone
    - Remote cancel is best-effort
    """

    def test_expires_stale_pending(self, owner, basic_plan, fake_gateway):
        stale = SubscriptionPaymentFactory(
            owner=owner,
            plan=basic_plan,
            expires_at=timezone.now() - timedelta(minutes=1),
        )
        fresh = SubscriptionPaymentFactory(owner=owner, plan=basic_plan)

        with patch("payments.tasks.build_gateway", return_value=fake_gateway):
            result = expire_stale_subscription_payments()

        assert result == {"expired_count": 1}
        stale = SubscriptionPayment.objects.get(pk=stale.pk)
        assert stale.status == SubscriptionPaymentState.CANCELLED
        assert stale.cancellation_reason == "expired"
        assert SubscriptionPayment.objects.get(pk=fresh.pk).is_pending
        fake_gateway.cancel_intent.assert_called_once_with(stale.payment_intent_id)

    def test_settled_payments_untouched(self, paid_payment, fake_gateway):
        SubscriptionPayment.objects.filter(pk=paid_payment.pk).update(
            expires_at=timezone.now() - timedelta(days=1)
        )

        with patch("payments.tasks.build_gateway", return_value=fake_gateway):
            result = expire_stale_subscription_payments()

        assert result == {"expired_count": 0}
        assert SubscriptionPayment.objects.get(pk=paid_payment.pk).is_paid

    def test_remote_failure_still_expires(self, owner, basic_plan, fake_gateway):
        stale = SubscriptionPaymentFactory(
            owner=owner,
            plan=basic_plan,
            expires_at=timezone.now() - timedelta(hours=2),
        )
        fake_gateway.cancel_intent.side_effect = StripeInvalidRequestError("already canceled")

        with patch("payments.tasks.build_gateway", return_value=fake_gateway):
            result = expire_stale_subscription_payments()

        assert result == {"expired_count": 1}
        assert SubscriptionPayment.objects.get(pk=stale.pk).status == SubscriptionPaymentState.CANCELLED

    def test_expires_locally_without_gateway(self, integration_settings, owner, basic_plan):
        integration_settings.payment_api_key = ""
        integration_settings.save()
        stale = SubscriptionPaymentFactory(
            owner=owner,
            plan=basic_plan,
            expires_at=timezone.now() - timedelta(hours=2),
        )

        result = expire_stale_subscription_payments()

        assert result == {"expired_count": 1}
        assert SubscriptionPayment.objects.get(pk=stale.pk).status == SubscriptionPaymentState.CANCELLED


class TestExpireLapsedSubscriptions:
    """
    Verifies:
    - A cancellation scheduled at period end expires once the date passes
    - Scheduled cancellations not yet due are left alone
    - ACTIVE subscriptions are never expired by the sweep
    """

    def test_scheduled_cancellation_expires_at_period_end(self, owner, active_subscription):
        result = RefundService().cancel_subscription(owner.id, "Closing the salon")
        assert result.data["status"] == SubscriptionState.PENDING_CANCELLATION

        with freeze_time(active_subscription.next_billing_date + timedelta(minutes=1)):
            sweep = expire_lapsed_subscriptions()

        assert sweep == {"expired_count": 1}
        subscription = Subscription.objects.get(pk=active_subscription.pk)
        assert subscription.status == SubscriptionState.EXPIRED
        assert subscription.cancellation_reason == "Closing the salon"

    def test_not_yet_due_is_left_alone(self, owner, active_subscription):
        RefundService().cancel_subscription(owner.id, "Closing the salon")

        with freeze_time(active_subscription.next_billing_date - timedelta(days=1)):
            sweep = expire_lapsed_subscriptions()

        assert sweep == {"expired_count": 0}
        subscription = Subscription.objects.get(pk=active_subscription.pk)
        assert subscription.status == SubscriptionState.PENDING_CANCELLATION

    def test_active_subscription_past_billing_date_untouched(self, active_subscription):
        with freeze_time(active_subscription.next_billing_date + timedelta(days=30)):
            sweep = expire_lapsed_subscriptions()

        assert sweep == {"expired_count": 0}
        assert Subscription.objects.get(pk=active_subscription.pk).is_active


class TestRetryFailedWebhooks:
    def test_retries_failed_events(self, db):
        event = WebhookEventFactory(
            event_type="customer.created",
            status=WebhookEventStatus.FAILED,
            retry_count=1,
        )

        result = retry_failed_webhooks()

        assert result == {"retried_count": 1, "recovered_count": 1}
        event = WebhookEvent.objects.get(pk=event.pk)
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.retry_count == 2

    def test_skips_events_over_retry_limit(self, db):
        WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=5)

        assert retry_failed_webhooks() == {"retried_count": 0, "recovered_count": 0}

    def test_still_failing_event_stays_failed(self, db):
        event = WebhookEventFactory(
            event_type="payment_intent.succeeded",
            payload={"data": {"object": {"id": "pi_missing"}}},
            status=WebhookEventStatus.FAILED,
        )

        result = retry_failed_webhooks()

        assert result == {"retried_count": 1, "recovered_count": 0}
        assert WebhookEvent.objects.get(pk=event.pk).status == WebhookEventStatus.FAILED


class TestCleanupOldWebhooks:
    def test_deletes_old_processed_only(self, db):
        old_processed = WebhookEventFactory(
            status=WebhookEventStatus.PROCESSED,
            processed_at=timezone.now() - timedelta(days=91),
        )
        recent_processed = WebhookEventFactory(
            status=WebhookEventStatus.PROCESSED,
            processed_at=timezone.now() - timedelta(days=5),
        )
        old_failed = WebhookEventFactory(status=WebhookEventStatus.FAILED)

        result = cleanup_old_webhooks()

        assert result == {"deleted_count": 1}
        remaining = set(WebhookEvent.objects.values_list("pk", flat=True))
        assert old_processed.pk not in remaining
        assert {recent_processed.pk, old_failed.pk} <= remaining

    def test_custom_age(self, db):
        WebhookEventFactory(
            status=WebhookEventStatus.PROCESSED,
            processed_at=timezone.now() - timedelta(days=10),
        )

        assert cleanup_old_webhooks(days=7) == {"deleted_count": 1}


class TestTaskFailureLogging:
    def test_failure_signal_is_logged(self):
        from config.celery import log_task_failure

        with patch("config.celery.logger") as logger:
            log_task_failure(
                sender=retry_failed_webhooks,
                task_id="task-1",
                exception=RuntimeError("broker gone"),
            )

        logger.error.assert_called_once_with(
            "Billing task failed",
            extra={
                "task_name": retry_failed_webhooks.name,
                "task_id": "task-1",
                "error": "RuntimeError('broker gone')",
            },
        )
