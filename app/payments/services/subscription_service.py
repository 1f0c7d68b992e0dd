"""
Subscription state helpers.

Creation, in-place plan changes, cancellation and expiry of Subscription
rows.

Callers own the transaction: these helpers run inside the caller's atomic
block and never open their own.

Usage:
    from payments.services import SubscriptionService

    with transaction.atomic():
        owner = SubscriptionService.lock_owner(payment.owner_id)
        if SubscriptionService.get_active_subscription(owner) is None:
            subscription = SubscriptionService.create_from_payment(payment)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.utils import timezone

from core.services import BaseService

from payments.models import Subscription
from payments.models.subscription import build_usage, compute_next_billing_date
from payments.state_machines import SubscriptionState

if TYPE_CHECKING:
    from datetime import datetime

    from payments.models import SubscriptionPayment


class SubscriptionService(BaseService):
    """Helpers for the one-active-subscription-per-owner lifecycle."""

    @classmethod
    def get_active_subscription(cls, owner, lock: bool = False) -> Subscription | None:
        queryset = Subscription.objects.active_for_owner(owner)
        if lock:
            queryset = queryset.select_for_update()
        return queryset.first()

    @classmethod
    def has_active_subscription(cls, owner) -> bool:
        return Subscription.objects.active_for_owner(owner).exists()

    @classmethod
    def lock_owner(cls, owner_id):
        """
        Lock the owner row for the rest of the transaction.

        Serializes concurrent settlements for the same owner so the
        active-subscription recheck cannot pass twice.
        """
        return get_user_model().objects.lock_for_billing(owner_id)

    @classmethod
    def create_from_payment(
        cls,
        payment: SubscriptionPayment,
        now: datetime | None = None,
    ) -> Subscription:
        """
        Create the ACTIVE subscription for a settled new-subscription payment.

        Usage counters start at zero except locations, which counts the
        owner's salons.
        """
        now = now or timezone.now()
        locations = payment.owner.salons.count()

        subscription = Subscription.objects.create(
            owner=payment.owner,
            plan=payment.plan,
            payment=payment,
            billing_cycle=payment.billing_cycle,
            amount=payment.amount,
            start_date=now,
            next_billing_date=compute_next_billing_date(now, payment.billing_cycle),
            usage=build_usage(payment.plan, locations=locations),
        )

        cls.get_logger().info(
            "Subscription created",
            extra={
                "subscription_id": str(subscription.id),
                "owner_id": str(payment.owner_id),
                "plan_id": str(payment.plan_id),
                "billing_cycle": payment.billing_cycle,
            },
        )
        return subscription

    @classmethod
    def apply_plan_change(
        cls,
        subscription: Subscription,
        payment: SubscriptionPayment,
        now: datetime | None = None,
    ) -> Subscription:
        """Mutate the subscription in place to the payment's plan and cycle."""
        previous_plan_id = subscription.plan_id
        subscription.apply_plan_change(
            plan=payment.plan,
            billing_cycle=payment.billing_cycle,
            amount=payment.amount,
            payment=payment,
            now=now,
        )
        subscription.save()

        cls.get_logger().info(
            "Subscription plan changed",
            extra={
                "subscription_id": str(subscription.id),
                "previous_plan_id": str(previous_plan_id),
                "plan_id": str(payment.plan_id),
                "upgrade_type": payment.upgrade_type,
            },
        )
        return subscription

    @classmethod
    def subscription_for_payment(
        cls,
        payment: SubscriptionPayment,
        lock: bool = False,
    ) -> Subscription | None:
        """
        Find the subscription a payment created or modified.

        Plan-change payments point at their subscription through metadata;
        new-subscription payments are linked by the subscription's payment FK.
        """
        queryset = Subscription.objects.all()
        if lock:
            queryset = queryset.select_for_update()

        if payment.is_plan_change:
            return queryset.filter(id=payment.current_subscription_id).first()

        subscription = queryset.filter(payment=payment).first()
        if subscription is None:
            # A later plan change moved the payment link; the ledger still knows
            subscription = queryset.filter(billing_history__payment=payment).first()
        return subscription

    @classmethod
    def cancel(cls, subscription: Subscription, reason: str) -> bool:
        """
        Cancel a subscription if it is still live.

        Returns:
            True if the subscription was cancelled by this call
        """
        if subscription.status not in (
            SubscriptionState.ACTIVE,
            SubscriptionState.PENDING_CANCELLATION,
        ):
            return False

        subscription.cancel(reason=reason)
        subscription.save()

        cls.get_logger().info(
            "Subscription cancelled",
            extra={"subscription_id": str(subscription.id), "reason": reason},
        )
        return True

    @classmethod
    def schedule_cancellation(cls, subscription: Subscription, reason: str) -> bool:
        """
        Cancel at the end of the paid period.

        The subscription stays usable until its next billing date, when
        the lapse sweep closes it.

        Returns:
            True if the cancellation was scheduled by this call
        """
        if subscription.status != SubscriptionState.ACTIVE:
            return False

        subscription.request_cancellation(reason=reason)
        subscription.save()

        cls.get_logger().info(
            "Subscription cancellation scheduled",
            extra={
                "subscription_id": str(subscription.id),
                "cancellation_date": subscription.next_billing_date.isoformat(),
                "reason": reason,
            },
        )
        return True

    @classmethod
    def expire(cls, subscription: Subscription) -> bool:
        """Close a subscription whose paid period has run out."""
        if subscription.status not in (
            SubscriptionState.ACTIVE,
            SubscriptionState.PENDING_CANCELLATION,
        ):
            return False

        subscription.expire()
        subscription.save()

        cls.get_logger().info(
            "Subscription expired",
            extra={
                "subscription_id": str(subscription.id),
                "next_billing_date": subscription.next_billing_date.isoformat(),
            },
        )
        return True
