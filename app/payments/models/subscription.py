"""
Subscription model for an owner's salon plan.

A Subscription is created on the first successful subscription payment and
mutated in place on upgrade/downgrade, so its id is stable across plan
changes. Rows are never deleted; they only move through status
transitions.

Usage:
    from payments.models import Subscription
    from payments.state_machines import SubscriptionState

    current = Subscription.objects.active_for_owner(owner).first()

    # State transitions using django-fsm
    subscription.cancel(reason="refunded")
    subscription.save()
"""

from __future__ import annotations

import calendar
from datetime import datetime
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import BillingCycle, SubscriptionState

if TYPE_CHECKING:
    from payments.models.plan import Plan
    from payments.models.subscription_payment import SubscriptionPayment


def add_months(value: datetime, months: int) -> datetime:
    """
    Shift a datetime by whole calendar months.

    The day is clamped to the last day of the target month, so
    Jan 31 + 1 month is Feb 28 (or 29).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def compute_next_billing_date(start: datetime, billing_cycle: str) -> datetime:
    """Next billing date: start + 1 year for yearly, + 1 month otherwise."""
    if billing_cycle == BillingCycle.YEARLY:
        return add_months(start, 12)
    return add_months(start, 1)


def build_usage(plan: Plan, locations: int = 0, bookings: int = 0, staff: int = 0) -> dict:
    """
    Usage counters bound by plan limits.

    Counters carry over on plan changes; only the limits are replaced.
    """
    return {
        "bookings": bookings,
        "bookingsLimit": plan.limit("bookings", 0),
        "staff": staff,
        "staffLimit": plan.limit("staff", 0),
        "locations": locations,
        "locationsLimit": plan.limit("locations", 1),
    }


class SubscriptionQuerySet(models.QuerySet):
    def active(self):
        return self.filter(status=SubscriptionState.ACTIVE)

    def active_for_owner(self, owner):
        return self.filter(owner=owner, status=SubscriptionState.ACTIVE)


class Subscription(UUIDPrimaryKeyMixin, BaseModel):
    """
    Current state of an owner's subscription.

    Invariant:
        At most one ACTIVE subscription per owner. Checked before intent
        creation, re-checked inside the settlement transaction and backed
        by the partial unique constraint below.

    State Flow:
        ACTIVE -> PENDING_CANCELLATION (owner cancels at period end)
        PENDING_CANCELLATION -> CANCELLED (owner cancels now)
        ACTIVE -> CANCELLED (refund, or owner cancels now)
        PENDING_CANCELLATION -> EXPIRED (lapse sweep at the billing date)

    Fields:
        owner: Salon owner paying for the subscription
        plan: Current plan
        status: Current FSM state
        billing_cycle: monthly or yearly
        amount: Price paid for the current cycle (major units)
        start_date: When the subscription was first paid for; plan changes keep it
        next_billing_date: When the next cycle is due
        usage: Usage counters and their plan limits
        payment: SubscriptionPayment that created or last modified this row
        cancelled_at / cancellation_reason: Cancellation details
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="subscriptions",
        help_text="Salon owner paying for the subscription",
    )

    plan = models.ForeignKey(
        "payments.Plan",
        on_delete=models.PROTECT,
        related_name="subscriptions",
        help_text="Current plan",
    )

    payment = models.ForeignKey(
        "payments.SubscriptionPayment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Payment that created or last modified this subscription",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=SubscriptionState.ACTIVE,
        choices=SubscriptionState.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the subscription (managed by FSM)",
    )

    # ==========================================================================
    # Billing
    # ==========================================================================

    billing_cycle = models.CharField(
        max_length=10,
        choices=BillingCycle.choices,
        default=BillingCycle.MONTHLY,
        help_text="Billing frequency",
    )

    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Price of the current billing cycle",
    )

    start_date = models.DateTimeField(
        default=timezone.now,
        help_text="When the subscription started",
    )

    next_billing_date = models.DateTimeField(
        help_text="When the next billing cycle is due",
    )

    usage = models.JSONField(
        default=dict,
        blank=True,
        help_text="Usage counters with their plan limits",
    )

    # ==========================================================================
    # Cancellation
    # ==========================================================================

    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When subscription was cancelled",
    )

    cancellation_reason = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Why the subscription was cancelled",
    )

    objects = SubscriptionQuerySet.as_manager()

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        indexes = [
            models.Index(fields=["owner", "status"], name="sub_owner_status_idx"),
            models.Index(fields=["status", "next_billing_date"], name="sub_status_billing_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["owner"],
                condition=models.Q(status=SubscriptionState.ACTIVE),
                name="one_active_subscription_per_owner",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name="subscription_amount_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Subscription({self.id}, {self.status}, {self.amount}/{self.billing_cycle})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=SubscriptionState.ACTIVE,
        target=SubscriptionState.PENDING_CANCELLATION,
    )
    def request_cancellation(self, reason: str = ""):
        """
        Schedule cancellation at the end of the current billing cycle.

        Transition: ACTIVE -> PENDING_CANCELLATION
        """
        self.cancellation_reason = reason

    @transition(
        field=status,
        source=[SubscriptionState.ACTIVE, SubscriptionState.PENDING_CANCELLATION],
        target=SubscriptionState.CANCELLED,
    )
    def cancel(self, reason: str = ""):
        """
        Cancel the subscription immediately.

        Transition: ACTIVE/PENDING_CANCELLATION -> CANCELLED

        Triggered by a refund of the payment that created it, or by the
        owner asking for an immediate cancellation.
        """
        self.cancelled_at = timezone.now()
        if reason:
            self.cancellation_reason = reason

    @transition(
        field=status,
        source=[SubscriptionState.ACTIVE, SubscriptionState.PENDING_CANCELLATION],
        target=SubscriptionState.EXPIRED,
    )
    def expire(self):
        """
        Close the subscription once its paid period has run out.

        The lapse sweep calls this when a cancellation scheduled at period
        end falls due.

        Transition: ACTIVE/PENDING_CANCELLATION -> EXPIRED
        """
        pass

    # ==========================================================================
    # Plan Changes
    # ==========================================================================

    def apply_plan_change(
        self,
        plan: Plan,
        billing_cycle: str,
        amount,
        payment: SubscriptionPayment,
        now: datetime | None = None,
    ) -> None:
        """
        Mutate the subscription in place for an upgrade or downgrade.

        The id and start_date stay stable, so the refund window keeps
        counting from the original purchase. Usage counters carry over and
        only the limits follow the new plan; the next billing date restarts
        from now.

        Note: Does not save - caller must save after calling.
        """
        now = now or timezone.now()
        usage = self.usage or {}
        self.plan = plan
        self.billing_cycle = billing_cycle
        self.amount = amount
        self.payment = payment
        self.next_billing_date = compute_next_billing_date(now, billing_cycle)
        self.usage = build_usage(
            plan,
            locations=usage.get("locations", 0),
            bookings=usage.get("bookings", 0),
            staff=usage.get("staff", 0),
        )

    # ==========================================================================
    # Helper Properties
    # ==========================================================================

    @property
    def is_active(self) -> bool:
        """Check if subscription is currently active."""
        return self.status == SubscriptionState.ACTIVE

    @property
    def is_cancelled(self) -> bool:
        return self.status == SubscriptionState.CANCELLED
