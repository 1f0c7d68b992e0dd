"""
Plan model for the subscription catalog.

Plans are reference data maintained through the admin. Every pricing
decision (intent amount, upgrade/downgrade direction) reads from here.

Usage:
    from payments.models import Plan
    from payments.state_machines import BillingCycle

    plan = Plan.objects.get(id=plan_id)
    amount = plan.price_for(BillingCycle.YEARLY)
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import BillingCycle, PlanStatus


class PlanQuerySet(models.QuerySet):
    def active(self):
        return self.filter(status=PlanStatus.ACTIVE)


class Plan(UUIDPrimaryKeyMixin, BaseModel):
    """
    A subscription plan with monthly and yearly prices.

    Fields:
        name: Display name (e.g., "Professional")
        description: Marketing description shown on the pricing page
        price: Monthly price in major units
        yearly_price: Yearly price in major units
        features: List of feature bullet strings
        limits: Feature limits map: {"bookings": int, "staff": int, "locations": int}
        status: Whether the plan can be purchased

    Note:
        Plans referenced by a live subscription should not have their
        prices edited; create a new plan instead.
    """

    name = models.CharField(
        max_length=100,
        help_text="Display name of the plan",
    )

    description = models.TextField(
        blank=True,
        default="",
        help_text="Plan description shown to owners",
    )

    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Monthly price in major currency units",
    )

    yearly_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Yearly price in major currency units",
    )

    features = models.JSONField(
        default=list,
        blank=True,
        help_text="List of feature descriptions",
    )

    limits = models.JSONField(
        default=dict,
        blank=True,
        help_text='Feature limits, e.g. {"bookings": 500, "staff": 10, "locations": 2}',
    )

    status = models.CharField(
        max_length=20,
        choices=PlanStatus.choices,
        default=PlanStatus.ACTIVE,
        db_index=True,
        help_text="Whether the plan is offered for purchase",
    )

    objects = PlanQuerySet.as_manager()

    class Meta:
        ordering = ["price"]
        verbose_name = "Plan"
        verbose_name_plural = "Plans"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price__gte=0) & models.Q(yearly_price__gte=0),
                name="plan_prices_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.price}/mo, {self.yearly_price}/yr)"

    def price_for(self, billing_cycle: str) -> Decimal:
        """Return the effective price for a billing cycle."""
        if billing_cycle == BillingCycle.YEARLY:
            return self.yearly_price
        return self.price

    def limit(self, key: str, default: int = 0) -> int:
        """Read a single feature limit, treating missing values as default."""
        value = (self.limits or {}).get(key)
        return value if value is not None else default
