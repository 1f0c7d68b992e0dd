"""
Plan catalog lookups.

Read-only access to subscription plans. Every pricing decision in the
billing engine resolves its plan through here.

Usage:
    from payments.services import PlanCatalog

    plan = PlanCatalog.get_plan(plan_id)   # raises PlanNotFoundError
    plans = PlanCatalog.list_active_plans()
"""

from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError

from core.services import BaseService

from payments.exceptions import PlanNotFoundError
from payments.models import Plan


class PlanCatalog(BaseService):
    """Lookup service for subscription plans."""

    @classmethod
    def get_plan(cls, plan_id) -> Plan:
        """
        Resolve a plan by id.

        Malformed ids are reported the same way as unknown ids.

        Raises:
            PlanNotFoundError: No plan with this id
        """
        try:
            plan = Plan.objects.filter(id=plan_id).first()
        except (DjangoValidationError, ValueError):
            plan = None

        if plan is None:
            raise PlanNotFoundError(
                "Subscription plan not found",
                details={"plan_id": str(plan_id)},
            )
        return plan

    @classmethod
    def list_active_plans(cls):
        return Plan.objects.active().order_by("price")
