"""
Payment intent orchestration for subscriptions.

This module provides the PaymentIntentService class which is the entry
point for every subscription purchase: a brand-new subscription, an
upgrade, or a downgrade. It validates the request against the plan
catalog and the owner's current subscription, persists a pending
SubscriptionPayment and creates the matching Stripe PaymentIntent.

Nothing is settled here. The client confirms the intent with the returned
client secret and the webhook reconciler moves the local row to paid.

Flow:
    1. Validate arguments, resolve plan and owner
    2. Enforce the subscription rule for the path (new / upgrade / downgrade)
    3. Check the gateway is enabled and configured
    4. Persist the pending SubscriptionPayment
    5. Create the PaymentIntent (idempotency key derived from the local id)
    6. Store intent id and client secret, return them to the client

Usage:
    from payments.services import PaymentIntentService

    result = PaymentIntentService().create_subscription_intent(
        plan_id=plan.id,
        owner_id=owner.id,
        billing_cycle=BillingCycle.MONTHLY,
    )

    if result.success:
        client_secret = result.data["clientSecret"]
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.contrib.auth import get_user_model

from core.services import BaseService, ServiceResult

from payments.adapters import (
    CreateIntentParams,
    IdempotencyKeyGenerator,
    StripeGateway,
    to_minor_units,
)
from payments.exceptions import (
    GatewayNotConfiguredError,
    PaymentsDisabledError,
    PlanNotFoundError,
    StripeError,
)
from payments.models import SubscriptionPayment
from payments.models.subscription_payment import compute_expires_at
from payments.services.integration import GatewayFactory, build_gateway
from payments.services.plan_catalog import PlanCatalog
from payments.services.subscription_service import SubscriptionService
from payments.state_machines import BillingCycle, UpgradeType

if TYPE_CHECKING:
    from payments.models import Plan, Subscription


class PaymentIntentService(BaseService):
    """
    Creates pending subscription payments and their Stripe intents.

    The gateway is built per call through gateway_factory so the current
    IntegrationSettings apply and tests can inject a fake.
    """

    def __init__(self, gateway_factory: GatewayFactory = StripeGateway):
        self.gateway_factory = gateway_factory

    # =========================================================================
    # Public API
    # =========================================================================

    def create_subscription_intent(self, plan_id, owner_id, billing_cycle) -> ServiceResult[dict]:
        """
        Start a purchase for an owner with no active subscription.

        Returns:
            ServiceResult with the intent payload, or DUPLICATE_SUBSCRIPTION
            when the owner already has an active subscription
        """
        return self._create_intent(plan_id, owner_id, billing_cycle, upgrade_type=None)

    def create_upgrade_intent(self, plan_id, owner_id, billing_cycle) -> ServiceResult[dict]:
        """Start a move to a plan that costs more at the requested cycle."""
        return self._create_intent(plan_id, owner_id, billing_cycle, upgrade_type=UpgradeType.UPGRADE)

    def create_downgrade_intent(self, plan_id, owner_id, billing_cycle) -> ServiceResult[dict]:
        """Start a move to a plan that costs less at the requested cycle."""
        return self._create_intent(plan_id, owner_id, billing_cycle, upgrade_type=UpgradeType.DOWNGRADE)

    # =========================================================================
    # Steps
    # =========================================================================

    def _create_intent(
        self,
        plan_id,
        owner_id,
        billing_cycle,
        upgrade_type: str | None,
    ) -> ServiceResult[dict]:
        logger = self.get_logger()

        validation = self.validate_required(plan_id=plan_id, owner_id=owner_id)
        if validation is not None:
            return validation
        if billing_cycle not in BillingCycle.values:
            return ServiceResult.failure(
                "billing_cycle must be 'monthly' or 'yearly'",
                error_code="INVALID_ARGUMENT",
            )

        try:
            plan = PlanCatalog.get_plan(plan_id)
        except PlanNotFoundError as exc:
            return ServiceResult.from_exception(exc)

        owner = get_user_model().objects.billing_contact(owner_id)
        if owner is None:
            return ServiceResult.failure("User not found", error_code="USER_NOT_FOUND")

        current = SubscriptionService.get_active_subscription(owner)
        rejection = self._check_subscription_rule(plan, current, billing_cycle, upgrade_type)
        if rejection:
            logger.info(
                "Subscription intent rejected",
                extra={
                    "owner_id": str(owner.id),
                    "plan_id": str(plan.id),
                    "error_code": rejection.error_code,
                },
            )
            return rejection

        amount = plan.price_for(billing_cycle)
        if amount <= 0:
            return ServiceResult.failure(
                "Plan has no price for this billing cycle",
                error_code="INVALID_ARGUMENT",
            )

        try:
            gateway = build_gateway(self.gateway_factory)
        except (PaymentsDisabledError, GatewayNotConfiguredError) as exc:
            return self.handle_exception(
                exc, "Gateway unavailable for subscription intent", log_level=logging.WARNING
            )

        payment = SubscriptionPayment.objects.create(
            owner=owner,
            plan=plan,
            amount=amount,
            currency=gateway.config.currency,
            billing_cycle=billing_cycle,
            expires_at=compute_expires_at(billing_cycle),
            metadata=self._payment_metadata(plan, owner, billing_cycle, current, upgrade_type),
        )

        intent_metadata = {
            "subscription_payment_id": str(payment.id),
            "owner_id": str(owner.id),
            "plan_id": str(plan.id),
            "billing_cycle": billing_cycle,
        }
        if upgrade_type:
            intent_metadata["upgrade_type"] = upgrade_type
            intent_metadata["current_subscription_id"] = str(current.id)

        try:
            intent = gateway.create_intent(
                CreateIntentParams(
                    amount_cents=to_minor_units(amount),
                    currency=payment.currency,
                    idempotency_key=IdempotencyKeyGenerator.generate("create_intent", payment.id),
                    metadata=intent_metadata,
                    description=(
                        f"Subscription payment for {plan.name} plan - {owner.billing_name}"
                    ),
                )
            )
        except StripeError as exc:
            payment.mark_failed(reason=exc.message)
            payment.save()
            logger.error(
                "PaymentIntent creation failed",
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

        payment.payment_intent_id = intent.id
        payment.client_secret = intent.client_secret or ""
        payment.transaction_id = intent.id
        payment.touch("payment_intent_id", "client_secret", "transaction_id")

        logger.info(
            "Subscription payment intent created",
            extra={
                "subscription_payment_id": str(payment.id),
                "payment_intent_id": intent.id,
                "owner_id": str(owner.id),
                "plan_id": str(plan.id),
                "upgrade_type": upgrade_type,
            },
        )

        if upgrade_type is None:
            self._send_initiated_invoice(payment)

        return ServiceResult.success(self._response(payment, plan, owner, current, upgrade_type))

    @staticmethod
    def _check_subscription_rule(
        plan: Plan,
        current: Subscription | None,
        billing_cycle: str,
        upgrade_type: str | None,
    ) -> ServiceResult | None:
        """
        Enforce one active subscription per owner and the plan-change direction.

        Prices are compared at the requested cycle for both plans.
        """
        if upgrade_type is None:
            if current is not None:
                return ServiceResult.failure(
                    "You already have an active subscription",
                    error_code="DUPLICATE_SUBSCRIPTION",
                )
            return None

        if current is None:
            return ServiceResult.failure(
                "No active subscription to change",
                error_code="NO_ACTIVE_SUBSCRIPTION",
            )

        current_price = current.plan.price_for(billing_cycle)
        new_price = plan.price_for(billing_cycle)

        if upgrade_type == UpgradeType.UPGRADE and new_price <= current_price:
            return ServiceResult.failure(
                "Selected plan is not an upgrade from your current plan",
                error_code="NOT_AN_UPGRADE",
            )
        if upgrade_type == UpgradeType.DOWNGRADE and new_price >= current_price:
            return ServiceResult.failure(
                "Selected plan is not a downgrade from your current plan",
                error_code="NOT_A_DOWNGRADE",
            )
        return None

    @staticmethod
    def _payment_metadata(
        plan: Plan,
        owner,
        billing_cycle: str,
        current: Subscription | None,
        upgrade_type: str | None,
    ) -> dict[str, Any]:
        metadata = {
            "plan_name": plan.name,
            "owner_name": owner.billing_name,
            "billing_cycle": billing_cycle,
        }
        if upgrade_type:
            metadata.update(
                {
                    "upgrade_type": upgrade_type,
                    "current_subscription_id": str(current.id),
                    "previous_plan_id": str(current.plan_id),
                    "previous_plan_name": current.plan.name,
                }
            )
        return metadata

    @staticmethod
    def _response(
        payment: SubscriptionPayment,
        plan: Plan,
        owner,
        current: Subscription | None,
        upgrade_type: str | None,
    ) -> dict[str, Any]:
        data = {
            "paymentId": str(payment.id),
            "clientSecret": payment.client_secret,
            "amount": payment.amount,
            "currency": payment.currency,
            "plan": {
                "id": str(plan.id),
                "name": plan.name,
                "description": plan.description,
            },
            "owner": {
                "id": str(owner.id),
                "name": owner.billing_name,
            },
            "billingCycle": payment.billing_cycle,
            "expiresAt": payment.expires_at.isoformat(),
        }
        if upgrade_type:
            data["upgradeType"] = upgrade_type
            data["currentSubscriptionId"] = str(current.id)
        return data

    def _send_initiated_invoice(self, payment: SubscriptionPayment) -> None:
        from notifications.services import InvoiceEmailService

        if not InvoiceEmailService.send_invoice_email(payment):
            self.get_logger().warning(
                "Payment initiated email not queued",
                extra={"subscription_payment_id": str(payment.id)},
            )
