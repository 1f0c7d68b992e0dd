"""
DRF serializers for the billing API.

This module provides serializers for:
- Plan catalog display
- Subscription payment and subscription display
- Billing history display
- Intent, refund and checkout requests

Request serializers only check shape. Business validation (plan exists,
direction of a plan change, refund reason present) happens in the
services so every failure carries the same error body.

Related files:
    - models/: Plan, Subscription, SubscriptionPayment, BillingHistory, Payment
    - views.py: Billing API views

Usage:
    serializer = SubscriptionPaymentSerializer(payment)
    data = serializer.data
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import BillingHistory, Payment, Plan, Subscription, SubscriptionPayment
from payments.state_machines import BillingCycle, PaymentMethod


# =============================================================================
# Read Serializers
# =============================================================================


class PlanSerializer(serializers.ModelSerializer):
    """Read-only serializer for Plan."""

    class Meta:
        """Serializer metadata."""

        model = Plan
        fields = [
            "id",
            "name",
            "description",
            "price",
            "yearly_price",
            "features",
            "limits",
            "status",
        ]
        read_only_fields = fields


class PlanSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Plan
        fields = ["id", "name", "description"]
        read_only_fields = fields


class SubscriptionSerializer(serializers.ModelSerializer):
    """
    Read-only serializer for Subscription.

    Includes the full plan so clients can show limits next to usage.
    """

    plan = PlanSerializer(read_only=True)

    class Meta:
        """Serializer metadata."""

        model = Subscription
        fields = [
            "id",
            "plan",
            "status",
            "billing_cycle",
            "amount",
            "start_date",
            "next_billing_date",
            "usage",
            "cancelled_at",
            "cancellation_reason",
            "created_at",
        ]
        read_only_fields = fields


class SubscriptionPaymentSerializer(serializers.ModelSerializer):
    """
    Read-only serializer for SubscriptionPayment.

    client_secret is only exposed while the payment is pending.
    """

    plan = PlanSummarySerializer(read_only=True)
    client_secret = serializers.SerializerMethodField(
        help_text="PaymentIntent client secret (pending payments only)",
    )
    upgrade_type = serializers.CharField(read_only=True, allow_null=True)

    class Meta:
        """Serializer metadata."""

        model = SubscriptionPayment
        fields = [
            "id",
            "plan",
            "amount",
            "currency",
            "billing_cycle",
            "status",
            "upgrade_type",
            "payment_intent_id",
            "client_secret",
            "expires_at",
            "payment_date",
            "failure_reason",
            "cancellation_reason",
            "refund_amount",
            "refund_reason",
            "refunded_at",
            "metadata",
            "created_at",
        ]
        read_only_fields = fields

    def get_client_secret(self, obj: SubscriptionPayment) -> str | None:
        return obj.client_secret if obj.is_pending else None


class BillingHistorySerializer(serializers.ModelSerializer):
    """Read-only serializer for BillingHistory ledger rows."""

    plan_name = serializers.CharField(source="subscription.plan.name", read_only=True)

    class Meta:
        """Serializer metadata."""

        model = BillingHistory
        fields = [
            "id",
            "subscription",
            "payment",
            "plan_name",
            "date",
            "kind",
            "status",
            "description",
            "invoice_number",
            "transaction_id",
            "amount",
            "subtotal",
            "tax_amount",
            "total",
        ]
        read_only_fields = fields


class AppointmentPaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            "id",
            "appointment",
            "amount",
            "method",
            "status",
            "transaction_id",
            "payment_date",
            "refund_amount",
            "created_at",
        ]
        read_only_fields = fields


# =============================================================================
# Request Serializers
# =============================================================================


class SubscriptionIntentRequestSerializer(serializers.Serializer):
    """
    Request body for new, upgrade and downgrade intents.

    Fields:
        planId: Plan to purchase
        billingCycle: monthly (default) or yearly
    """

    planId = serializers.CharField(
        help_text="ID of the plan to purchase",
    )
    billingCycle = serializers.ChoiceField(
        choices=BillingCycle.choices,
        default=BillingCycle.MONTHLY,
        help_text="Billing cycle: monthly or yearly",
    )


class RefundRequestSerializer(serializers.Serializer):
    refund_reason = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=500,
        help_text="Why the owner wants a refund (required)",
    )


class SubscriptionCancelRequestSerializer(serializers.Serializer):
    reason = serializers.CharField(
        min_length=5,
        max_length=500,
        help_text="Why the owner is cancelling",
    )
    immediate = serializers.BooleanField(
        default=False,
        help_text="Cancel now instead of at the next billing date",
    )


class AppointmentCheckoutSerializer(serializers.Serializer):
    appointment_id = serializers.CharField(
        help_text="ID of the appointment to pay for",
    )
    method = serializers.ChoiceField(
        choices=PaymentMethod.choices,
        default=PaymentMethod.VISA,
    )


# =============================================================================
# Response Serializers (schema documentation)
# =============================================================================


class ErrorResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField(default=False)
    message = serializers.CharField()
    error_code = serializers.CharField()


class IntentResponseSerializer(serializers.Serializer):
    """Shape of a successful intent response's data."""

    paymentId = serializers.UUIDField()
    clientSecret = serializers.CharField()
    amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    currency = serializers.CharField()
    plan = PlanSummarySerializer()
    owner = serializers.DictField()
    billingCycle = serializers.CharField()
    expiresAt = serializers.DateTimeField()
    upgradeType = serializers.CharField(required=False)
    currentSubscriptionId = serializers.UUIDField(required=False)
