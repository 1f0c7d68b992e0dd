"""
Payment admin configuration.

Registers billing models with the Django admin. Payment, subscription and
ledger state changes go through the service layer and webhooks, so those
models are read-mostly here. Plans and integration settings are the
operator-editable surface.
"""

from django.contrib import admin

from payments.models import (
    BillingHistory,
    IntegrationSettings,
    Payment,
    Plan,
    Subscription,
    SubscriptionPayment,
    WebhookEvent,
)


@admin.register(Plan)
class PlanAdmin(admin.ModelAdmin):
    list_display = ["name", "price", "yearly_price", "status", "created_at"]
    list_filter = ["status"]
    search_fields = ["id", "name"]
    readonly_fields = ["id", "created_at", "updated_at"]
    ordering = ["price"]


@admin.register(IntegrationSettings)
class IntegrationSettingsAdmin(admin.ModelAdmin):
    """
    Admin configuration for IntegrationSettings.

    The most recently updated row is the one the gateway reads.
    """

    list_display = ["id", "stripe_enabled", "email_enabled", "updated_at"]
    readonly_fields = ["id", "created_at", "updated_at"]

    fieldsets = (
        (
            "Stripe",
            {
                "fields": (
                    "stripe_enabled",
                    "payment_api_key",
                    "stripe_publishable_key",
                    "stripe_webhook_secret",
                ),
            },
        ),
        (
            "Email",
            {
                "fields": ("email_enabled",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("id", "created_at", "updated_at"),
            },
        ),
    )


@admin.register(SubscriptionPayment)
class SubscriptionPaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for SubscriptionPayment.

    State changes should be made through the service layer, not admin.
    """

    list_display = [
        "id",
        "owner",
        "plan",
        "amount",
        "billing_cycle",
        "status",
        "expires_at",
        "created_at",
    ]
    list_filter = ["status", "billing_cycle", "currency", "created_at"]
    search_fields = ["id", "payment_intent_id", "owner__email"]
    raw_id_fields = ["owner", "plan"]
    readonly_fields = [
        "id",
        "status",
        "payment_intent_id",
        "client_secret",
        "transaction_id",
        "payment_date",
        "failed_at",
        "cancelled_at",
        "refunded_at",
        "refund_id",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "owner",
        "plan",
        "status",
        "billing_cycle",
        "next_billing_date",
        "created_at",
    ]
    list_filter = ["status", "billing_cycle"]
    search_fields = ["id", "owner__email"]
    raw_id_fields = ["owner", "plan", "payment"]
    readonly_fields = ["id", "status", "cancelled_at", "created_at", "updated_at"]
    ordering = ["-created_at"]


@admin.register(BillingHistory)
class BillingHistoryAdmin(admin.ModelAdmin):
    """
    Admin configuration for BillingHistory.

    Ledger rows are append-only and cannot be edited or deleted here.
    """

    list_display = ["invoice_number", "subscription", "kind", "status", "total", "date"]
    list_filter = ["kind", "status", "date"]
    search_fields = ["invoice_number", "transaction_id", "subscription__owner__email"]
    raw_id_fields = ["subscription", "payment"]
    date_hierarchy = "date"
    ordering = ["-date"]

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ["id", "user", "appointment", "amount", "method", "status", "created_at"]
    list_filter = ["status", "method"]
    search_fields = ["id", "transaction_id", "user__email"]
    raw_id_fields = ["user", "appointment"]
    readonly_fields = ["id", "status", "transaction_id", "client_secret", "created_at", "updated_at"]
    ordering = ["-created_at"]


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing status.
    Webhook events are immutable once received.
    """

    list_display = [
        "id",
        "stripe_event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "stripe_event_id", "event_type"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "stripe_event_id",
        "event_type",
        "payload",
        "processed_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
