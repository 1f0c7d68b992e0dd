"""
URL configuration for the payments app.

Routes:
    - GET  /plans/                                          - Active plans
    - GET  /subscription/                                   - Active subscription
    - POST /subscription/cancel/                            - Cancel subscription
    - POST /subscription-payments/intent/                   - New subscription intent
    - POST /subscription-payments/upgrade-intent/           - Upgrade intent
    - POST /subscription-payments/downgrade-intent/         - Downgrade intent
    - POST /subscription-payments/backfill-billing-history/ - Ledger backfill (staff)
    - GET  /subscription-payments/                          - Owner's payments
    - GET  /subscription-payments/{id}/                     - Payment detail
    - GET  /subscription-payments/{id}/status/              - Payment + subscription
    - POST /subscription-payments/{id}/cancel/              - Cancel pending payment
    - POST /subscription-payments/{id}/refund/              - Refund paid payment
    - POST /subscription-payments/{id}/send-invoice/        - Resend invoice email
    - GET  /billing-history/                                - Owner's ledger
    - POST /appointment-payments/checkout/                  - Appointment checkout
    - POST /appointment-payments/{id}/cancel/               - Cancel appointment payment
    - POST /webhooks/stripe/                                - Stripe webhook endpoint

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments import views
from payments.webhooks.views import stripe_webhook

app_name = "payments"

urlpatterns = [
    # Catalog
    path("plans/", views.PlanListView.as_view(), name="plan-list"),
    path("subscription/", views.CurrentSubscriptionView.as_view(), name="current-subscription"),
    path("subscription/cancel/", views.SubscriptionCancelView.as_view(), name="subscription-cancel"),
    # Subscription payments
    path(
        "subscription-payments/intent/",
        views.SubscriptionIntentView.as_view(),
        name="subscription-intent",
    ),
    path(
        "subscription-payments/upgrade-intent/",
        views.UpgradeIntentView.as_view(),
        name="upgrade-intent",
    ),
    path(
        "subscription-payments/downgrade-intent/",
        views.DowngradeIntentView.as_view(),
        name="downgrade-intent",
    ),
    path(
        "subscription-payments/backfill-billing-history/",
        views.BackfillBillingHistoryView.as_view(),
        name="backfill-billing-history",
    ),
    path(
        "subscription-payments/",
        views.SubscriptionPaymentListView.as_view(),
        name="subscription-payment-list",
    ),
    path(
        "subscription-payments/<uuid:payment_id>/",
        views.SubscriptionPaymentDetailView.as_view(),
        name="subscription-payment-detail",
    ),
    path(
        "subscription-payments/<uuid:payment_id>/status/",
        views.SubscriptionPaymentStatusView.as_view(),
        name="subscription-payment-status",
    ),
    path(
        "subscription-payments/<uuid:payment_id>/cancel/",
        views.SubscriptionPaymentCancelView.as_view(),
        name="subscription-payment-cancel",
    ),
    path(
        "subscription-payments/<uuid:payment_id>/refund/",
        views.SubscriptionPaymentRefundView.as_view(),
        name="subscription-payment-refund",
    ),
    path(
        "subscription-payments/<uuid:payment_id>/send-invoice/",
        views.SubscriptionPaymentSendInvoiceView.as_view(),
        name="subscription-payment-send-invoice",
    ),
    # Ledger
    path("billing-history/", views.BillingHistoryListView.as_view(), name="billing-history"),
    # Appointment payments
    path(
        "appointment-payments/checkout/",
        views.AppointmentCheckoutView.as_view(),
        name="appointment-checkout",
    ),
    path(
        "appointment-payments/<uuid:payment_id>/cancel/",
        views.AppointmentPaymentCancelView.as_view(),
        name="appointment-payment-cancel",
    ),
    # Webhook endpoints
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
]
