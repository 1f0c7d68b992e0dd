"""
Webhook handling for payment events from Stripe.

Webhooks are verified, stored idempotently and reconciled synchronously
against local payment state.

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""
