"""
Subscription billing and payment lifecycle.

A salon owner picks a plan, pays through a Stripe PaymentIntent, and the
webhook reconciler turns the settled payment into an active subscription,
a billing ledger row, an invoice email and an in-app notification. The
same flow covers plan upgrades, downgrades, refunds within the refund
window, and one-off appointment payments.

Entry points:
    payments.urls                 REST endpoints under /api/v1/payments/
    payments.webhooks.views       Stripe webhook receiver
    payments.tasks                Celery maintenance jobs
"""
