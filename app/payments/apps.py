"""
Payments app configuration.

This app provides the subscription billing engine:
- Plan catalog and Stripe integration settings
- Subscription payment intents and webhook reconciliation
- Refunds, billing ledger and appointment payments
"""

import logging

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self):
        """
        Apply Stripe transport settings.

        Every gateway call shares the module-level HTTP client, so the
        timeout and network retries are set once per process.
        """
        import stripe

        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)
        stripe.max_network_retries = getattr(settings, "STRIPE_MAX_RETRIES", 3)
        logger.debug(
            "Stripe transport configured",
            extra={"timeout_seconds": timeout, "max_retries": stripe.max_network_retries},
        )
