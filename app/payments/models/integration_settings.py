"""
IntegrationSettings model for admin-managed gateway configuration.

Operators rotate Stripe keys and toggle payments from the admin without a
deploy. The most recently updated row is authoritative; when no row exists
the STRIPE_* environment settings apply.

Usage:
    from payments.models import IntegrationSettings

    config = IntegrationSettings.current()
    if not config.stripe_enabled:
        ...
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel


class IntegrationSettings(BaseModel):
    """
    Third-party integration switches and credentials.

    Fields:
        stripe_enabled: Master switch for card payments
        payment_api_key: Stripe secret key (sk_...)
        stripe_publishable_key: Stripe publishable key (pk_...)
        stripe_webhook_secret: Endpoint signing secret (whsec_...)
        email_enabled: Whether billing emails are sent
    """

    stripe_enabled = models.BooleanField(
        default=True,
        help_text="Whether Stripe payments are accepted",
    )

    payment_api_key = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Stripe secret key (sk_...)",
    )

    stripe_publishable_key = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Stripe publishable key (pk_...)",
    )

    stripe_webhook_secret = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Stripe webhook endpoint signing secret (whsec_...)",
    )

    email_enabled = models.BooleanField(
        default=True,
        help_text="Whether invoice and refund emails are sent",
    )

    class Meta:
        ordering = ["-updated_at"]
        verbose_name = "Integration Settings"
        verbose_name_plural = "Integration Settings"

    def __str__(self) -> str:
        state = "enabled" if self.stripe_enabled else "disabled"
        return f"IntegrationSettings(stripe {state})"

    @classmethod
    def current(cls) -> IntegrationSettings:
        """
        Return the authoritative settings row.

        Falls back to an unsaved instance built from environment settings
        when the table is empty, so callers never deal with None.
        """
        row = cls.objects.order_by("-updated_at").first()
        if row is not None:
            return row
        return cls(
            stripe_enabled=True,
            payment_api_key=getattr(settings, "STRIPE_SECRET_KEY", ""),
            stripe_publishable_key=getattr(settings, "STRIPE_PUBLISHABLE_KEY", ""),
            stripe_webhook_secret=getattr(settings, "STRIPE_WEBHOOK_SECRET", ""),
        )

    @property
    def secret_key(self) -> str:
        """Stripe secret key, falling back to the environment value."""
        return self.payment_api_key or getattr(settings, "STRIPE_SECRET_KEY", "")

    @property
    def webhook_secret(self) -> str:
        """Webhook signing secret, falling back to the environment value."""
        return self.stripe_webhook_secret or getattr(settings, "STRIPE_WEBHOOK_SECRET", "")
