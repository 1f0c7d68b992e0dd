"""
WebhookEvent model: one row per verified Stripe event.

The unique stripe_event_id is the reconciler's deduplication key. A
redelivered event that already reached PROCESSED is acknowledged without
running its handler again; a FAILED one is attempted again, either on
redelivery or by the retry_failed_webhooks task.

Usage:
    event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id=payload["id"],
        defaults={"event_type": payload["type"], "payload": payload},
    )
    if created or not event.is_processed:
        process_webhook_event(event)
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import WebhookEventStatus


class WebhookEventQuerySet(models.QuerySet):
    def retryable(self, max_attempts: int):
        """FAILED events that have been attempted fewer than max_attempts times."""
        return self.filter(
            status=WebhookEventStatus.FAILED,
            retry_count__lt=max_attempts,
        ).order_by("created_at")

    def processed_before(self, cutoff):
        return self.filter(status=WebhookEventStatus.PROCESSED, processed_at__lt=cutoff)


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    A Stripe event and the outcome of reconciling it.

    Lifecycle:
        PENDING -> PROCESSING -> PROCESSED
                              -> FAILED -> PROCESSING (retry) -> ...

    retry_count counts attempts, so the first run leaves it at 1.
    """

    stripe_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe event id (evt_...)",
    )
    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Stripe event type, e.g. payment_intent.succeeded",
    )
    payload = models.JSONField(help_text="Event body as delivered")

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Last handler error, cleared on success",
    )
    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Processing attempts so far",
    )

    objects = WebhookEventQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
            models.Index(fields=["event_type", "created_at"], name="webhook_type_created_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.event_type} ({self.stripe_event_id})"

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def data_object(self) -> dict:
        """payload["data"]["object"], or {} when the payload is malformed."""
        try:
            return self.payload.get("data", {}).get("object", {}) or {}
        except (AttributeError, TypeError):
            return {}

    @property
    def payment_intent_id(self) -> str | None:
        """
        The PaymentIntent this event concerns.

        payment_intent.* events carry it as the object id; charge.* events
        reference it through the charge's payment_intent field.
        """
        data_object = self.data_object
        if data_object.get("object") == "charge" or self.event_type.startswith("charge."):
            return data_object.get("payment_intent")
        return data_object.get("id")

    # Outcome recording; each call saves only the fields it changes.

    def begin_attempt(self) -> None:
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1
        self.touch("status", "retry_count")

    def record_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None
        self.touch("status", "processed_at", "error_message")

    def record_failure(self, message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = message
        self.touch("status", "error_message")
