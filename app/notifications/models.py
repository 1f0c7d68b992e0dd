"""
In-app notifications.

The billing engine writes one row per recipient when a payment settles,
changes plan, or is refunded. Clients poll these rows; device push is
not handled here.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel


class NotificationCategory(models.TextChoices):
    BILLING = "billing", "Billing"
    APPOINTMENT = "appointment", "Appointment"
    SYSTEM = "system", "System"


class NotificationQuerySet(models.QuerySet):
    def unread(self):
        return self.filter(is_read=False)


class Notification(BaseModel):
    """
    A rendered message for one user.

    title and body are stored rendered, so the row still reads correctly
    after the plan or payment it mentions changes. Only is_read changes
    after creation.
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    category = models.CharField(
        max_length=20,
        choices=NotificationCategory.choices,
        default=NotificationCategory.SYSTEM,
    )
    title = models.CharField(max_length=500)
    body = models.TextField(blank=True, default="")
    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Ids the client links to, e.g. paymentId or subscriptionId",
    )
    is_read = models.BooleanField(default=False)

    objects = NotificationQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["recipient", "is_read"], name="notif_recipient_read_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.title[:50]} -> {self.recipient_id}"

    @classmethod
    def fan_out(cls, user_ids, *, title, body, data=None, category=NotificationCategory.BILLING):
        """Unsaved copies of one message, one per user id, for bulk_create."""
        return [
            cls(recipient_id=user_id, category=category, title=title, body=body, data=data or {})
            for user_id in user_ids
        ]

    def mark_read(self) -> None:
        if not self.is_read:
            self.is_read = True
            self.touch("is_read")
