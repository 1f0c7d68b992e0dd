"""
Salon and Appointment models.

Salon rows are owned by a user (the subscription owner). Appointment rows
are booked by customers and paid through one-off Payments; their status is
driven by payment webhooks.

State Flow (Appointment):
    PENDING -> BOOKED (payment succeeded)
    PENDING/BOOKED -> CANCELLED (payment failed, cancelled or refunded)
    BOOKED -> COMPLETED (service delivered)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class AppointmentStatus(models.TextChoices):
    """
    States for the Appointment lifecycle.

    Terminal states: CANCELLED, COMPLETED
    """

    PENDING = "pending", "Pending"
    BOOKED = "booked", "Booked"
    CANCELLED = "cancelled", "Cancelled"
    COMPLETED = "completed", "Completed"


class Salon(UUIDPrimaryKeyMixin, BaseModel):
    """
    A salon location owned by a subscription owner.

    The number of salons an owner has is the `locations` usage counter
    seeded onto a new subscription.
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="salons",
        help_text="User who owns this salon and pays for its subscription",
    )

    name = models.CharField(
        max_length=255,
        help_text="Public salon name",
    )

    address = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Street address",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether the salon accepts bookings",
    )

    class Meta:
        ordering = ["name"]
        verbose_name = "Salon"
        verbose_name_plural = "Salons"
        indexes = [
            models.Index(fields=["owner", "is_active"], name="salon_owner_active_idx"),
        ]

    def __str__(self) -> str:
        return self.name


class Appointment(UUIDPrimaryKeyMixin, BaseModel):
    """
    A customer booking at a salon.

    Uses django-fsm so only the payment lifecycle can move the status.

    Fields:
        user: Customer who booked (and pays for) the appointment
        salon: Salon where the appointment takes place
        scheduled_at: Appointment start time
        total_price: Price charged for the appointment (major units)
        status: Current FSM state
        cancellation_reason: Why the appointment was cancelled
        cancelled_at: When the appointment was cancelled
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="appointments",
        help_text="Customer who booked the appointment",
    )

    salon = models.ForeignKey(
        Salon,
        on_delete=models.CASCADE,
        related_name="appointments",
        help_text="Salon where the appointment takes place",
    )

    scheduled_at = models.DateTimeField(
        db_index=True,
        help_text="Appointment start time",
    )

    total_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Price charged for the appointment",
    )

    status = FSMField(
        default=AppointmentStatus.PENDING,
        choices=AppointmentStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the appointment (managed by FSM)",
    )

    cancellation_reason = models.TextField(
        blank=True,
        default="",
        help_text="Why the appointment was cancelled",
    )

    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the appointment was cancelled",
    )

    class Meta:
        ordering = ["-scheduled_at"]
        verbose_name = "Appointment"
        verbose_name_plural = "Appointments"
        indexes = [
            models.Index(fields=["user", "status"], name="appt_user_status_idx"),
            models.Index(fields=["salon", "scheduled_at"], name="appt_salon_scheduled_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_price__gte=0),
                name="appointment_total_price_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Appointment({self.id}, {self.status}, {self.scheduled_at:%Y-%m-%d %H:%M})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=AppointmentStatus.PENDING,
        target=AppointmentStatus.BOOKED,
    )
    def book(self):
        """Confirm the slot after the appointment payment succeeded."""

    @transition(
        field=status,
        source=[AppointmentStatus.PENDING, AppointmentStatus.BOOKED],
        target=AppointmentStatus.CANCELLED,
    )
    def cancel(self, reason: str = ""):
        """Release the slot; a failed, cancelled or refunded payment lands here."""
        self.cancellation_reason = reason
        self.cancelled_at = timezone.now()

    @transition(
        field=status,
        source=AppointmentStatus.BOOKED,
        target=AppointmentStatus.COMPLETED,
    )
    def complete(self):
        pass

    @property
    def is_payable(self) -> bool:
        """Cancelled and completed appointments cannot be paid for."""
        return self.status not in (
            AppointmentStatus.CANCELLED,
            AppointmentStatus.COMPLETED,
        )
