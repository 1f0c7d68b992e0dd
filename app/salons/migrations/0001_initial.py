import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Salon",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(help_text="Public salon name", max_length=255)),
                ("address", models.CharField(blank=True, default="", help_text="Street address", max_length=500)),
                ("is_active", models.BooleanField(default=True, help_text="Whether the salon accepts bookings")),
                (
                    "owner",
                    models.ForeignKey(
                        help_text="User who owns this salon and pays for its subscription",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="salons",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Salon",
                "verbose_name_plural": "Salons",
                "ordering": ["name"],
                "indexes": [models.Index(fields=["owner", "is_active"], name="salon_owner_active_idx")],
            },
        ),
        migrations.CreateModel(
            name="Appointment",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("scheduled_at", models.DateTimeField(db_index=True, help_text="Appointment start time")),
                ("total_price", models.DecimalField(decimal_places=2, help_text="Price charged for the appointment", max_digits=10)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[("pending", "Pending"), ("booked", "Booked"), ("cancelled", "Cancelled"), ("completed", "Completed")],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the appointment (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("cancellation_reason", models.TextField(blank=True, default="", help_text="Why the appointment was cancelled")),
                ("cancelled_at", models.DateTimeField(blank=True, help_text="When the appointment was cancelled", null=True)),
                (
                    "salon",
                    models.ForeignKey(
                        help_text="Salon where the appointment takes place",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="appointments",
                        to="salons.salon",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="Customer who booked the appointment",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="appointments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Appointment",
                "verbose_name_plural": "Appointments",
                "ordering": ["-scheduled_at"],
                "indexes": [
                    models.Index(fields=["user", "status"], name="appt_user_status_idx"),
                    models.Index(fields=["salon", "scheduled_at"], name="appt_salon_scheduled_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("total_price__gte", 0)), name="appointment_total_price_non_negative"),
                ],
            },
        ),
    ]
