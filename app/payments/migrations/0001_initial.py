import uuid

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("salons", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Plan",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(help_text="Display name of the plan", max_length=100)),
                ("description", models.TextField(blank=True, default="", help_text="Plan description shown to owners")),
                ("price", models.DecimalField(decimal_places=2, help_text="Monthly price in major currency units", max_digits=10)),
                ("yearly_price", models.DecimalField(decimal_places=2, help_text="Yearly price in major currency units", max_digits=10)),
                ("features", models.JSONField(blank=True, default=list, help_text="List of feature descriptions")),
                ("limits", models.JSONField(blank=True, default=dict, help_text='Feature limits, e.g. {"bookings": 500, "staff": 10, "locations": 2}')),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("inactive", "Inactive")],
                        db_index=True,
                        default="active",
                        help_text="Whether the plan is offered for purchase",
                        max_length=20,
                    ),
                ),
            ],
            options={
                "verbose_name": "Plan",
                "verbose_name_plural": "Plans",
                "ordering": ["price"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("price__gte", 0), ("yearly_price__gte", 0)),
                        name="plan_prices_non_negative",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="IntegrationSettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("stripe_enabled", models.BooleanField(default=True, help_text="Whether Stripe payments are accepted")),
                ("payment_api_key", models.CharField(blank=True, default="", help_text="Stripe secret key (sk_...)", max_length=255)),
                ("stripe_publishable_key", models.CharField(blank=True, default="", help_text="Stripe publishable key (pk_...)", max_length=255)),
                ("stripe_webhook_secret", models.CharField(blank=True, default="", help_text="Stripe webhook endpoint signing secret (whsec_...)", max_length=255)),
                ("email_enabled", models.BooleanField(default=True, help_text="Whether invoice and refund emails are sent")),
            ],
            options={
                "verbose_name": "Integration Settings",
                "verbose_name_plural": "Integration Settings",
                "ordering": ["-updated_at"],
            },
        ),
        migrations.CreateModel(
            name="SubscriptionPayment",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("amount", models.DecimalField(decimal_places=2, help_text="Amount charged in major currency units", max_digits=10)),
                ("currency", models.CharField(default="usd", help_text="ISO 4217 currency code (lowercase)", max_length=3)),
                (
                    "billing_cycle",
                    models.CharField(
                        choices=[("monthly", "Monthly"), ("yearly", "Yearly")],
                        default="monthly",
                        help_text="Billing cycle the amount pays for",
                        max_length=10,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[("pending", "Pending"), ("paid", "Paid"), ("failed", "Failed"), ("cancelled", "Cancelled"), ("refunded", "Refunded")],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the payment (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("payment_intent_id", models.CharField(blank=True, help_text="Stripe PaymentIntent ID (pi_xxx)", max_length=255, null=True, unique=True)),
                ("client_secret", models.CharField(blank=True, default="", help_text="PaymentIntent client secret handed to the client", max_length=255)),
                ("transaction_id", models.CharField(blank=True, db_index=True, default="", help_text="External transaction reference", max_length=255)),
                ("expires_at", models.DateTimeField(db_index=True, help_text="When a still-pending payment is considered stale")),
                ("payment_date", models.DateTimeField(blank=True, help_text="When the payment settled", null=True)),
                ("failed_at", models.DateTimeField(blank=True, help_text="When the payment failed", null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, help_text="When the payment was cancelled", null=True)),
                ("failure_reason", models.TextField(blank=True, default="", help_text="Gateway failure message")),
                ("cancellation_reason", models.CharField(blank=True, default="", help_text="Why the payment was cancelled", max_length=255)),
                ("refund_amount", models.DecimalField(blank=True, decimal_places=2, help_text="Amount refunded", max_digits=10, null=True)),
                ("refund_reason", models.TextField(blank=True, default="", help_text="Owner-supplied refund reason")),
                ("refund_id", models.CharField(blank=True, default="", help_text="Stripe Refund ID (re_xxx)", max_length=255)),
                ("refunded_at", models.DateTimeField(blank=True, help_text="When the refund was issued", null=True)),
                ("metadata", models.JSONField(blank=True, default=dict, help_text="Audit metadata (plan change details, refund window, etc.)")),
                (
                    "owner",
                    models.ForeignKey(
                        help_text="Salon owner making the payment",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="subscription_payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "plan",
                    models.ForeignKey(
                        help_text="Plan being purchased",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="subscription_payments",
                        to="payments.plan",
                    ),
                ),
            ],
            options={
                "verbose_name": "Subscription Payment",
                "verbose_name_plural": "Subscription Payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["owner", "status"], name="subpay_owner_status_idx"),
                    models.Index(fields=["status", "expires_at"], name="subpay_status_expiry_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gte", 0)),
                        name="subscription_payment_amount_non_negative",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Subscription",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[("active", "Active"), ("pending_cancellation", "Pending Cancellation"), ("cancelled", "Cancelled"), ("expired", "Expired")],
                        db_index=True,
                        default="active",
                        help_text="Current state of the subscription (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "billing_cycle",
                    models.CharField(
                        choices=[("monthly", "Monthly"), ("yearly", "Yearly")],
                        default="monthly",
                        help_text="Billing frequency",
                        max_length=10,
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, help_text="Price of the current billing cycle", max_digits=10)),
                ("start_date", models.DateTimeField(default=django.utils.timezone.now, help_text="When the subscription started")),
                ("next_billing_date", models.DateTimeField(help_text="When the next billing cycle is due")),
                ("usage", models.JSONField(blank=True, default=dict, help_text="Usage counters with their plan limits")),
                ("cancelled_at", models.DateTimeField(blank=True, help_text="When subscription was cancelled", null=True)),
                ("cancellation_reason", models.CharField(blank=True, default="", help_text="Why the subscription was cancelled", max_length=255)),
                (
                    "owner",
                    models.ForeignKey(
                        help_text="Salon owner paying for the subscription",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="subscriptions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "plan",
                    models.ForeignKey(
                        help_text="Current plan",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="subscriptions",
                        to="payments.plan",
                    ),
                ),
                (
                    "payment",
                    models.ForeignKey(
                        blank=True,
                        help_text="Payment that created or last modified this subscription",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="payments.subscriptionpayment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Subscription",
                "verbose_name_plural": "Subscriptions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["owner", "status"], name="sub_owner_status_idx"),
                    models.Index(fields=["status", "next_billing_date"], name="sub_status_billing_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "active")),
                        fields=("owner",),
                        name="one_active_subscription_per_owner",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("amount__gte", 0)),
                        name="subscription_amount_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BillingHistory",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this row was recorded")),
                ("date", models.DateTimeField(db_index=True, help_text="When the billing event happened")),
                ("amount", models.DecimalField(decimal_places=2, help_text="Signed amount; negative for refunds", max_digits=10)),
                (
                    "status",
                    models.CharField(
                        choices=[("paid", "Paid"), ("refunded", "Refunded"), ("failed", "Failed")],
                        help_text="Billing status of this entry",
                        max_length=20,
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[("creation", "Subscription Created"), ("upgrade", "Plan Upgrade"), ("downgrade", "Plan Downgrade"), ("refund", "Refund")],
                        help_text="Settlement event this entry records",
                        max_length=20,
                    ),
                ),
                ("description", models.TextField(blank=True, default="", help_text="Human-readable description")),
                ("transaction_id", models.CharField(blank=True, default="", help_text="External transaction reference", max_length=255)),
                ("invoice_number", models.CharField(help_text="Invoice number (INV-YYYY-NNNN)", max_length=32, unique=True)),
                ("subtotal", models.DecimalField(decimal_places=2, help_text="Amount before tax", max_digits=10)),
                ("tax_amount", models.DecimalField(decimal_places=2, default=0, help_text="Tax charged", max_digits=10)),
                ("total", models.DecimalField(decimal_places=2, help_text="subtotal + tax_amount", max_digits=10)),
                ("idempotency_key", models.CharField(help_text="Unique key to prevent duplicate entries for one event", max_length=255, unique=True)),
                (
                    "subscription",
                    models.ForeignKey(
                        help_text="Subscription this entry belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="billing_history",
                        to="payments.subscription",
                    ),
                ),
                (
                    "payment",
                    models.ForeignKey(
                        blank=True,
                        help_text="Payment that produced this entry",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="billing_history",
                        to="payments.subscriptionpayment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Billing History",
                "verbose_name_plural": "Billing History",
                "ordering": ["-date"],
                "indexes": [models.Index(fields=["subscription", "date"], name="billing_sub_date_idx")],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("amount", models.DecimalField(decimal_places=2, help_text="Amount in major currency units", max_digits=10)),
                (
                    "method",
                    models.CharField(
                        choices=[("visa", "Visa"), ("crypto", "Crypto")],
                        default="visa",
                        help_text="Payment method",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[("pending", "Pending"), ("paid", "Paid"), ("failed", "Failed"), ("cancelled", "Cancelled"), ("refunded", "Refunded")],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the payment (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("transaction_id", models.CharField(blank=True, help_text="Stripe PaymentIntent ID (pi_xxx)", max_length=255, null=True, unique=True)),
                ("client_secret", models.CharField(blank=True, default="", help_text="PaymentIntent client secret handed to the client", max_length=255)),
                ("payment_date", models.DateTimeField(blank=True, help_text="When the payment settled", null=True)),
                ("failure_reason", models.TextField(blank=True, default="", help_text="Gateway failure message")),
                ("refund_amount", models.DecimalField(blank=True, decimal_places=2, help_text="Amount refunded", max_digits=10, null=True)),
                ("refund_reason", models.TextField(blank=True, default="", help_text="Refund reason")),
                (
                    "user",
                    models.ForeignKey(
                        help_text="Customer paying for the appointment",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="appointment_payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "appointment",
                    models.OneToOneField(
                        help_text="Appointment being paid for",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment",
                        to="salons.appointment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Appointment Payment",
                "verbose_name_plural": "Appointment Payments",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["user", "status"], name="payment_user_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("stripe_event_id", models.CharField(help_text="Stripe event id (evt_...)", max_length=255, unique=True)),
                ("event_type", models.CharField(db_index=True, help_text="Stripe event type, e.g. payment_intent.succeeded", max_length=100)),
                ("payload", models.JSONField(help_text="Event body as delivered")),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("processing", "Processing"), ("processed", "Processed"), ("failed", "Failed")],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, help_text="Last handler error, cleared on success", null=True)),
                ("retry_count", models.PositiveSmallIntegerField(default=0, help_text="Processing attempts so far")),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
                    models.Index(fields=["event_type", "created_at"], name="webhook_type_created_idx"),
                ],
            },
        ),
    ]
