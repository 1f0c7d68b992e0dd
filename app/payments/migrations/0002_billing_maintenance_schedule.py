"""
Add celery-beat schedules for billing maintenance.

Creates periodic tasks for:
- expire_stale_subscription_payments (hourly)
- retry_failed_webhooks (every 15 minutes)
- cleanup_old_webhooks (daily)
"""

from django.db import migrations

PERIODIC_TASKS = [
    {
        "name": "Expire Stale Subscription Payments",
        "task": "payments.tasks.expire_stale_subscription_payments",
        "every": 1,
        "period": "hours",
        "description": "Cancels pending subscription payments past their expires_at.",
    },
    {
        "name": "Retry Failed Webhooks",
        "task": "payments.tasks.retry_failed_webhooks",
        "every": 15,
        "period": "minutes",
        "description": "Reprocesses failed Stripe webhook events below the retry limit.",
    },
    {
        "name": "Cleanup Old Webhooks",
        "task": "payments.tasks.cleanup_old_webhooks",
        "every": 1,
        "period": "days",
        "description": "Deletes processed webhook events older than 90 days.",
    },
]


def create_periodic_tasks(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in PERIODIC_TASKS:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=entry["every"],
            period=entry["period"],
        )
        PeriodicTask.objects.get_or_create(
            name=entry["name"],
            defaults={
                "task": entry["task"],
                "interval": schedule,
                "enabled": True,
                "description": entry["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(
        name__in=[entry["name"] for entry in PERIODIC_TASKS],
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
