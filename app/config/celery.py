"""
Celery app for the billing maintenance jobs in payments.tasks and the
billing emails in notifications.tasks.

Beat schedules live in django-celery-beat's tables (seeded by payments
migration 0002), so there is no beat_schedule here. Redis is both broker
and result backend; see the CELERY_* settings.
"""

import logging
import os

from celery import Celery
from celery.signals import task_failure

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

logger = logging.getLogger("payments.tasks")

app = Celery("billing")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


@task_failure.connect
def log_task_failure(sender=None, task_id=None, exception=None, **kwargs):
    """Billing jobs run unattended; make every crash visible in the billing log."""
    logger.error(
        "Billing task failed",
        extra={
            "task_name": getattr(sender, "name", None),
            "task_id": task_id,
            "error": repr(exception),
        },
    )
