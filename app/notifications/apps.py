from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    """Invoice emails and in-app billing notifications."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "notifications"
    verbose_name = "Billing notifications"
