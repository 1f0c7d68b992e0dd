from django.apps import AppConfig


class AuthenticationConfig(AppConfig):
    """Accounts for salon owners, customers and billing admins."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "authentication"
    verbose_name = "Accounts"
