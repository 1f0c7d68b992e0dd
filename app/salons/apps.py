"""
Django app configuration for salons.
"""

from django.apps import AppConfig


class SalonsConfig(AppConfig):
    """Configuration for the salons application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "salons"
    verbose_name = "Salons"
