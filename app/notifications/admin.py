"""
Django admin configuration for notification models.
"""

from django.contrib import admin

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """Notifications are historical records; only is_read is editable."""

    list_display = ["title", "recipient", "category", "is_read", "created_at"]
    list_filter = ["category", "is_read"]
    search_fields = ["title", "recipient__email"]
    raw_id_fields = ["recipient"]
    readonly_fields = ["recipient", "category", "title", "body", "data", "created_at", "updated_at"]
    ordering = ["-created_at"]
