"""
Django admin configuration for salons.
"""

from django.contrib import admin

from salons.models import Appointment, Salon


@admin.register(Salon)
class SalonAdmin(admin.ModelAdmin):
    list_display = ("name", "owner", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name", "owner__email")
    raw_id_fields = ("owner",)


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    """Appointments are read-only here; status moves through payments."""

    list_display = ("id", "salon", "user", "scheduled_at", "total_price", "status")
    list_filter = ("status",)
    search_fields = ("id", "user__email", "salon__name")
    raw_id_fields = ("user", "salon")
    readonly_fields = ("status", "cancelled_at", "created_at", "updated_at")
