"""
Root URL configuration.

    /                        ReDoc
    /schema/                 OpenAPI schema
    /admin/                  plans, integration settings, ledger
    /health/                 database and cache check
    /api/v1/auth/            register, JWT login/refresh, me
    /api/v1/payments/        plans, intents, subscription, history,
                             appointment payments, Stripe webhook
    /api/v1/notifications/   in-app notification inbox
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

admin.site.site_header = "Salon Billing Admin"
admin.site.site_title = "Salon Billing"
admin.site.index_title = "Plans, payments and ledger"

urlpatterns = [
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path(
        "api/v1/",
        include(
            [
                path("auth/", include("authentication.urls")),
                path("payments/", include("payments.urls")),
                path("notifications/", include("notifications.urls")),
            ]
        ),
    ),
]
