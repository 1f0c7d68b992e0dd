"""
URL configuration for authentication app.

URL structure:
    /api/v1/auth/register/        - Email/password registration
    /api/v1/auth/token/           - Obtain JWT pair (login)
    /api/v1/auth/token/refresh/   - Refresh access token
    /api/v1/auth/me/              - Current user (GET/PATCH)
"""

from django.urls import path
from drf_spectacular.utils import extend_schema_view, extend_schema
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from authentication.views import MeView, RegisterView

app_name = "authentication"

LoginView = extend_schema_view(
    post=extend_schema(summary="Obtain JWT pair", tags=["Auth"]),
)(TokenObtainPairView)
RefreshView = extend_schema_view(
    post=extend_schema(summary="Refresh access token", tags=["Auth"]),
)(TokenRefreshView)

urlpatterns = [
    path("register/", RegisterView.as_view(), name="register"),
    path("token/", LoginView.as_view(), name="token-obtain"),
    path("token/refresh/", RefreshView.as_view(), name="token-refresh"),
    path("me/", MeView.as_view(), name="me"),
]
