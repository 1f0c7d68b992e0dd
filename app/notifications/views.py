"""
Views for the in-app notification inbox.

Endpoints:
    GET  /api/v1/notifications/              - List own notifications (paginated)
    GET  /api/v1/notifications/{id}/         - Notification detail
    GET  /api/v1/notifications/unread-count/ - Badge count
    POST /api/v1/notifications/{id}/read/    - Mark one as read (idempotent)
    POST /api/v1/notifications/read-all/     - Mark all as read

Filtering:
    ?is_read=true|false
    ?category=billing|appointment|system
"""

from __future__ import annotations

from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from notifications.models import Notification
from notifications.serializers import (
    MarkAllReadResponseSerializer,
    NotificationSerializer,
    UnreadCountSerializer,
)


@extend_schema_view(
    list=extend_schema(
        summary="List notifications",
        parameters=[
            OpenApiParameter("is_read", bool, description="Filter by read status"),
            OpenApiParameter("category", str, description="billing, appointment or system"),
        ],
        tags=["Notifications"],
    ),
    retrieve=extend_schema(summary="Get notification", tags=["Notifications"]),
)
class NotificationViewSet(viewsets.ReadOnlyModelViewSet):
    """Owners only ever see their own notifications; other ids are 404."""

    permission_classes = [IsAuthenticated]
    serializer_class = NotificationSerializer

    def get_queryset(self):
        queryset = Notification.objects.filter(recipient=self.request.user)

        is_read = self.request.query_params.get("is_read")
        if is_read is not None:
            queryset = queryset.filter(is_read=is_read.lower() == "true")

        category = self.request.query_params.get("category")
        if category:
            queryset = queryset.filter(category=category)

        return queryset

    @extend_schema(
        summary="Get unread notification count",
        responses={200: UnreadCountSerializer},
        tags=["Notifications"],
    )
    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        count = Notification.objects.filter(recipient=request.user).unread().count()
        return Response(UnreadCountSerializer({"unread_count": count}).data)

    @extend_schema(
        summary="Mark notification as read",
        request=None,
        responses={200: NotificationSerializer},
        tags=["Notifications"],
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        notification = self.get_object()
        notification.mark_read()
        return Response(self.get_serializer(notification).data)

    @extend_schema(
        summary="Mark all notifications as read",
        request=None,
        responses={200: MarkAllReadResponseSerializer},
        tags=["Notifications"],
    )
    @action(detail=False, methods=["post"], url_path="read-all")
    def read_all(self, request):
        marked = (
            Notification.objects.filter(recipient=request.user)
            .unread()
            .update(is_read=True, updated_at=timezone.now())
        )
        return Response(MarkAllReadResponseSerializer({"marked_count": marked}).data)
