"""
Tests for the notification inbox API.

Test Classes:
    TestNotificationList: Listing, ownership and filters
    TestMarkRead: Single and bulk read marking
"""

from rest_framework.test import APIClient

from notifications.models import Notification, NotificationCategory
from notifications.tests.factories import NotificationFactory

BASE = "/api/v1/notifications/"


class TestNotificationList:
    def test_requires_authentication(self, db):
        assert APIClient().get(BASE).status_code == 401

    def test_lists_only_own_notifications(self, owner_client, owner, other_user):
        mine = NotificationFactory(recipient=owner, title="Subscription Activated")
        NotificationFactory(recipient=other_user)

        response = owner_client.get(BASE)

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["results"][0]["id"] == mine.id
        assert body["results"][0]["title"] == "Subscription Activated"

    def test_filters_by_read_status_and_category(self, owner_client, owner):
        NotificationFactory(recipient=owner, is_read=True)
        NotificationFactory(recipient=owner, category=NotificationCategory.SYSTEM)
        unread_billing = NotificationFactory(recipient=owner)

        response = owner_client.get(BASE, {"is_read": "false", "category": "billing"})

        assert [row["id"] for row in response.json()["results"]] == [unread_billing.id]

    def test_other_users_notification_is_not_found(self, owner_client, other_user):
        foreign = NotificationFactory(recipient=other_user)

        assert owner_client.get(f"{BASE}{foreign.id}/").status_code == 404

    def test_unread_count(self, owner_client, owner):
        NotificationFactory.create_batch(2, recipient=owner)
        NotificationFactory(recipient=owner, is_read=True)

        response = owner_client.get(f"{BASE}unread-count/")

        assert response.json() == {"unread_count": 2}


class TestMarkRead:
    def test_marks_one_read(self, owner_client, owner):
        notification = NotificationFactory(recipient=owner)

        response = owner_client.post(f"{BASE}{notification.id}/read/")

        assert response.status_code == 200
        assert response.json()["is_read"] is True
        assert Notification.objects.get(pk=notification.pk).is_read is True

    def test_mark_read_is_idempotent(self, owner_client, owner):
        notification = NotificationFactory(recipient=owner, is_read=True)

        assert owner_client.post(f"{BASE}{notification.id}/read/").status_code == 200

    def test_cannot_mark_another_users_notification(self, owner_client, other_user):
        foreign = NotificationFactory(recipient=other_user)

        assert owner_client.post(f"{BASE}{foreign.id}/read/").status_code == 404
        assert Notification.objects.get(pk=foreign.pk).is_read is False

    def test_read_all_marks_only_own_unread(self, owner_client, owner, other_user):
        NotificationFactory.create_batch(3, recipient=owner)
        NotificationFactory(recipient=owner, is_read=True)
        NotificationFactory(recipient=other_user)

        response = owner_client.post(f"{BASE}read-all/")

        assert response.json() == {"marked_count": 3}
        assert not Notification.objects.filter(recipient=owner).unread().exists()
        assert Notification.objects.filter(recipient=other_user).unread().count() == 1
