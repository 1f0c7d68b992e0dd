"""
Factory Boy factories for notification test data.

Usage:
    from notifications.tests.factories import NotificationFactory

    notification = NotificationFactory(recipient=user, is_read=True)
"""

import factory

from authentication.tests.factories import UserFactory
from notifications.models import Notification, NotificationCategory


class NotificationFactory(factory.django.DjangoModelFactory):
    """Factory for an unread billing Notification."""

    class Meta:
        model = Notification
        skip_postgeneration_save = True

    recipient = factory.SubFactory(UserFactory)
    category = NotificationCategory.BILLING
    title = factory.Sequence(lambda n: f"Notification {n}")
    body = "Your subscription was updated."
    data = factory.LazyFunction(dict)
    is_read = False
