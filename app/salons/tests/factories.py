"""
Factory Boy factories for salon test data.

Usage:
    from salons.tests.factories import AppointmentFactory, SalonFactory

    salon = SalonFactory(owner=owner)
    appointment = AppointmentFactory(salon=salon, total_price=Decimal("45.00"))
"""

from datetime import timedelta
from decimal import Decimal

import factory
from django.utils import timezone

from authentication.tests.factories import OwnerFactory, UserFactory
from salons.models import Appointment, Salon


class SalonFactory(factory.django.DjangoModelFactory):
    """Factory for Salon instances owned by a fresh user."""

    class Meta:
        model = Salon
        skip_postgeneration_save = True

    owner = factory.SubFactory(OwnerFactory)
    name = factory.Sequence(lambda n: f"Salon {n}")
    address = "1 Main Street"
    is_active = True


class AppointmentFactory(factory.django.DjangoModelFactory):
    """
    Factory for Appointment instances.

    Default creates a PENDING appointment tomorrow for $45.00.
    """

    class Meta:
        model = Appointment
        skip_postgeneration_save = True

    user = factory.SubFactory(UserFactory)
    salon = factory.SubFactory(SalonFactory)
    scheduled_at = factory.LazyFunction(lambda: timezone.now() + timedelta(days=1))
    total_price = Decimal("45.00")
    # Note: status is managed by FSM, default is PENDING
