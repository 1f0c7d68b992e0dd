"""
User model.

Salon owners and customers are both plain users: an owner pays for the
salon's subscription, a customer pays for appointments. Ownership lives on
Salon.owner, so nothing here knows about plans or payments.
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Email-identified account.

    name and email are what invoices and Stripe descriptions print; staff
    users double as billing admins.
    """

    email = models.EmailField(
        unique=True,
        max_length=254,
        help_text="Login and invoice address",
    )
    name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Printed on invoices and payment descriptions",
    )
    phone = models.CharField(max_length=30, blank=True, default="")

    is_active = models.BooleanField(
        default=True,
        help_text="Inactive users cannot log in or start payments",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Billing admin with access to the admin site",
    )

    date_joined = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    EMAIL_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    @property
    def billing_name(self) -> str:
        """Name for invoices and payment descriptions; the email when unnamed."""
        return self.name.strip() or self.email

    def get_full_name(self):
        return self.billing_name

    def get_short_name(self):
        if self.name.strip():
            return self.name.split()[0]
        return self.email.partition("@")[0]
