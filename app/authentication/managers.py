"""
User manager for the billing service.

Accounts are keyed by email. Besides account creation the manager owns the
two lookups the billing services make against users: resolving the owner
behind a request and locking that owner's row while a payment settles.
"""

from django.contrib.auth.models import BaseUserManager


class UserManager(BaseUserManager):
    """
    Usage:
        owner = User.objects.create_user(
            email="owner@salon.example",
            password="securepassword",
            name="Jane Owner",
        )
        owner = User.objects.billing_contact(owner_id)
    """

    use_in_migrations = True

    def _build(self, email, password, **fields):
        if not email:
            raise ValueError("The Email field must be set")

        user = self.model(email=self.normalize_email(email), **fields)
        if password:
            user.set_password(password)
        else:
            # Owners invited by an admin set a password on first login
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **fields):
        fields.setdefault("is_staff", False)
        fields.setdefault("is_superuser", False)
        return self._build(email, password, **fields)

    def create_superuser(self, email, password=None, **fields):
        """Billing admins; they can backfill history and see every payment."""
        fields.setdefault("is_staff", True)
        fields.setdefault("is_superuser", True)

        for flag in ("is_staff", "is_superuser"):
            if fields.get(flag) is not True:
                raise ValueError(f"Superuser must have {flag}=True.")

        return self._build(email, password, **fields)

    def billing_contact(self, user_id):
        """Active user with this id, or None for unknown or malformed ids."""
        try:
            return self.filter(pk=user_id, is_active=True).first()
        except (TypeError, ValueError):
            return None

    def lock_for_billing(self, user_id):
        """
        Lock the user row for the rest of the current transaction.

        Settlements for the same owner queue behind this lock so the
        one-active-subscription check is never evaluated twice in parallel.
        """
        return self.select_for_update().get(pk=user_id)
