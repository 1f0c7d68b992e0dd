"""
Tests for UserManager.

Covers account creation and the billing lookups on the email-based User.
"""

import pytest

from authentication.models import User


class TestUserManagerCreateUser:
    """Tests for UserManager.create_user() method."""

    def test_creates_user_with_email_and_password(self, db):
        """Should create a user that can authenticate with the password."""
        user = User.objects.create_user(
            email="owner@example.com",
            password="SecurePass123!",
            name="Salon Owner",
        )

        assert user.pk is not None
        assert user.email == "owner@example.com"
        assert user.name == "Salon Owner"
        assert user.check_password("SecurePass123!") is True

    def test_normalizes_email_domain_to_lowercase(self, db):
        """Should lowercase the domain portion of the email."""
        user = User.objects.create_user(email="Owner@EXAMPLE.COM", password="x")

        assert user.email == "Owner@example.com"

    def test_user_without_password_has_unusable_password(self, db):
        """Should set an unusable password when none is given."""
        user = User.objects.create_user(email="nopass@example.com")

        assert user.has_usable_password() is False

    def test_missing_email_raises_value_error(self, db):
        """Should refuse to create a user without an email."""
        with pytest.raises(ValueError, match="Email"):
            User.objects.create_user(email="", password="x")

    def test_regular_user_defaults(self, db):
        """Regular users should not be staff or superusers."""
        user = User.objects.create_user(email="regular@example.com", password="x")

        assert user.is_active is True
        assert user.is_staff is False
        assert user.is_superuser is False


class TestUserManagerCreateSuperuser:
    """Tests for UserManager.create_superuser() method."""

    def test_creates_superuser_with_flags(self, db):
        """Should set is_staff and is_superuser."""
        admin = User.objects.create_superuser(
            email="admin@example.com", password="AdminPass123!"
        )

        assert admin.is_staff is True
        assert admin.is_superuser is True

    def test_rejects_superuser_without_staff_flag(self, db):
        """Should raise when is_staff is explicitly False."""
        with pytest.raises(ValueError, match="is_staff"):
            User.objects.create_superuser(
                email="bad@example.com", password="x", is_staff=False
            )


class TestUserNames:
    """Tests for the display name helpers."""

    def test_full_name_falls_back_to_email(self, db):
        """Should use the email when no name is set."""
        user = User.objects.create_user(email="anon@example.com", password="x")

        assert user.get_full_name() == "anon@example.com"
        assert user.get_short_name() == "anon"

    def test_short_name_uses_first_word(self, db):
        """Should return the first word of the name."""
        user = User.objects.create_user(
            email="jane@example.com", password="x", name="Jane Owner"
        )

        assert user.get_full_name() == "Jane Owner"
        assert user.get_short_name() == "Jane"

    def test_billing_name_strips_whitespace_only_names(self, db):
        user = User.objects.create_user(email="blank@example.com", password="x", name="   ")

        assert user.billing_name == "blank@example.com"


class TestBillingLookups:
    """Tests for the lookups billing services make against users."""

    def test_billing_contact_returns_active_user(self, db):
        user = User.objects.create_user(email="owner@example.com", password="x")

        assert User.objects.billing_contact(user.pk) == user

    def test_billing_contact_skips_inactive_user(self, db):
        user = User.objects.create_user(email="gone@example.com", password="x", is_active=False)

        assert User.objects.billing_contact(user.pk) is None

    def test_billing_contact_tolerates_malformed_id(self, db):
        assert User.objects.billing_contact("not-a-number") is None
        assert User.objects.billing_contact(None) is None

    def test_lock_for_billing_returns_the_row(self, db):
        user = User.objects.create_user(email="locked@example.com", password="x")

        assert User.objects.lock_for_billing(user.pk).email == "locked@example.com"
