"""
Account serializers.

Owners register here before subscribing; the name they give is what their
invoices print, so it is editable afterwards while the email is not.
"""

from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from authentication.models import User


class UserSerializer(serializers.ModelSerializer):
    """Current user as returned by /api/v1/auth/me/."""

    billing_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ["id", "email", "name", "billing_name", "phone", "is_staff", "date_joined"]
        read_only_fields = ["id", "email", "is_staff", "date_joined"]


class RegisterSerializer(serializers.ModelSerializer):
    password1 = serializers.CharField(
        write_only=True,
        min_length=8,
        style={"input_type": "password"},
    )
    password2 = serializers.CharField(write_only=True, style={"input_type": "password"})

    class Meta:
        model = User
        fields = ["email", "name", "phone", "password1", "password2"]
        extra_kwargs = {
            # Uniqueness is checked case-insensitively in validate_email
            "email": {"validators": []},
        }

    def validate_email(self, value):
        email = value.strip().lower()
        if User.objects.filter(email__iexact=email).exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return email

    def validate(self, attrs):
        password = attrs.pop("password1")
        if password != attrs.pop("password2"):
            raise serializers.ValidationError({"password2": "Passwords do not match."})
        validate_password(password, user=User(email=attrs["email"], name=attrs.get("name", "")))
        attrs["password"] = password
        return attrs

    def create(self, validated_data):
        return User.objects.create_user(**validated_data)
