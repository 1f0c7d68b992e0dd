"""
Authentication application.

Provides the email-based User model used for salon owners, customers and
staff operators. Billing code refers to users through AUTH_USER_MODEL.

Usage:
    from authentication.models import User
"""
