"""
Abstract timestamped model shared by the billing apps.

    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class Subscription(UUIDPrimaryKeyMixin, BaseModel):
        ...
"""

from __future__ import annotations

from django.db import models


class BaseModel(models.Model):
    """created_at / updated_at, newest first by default."""

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self._meta.verbose_name} {self.pk}"

    def touch(self, *fields: str) -> None:
        """Save only the given fields, bumping updated_at with them."""
        self.save(update_fields=[*fields, "updated_at"])
