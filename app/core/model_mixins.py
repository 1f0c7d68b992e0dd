"""
Primary-key mixin for billing rows.

Payment, subscription and ledger ids are written into Stripe metadata and
come back on webhooks, so they are random UUIDs generated before insert
rather than database sequences.
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Usage:
        class Plan(UUIDPrimaryKeyMixin, BaseModel):
            ...

    List the mixin before BaseModel.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Meta:
        abstract = True

    @property
    def short_ref(self) -> str:
        """First 8 hex digits of the id, upper-cased; used in provisional invoice numbers."""
        return self.id.hex[:8].upper()
