"""
Shared building blocks for the billing service.

- core.models.BaseModel: created_at / updated_at timestamps
- core.model_mixins.UUIDPrimaryKeyMixin: UUID primary keys for billing rows
- core.services: ServiceResult and BaseService, the service-layer contract
  every billing operation returns through
- core.exceptions.BaseApplicationError: root of the error-code hierarchy
- core.views.health_check: /health/ liveness check

Models are not re-exported here; importing them before the app registry is
ready raises AppRegistryNotReady.
"""

from .exceptions import BaseApplicationError
from .services import BaseService, ServiceResult

__all__ = [
    "BaseApplicationError",
    "BaseService",
    "ServiceResult",
]
