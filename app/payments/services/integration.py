"""
Gateway construction from the current integration settings.

Settings are read fresh on every call so that key rotation in the admin
takes effect immediately, and the gateway is built through an injectable
factory so tests can substitute a fake.

Usage:
    from payments.services.integration import build_gateway

    gateway = build_gateway(StripeGateway)                 # raises if disabled/unconfigured
    gateway = build_gateway(StripeGateway, require_enabled=False)
"""

from __future__ import annotations

from collections.abc import Callable

from payments.adapters import GatewayConfig, StripeGateway
from payments.exceptions import GatewayNotConfiguredError, PaymentsDisabledError
from payments.models import IntegrationSettings

GatewayFactory = Callable[[GatewayConfig], StripeGateway]


def current_gateway_config() -> GatewayConfig:
    return GatewayConfig.from_integration_settings(IntegrationSettings.current())


def build_gateway(
    gateway_factory: GatewayFactory = StripeGateway,
    require_enabled: bool = True,
) -> StripeGateway:
    """
    Build a gateway for one operation.

    Args:
        gateway_factory: Callable turning a GatewayConfig into a gateway
        require_enabled: Whether a disabled stripe_enabled flag is an error.
            Best-effort cleanup calls (cancel on the refund path) pass False.

    Raises:
        PaymentsDisabledError: Stripe switched off in IntegrationSettings
        GatewayNotConfiguredError: No secret key configured
    """
    integration = IntegrationSettings.current()
    if require_enabled and not integration.stripe_enabled:
        raise PaymentsDisabledError("Stripe payments are currently disabled")

    config = GatewayConfig.from_integration_settings(integration)
    if not config.secret_key:
        raise GatewayNotConfiguredError("Stripe secret key is not configured")

    return gateway_factory(config)
