"""
State machine enums for billing models.

This module defines the state enums used by payment models with django-fsm.
"""

from payments.state_machines.states import (
    BillingCycle,
    BillingHistoryKind,
    BillingHistoryStatus,
    PaymentMethod,
    PaymentState,
    PlanStatus,
    SubscriptionPaymentState,
    SubscriptionState,
    UpgradeType,
    WebhookEventStatus,
)

__all__ = [
    "BillingCycle",
    "BillingHistoryKind",
    "BillingHistoryStatus",
    "PaymentMethod",
    "PaymentState",
    "PlanStatus",
    "SubscriptionPaymentState",
    "SubscriptionState",
    "UpgradeType",
    "WebhookEventStatus",
]
