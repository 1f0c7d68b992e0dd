"""
OpenAPI schema customizations for drf-spectacular.

This module provides hooks to customize the generated OpenAPI schema,
including tag ordering and descriptions for better documentation
organization in ReDoc/Swagger UI.

Tags are set in views via @extend_schema(tags=[...]); this hook only
assigns the untagged simplejwt endpoints and describes each group.
"""

# Ordered tag groups shown in ReDoc
TAG_DESCRIPTIONS = [
    (
        "Auth",
        "Registration, JWT login and refresh, and the current user.",
    ),
    (
        "Plans",
        "Subscription plan catalog with monthly and yearly prices and feature limits.",
    ),
    (
        "Subscription Payments",
        "PaymentIntent creation for new subscriptions, upgrades and downgrades, "
        "plus status polling, cancellation, refunds and invoice emails.",
    ),
    (
        "Subscriptions",
        "The owner's active subscription, usage against plan limits, and cancellation.",
    ),
    (
        "Billing History",
        "Append-only billing ledger with invoice numbers.",
    ),
    (
        "Appointment Payments",
        "One-off card payments for salon appointments.",
    ),
    (
        "Notifications",
        "In-app notifications written when payments settle, change plan or are refunded.",
    ),
]


def order_billing_tags(result, generator, request, public):
    """
    Postprocessing hook to group and order API endpoints.

    Endpoints under /auth/ that carry no explicit tag are grouped under
    "Auth". Tag descriptions are emitted in TAG_DESCRIPTIONS order.
    """
    paths = result.get("paths", {})

    for path, methods in paths.items():
        for method, operation in methods.items():
            if not isinstance(operation, dict):
                continue

            operation_id = operation.get("operationId", "")
            if operation_id.startswith("auth_") and operation.get("tags") in (None, ["auth"]):
                operation["tags"] = ["Auth"]

    result["tags"] = [
        {"name": name, "description": description}
        for name, description in TAG_DESCRIPTIONS
    ]

    return result
