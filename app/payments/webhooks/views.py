"""
Webhook endpoint view for Stripe.

The view:
1. Verifies the webhook signature against the current signing secret
2. Creates/retrieves the WebhookEvent record (idempotent)
3. Processes the event synchronously through the handler registry
4. Acknowledges with {"received": true}

Verification fails closed: a missing secret, a missing header or a bad
signature returns 400 without touching the database. Once an event is
verified the response is always 200 so Stripe does not redeliver events
whose failure is recorded locally.

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from __future__ import annotations

import logging
import time

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import StripeGateway
from payments.exceptions import WebhookSignatureError
from payments.models import WebhookEvent
from payments.services.integration import current_gateway_config
from payments.state_machines import WebhookEventStatus
from payments.webhooks.handlers import process_webhook_event


logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive, verify and reconcile a Stripe webhook event.

    Idempotency:
    - WebhookEvent.stripe_event_id is unique
    - An already processed event returns 200 without reprocessing
    - Failed events are reprocessed when Stripe redelivers them

    Returns:
        JsonResponse with status:
        - 200: Event verified ({"received": true})
        - 400: Secret not configured, signature missing/invalid, or
               event without id/type

    Example Stripe-Signature header:
        t=1614556800,v1=xxx,v0=yyy
    """
    config = current_gateway_config()
    if not config.webhook_secret:
        logger.error("Webhook received but no signing secret is configured")
        return JsonResponse({"error": "Webhook secret not configured"}, status=400)

    signature = request.headers.get("Stripe-Signature", "")
    if not signature:
        logger.warning("Webhook received without Stripe-Signature header")
        return JsonResponse({"error": "Missing signature"}, status=400)

    try:
        event_data = StripeGateway(config).verify_webhook_signature(request.body, signature)
    except WebhookSignatureError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"error": e.message},
        )
        return JsonResponse({"error": "Invalid signature"}, status=400)

    stripe_event_id = event_data.get("id")
    event_type = event_data.get("type")

    if not stripe_event_id or not event_type:
        logger.warning("Webhook missing required fields")
        return JsonResponse({"error": "Invalid event"}, status=400)

    logger.info(
        f"Received Stripe webhook: {event_type}",
        extra={"stripe_event_id": stripe_event_id, "event_type": event_type},
    )

    webhook_event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id=stripe_event_id,
        defaults={
            "event_type": event_type,
            "payload": event_data,
            "status": WebhookEventStatus.PENDING,
        },
    )

    if not created and webhook_event.is_processed:
        logger.info(
            "Webhook already processed, returning success",
            extra={"stripe_event_id": stripe_event_id},
        )
        return JsonResponse({"received": True})

    start_time = time.time()
    result = process_webhook_event(webhook_event)
    logger.info(
        "Webhook processed",
        extra={
            "stripe_event_id": stripe_event_id,
            "webhook_status": webhook_event.status,
            "success": result.success,
            "duration_ms": (time.time() - start_time) * 1000,
        },
    )

    return JsonResponse({"received": True})
