"""
End-to-end billing journeys over HTTP.

Each test drives the public API the way the dashboard and Stripe do:
intent from the owner, signed webhook from Stripe, then follow-up calls.
"""

import hashlib
import hmac
import json
import time
import uuid

import pytest
from django.core import mail

from notifications.models import Notification
from payments.models import BillingHistory, Subscription, SubscriptionPayment
from payments.state_machines import BillingHistoryKind, SubscriptionPaymentState, SubscriptionState

BASE = "/api/v1/payments"
WEBHOOK_SECRET = "whsec_test_factory"


def send_stripe_event(client, event_type: str, data_object: dict):
    payload = {
        "id": f"evt_{uuid.uuid4().hex[:16]}",
        "object": "event",
        "type": event_type,
        "data": {"object": data_object},
    }
    body = json.dumps(payload)
    timestamp = int(time.time())
    signature = hmac.new(
        WEBHOOK_SECRET.encode(), f"{timestamp}.{body}".encode(), hashlib.sha256
    ).hexdigest()
    response = client.post(
        f"{BASE}/webhooks/stripe/",
        data=body,
        content_type="application/json",
        HTTP_STRIPE_SIGNATURE=f"t={timestamp},v1={signature}",
    )
    assert response.status_code == 200
    return payload


def succeed(client, payment_id: str) -> SubscriptionPayment:
    payment = SubscriptionPayment.objects.get(pk=payment_id)
    send_stripe_event(
        client,
        "payment_intent.succeeded",
        {"id": payment.payment_intent_id, "object": "payment_intent", "status": "succeeded"},
    )
    return SubscriptionPayment.objects.get(pk=payment_id)


@pytest.mark.e2e
class TestSubscriptionJourney:
    def test_subscribe_upgrade_and_refund(self, client, owner_client, owner, basic_plan, pro_plan, stripe_calls):
        # Subscribe
        response = owner_client.post(
            f"{BASE}/subscription-payments/intent/",
            {"planId": str(basic_plan.id)},
            format="json",
        )
        assert response.status_code == 201
        first_payment = succeed(client, response.json()["data"]["paymentId"])
        assert first_payment.status == SubscriptionPaymentState.PAID

        subscription = owner_client.get(f"{BASE}/subscription/").json()["data"]
        assert subscription["plan"]["name"] == "Basic"

        # Upgrade in place
        response = owner_client.post(
            f"{BASE}/subscription-payments/upgrade-intent/",
            {"planId": str(pro_plan.id), "billingCycle": "yearly"},
            format="json",
        )
        assert response.status_code == 201
        upgrade_payment = succeed(client, response.json()["data"]["paymentId"])

        upgraded = Subscription.objects.get(owner=owner)
        assert str(upgraded.id) == subscription["id"]
        assert upgraded.plan == pro_plan
        assert upgraded.payment_id == upgrade_payment.id
        assert list(
            BillingHistory.objects.filter(subscription=upgraded).order_by("created_at").values_list("kind", flat=True)
        ) == [BillingHistoryKind.CREATION, BillingHistoryKind.UPGRADE]

        # Refund the upgrade, then Stripe reports the same refund
        response = owner_client.post(
            f"{BASE}/subscription-payments/{upgrade_payment.id}/refund/",
            {"refund_reason": "Changed my mind"},
            format="json",
        )
        assert response.status_code == 200
        send_stripe_event(
            client,
            "charge.refunded",
            {
                "id": "ch_journey",
                "object": "charge",
                "payment_intent": upgrade_payment.payment_intent_id,
                "amount_refunded": 79000,
                "refunds": {"data": [{"id": "re_fake_123", "amount": 79000}]},
            },
        )

        assert Subscription.objects.get(pk=upgraded.pk).status == SubscriptionState.CANCELLED
        assert BillingHistory.objects.filter(kind=BillingHistoryKind.REFUND).count() == 1
        assert owner_client.get(f"{BASE}/subscription/").status_code == 403

        history = owner_client.get(f"{BASE}/billing-history/").json()
        assert history["count"] == 3

        # Subscribing again is allowed once the old subscription is cancelled
        response = owner_client.post(
            f"{BASE}/subscription-payments/intent/",
            {"planId": str(basic_plan.id)},
            format="json",
        )
        assert response.status_code == 201

    def test_owner_is_notified_once_per_settlement(self, client, owner_client, owner, basic_plan, stripe_calls):
        response = owner_client.post(
            f"{BASE}/subscription-payments/intent/",
            {"planId": str(basic_plan.id)},
            format="json",
        )
        mail.outbox.clear()
        payment_id = response.json()["data"]["paymentId"]

        succeed(client, payment_id)
        succeed(client, payment_id)

        assert len(mail.outbox) == 1
        assert Notification.objects.filter(recipient=owner, title="Subscription Activated").count() == 1

    def test_abandoned_checkout_can_be_retried(self, client, owner_client, owner, basic_plan, stripe_calls):
        response = owner_client.post(
            f"{BASE}/subscription-payments/intent/",
            {"planId": str(basic_plan.id)},
            format="json",
        )
        payment_id = response.json()["data"]["paymentId"]

        response = owner_client.post(f"{BASE}/subscription-payments/{payment_id}/cancel/")
        assert response.status_code == 200

        response = owner_client.post(
            f"{BASE}/subscription-payments/intent/",
            {"planId": str(basic_plan.id)},
            format="json",
        )
        assert response.status_code == 201
        succeed(client, response.json()["data"]["paymentId"])

        assert Subscription.objects.filter(owner=owner, status=SubscriptionState.ACTIVE).count() == 1
        assert SubscriptionPayment.objects.get(pk=payment_id).status == SubscriptionPaymentState.CANCELLED
