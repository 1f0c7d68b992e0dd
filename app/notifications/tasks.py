"""
Celery tasks for billing email delivery.

Billing code never talks to the mail server inside a request or a webhook
transaction. InvoiceEmailService queues one of these tasks with row ids;
the worker reloads the rows, renders the templates and sends.

Tasks:
    send_invoice_email: Invoice for a subscription payment
    send_refund_confirmation: Refund confirmation for a refunded payment

Retries:
    Transport errors (SMTP and socket errors) are retried with backoff.
    Template errors are not; the failure is logged by the task_failure
    handler in config.celery.

Usage:
    from notifications.tasks import send_invoice_email

    send_invoice_email.delay(payment_id=str(payment.id))
"""

from __future__ import annotations

import logging
from smtplib import SMTPException

from celery import shared_task

from notifications.services import InvoiceEmailService

logger = logging.getLogger(__name__)

EMAIL_RETRY_EXCEPTIONS = (SMTPException, OSError)


def _load_payment(payment_id: str):
    from payments.models import SubscriptionPayment

    payment = SubscriptionPayment.objects.select_related("owner", "plan").filter(pk=payment_id).first()
    if payment is None:
        logger.warning("Payment for billing email not found", extra={"payment_id": payment_id})
    return payment


@shared_task(
    bind=True,
    autoretry_for=EMAIL_RETRY_EXCEPTIONS,
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def send_invoice_email(self, payment_id: str, billing_history_id: str | None = None) -> bool:
    """
    Send the invoice for a subscription payment.

    Args:
        payment_id: SubscriptionPayment id
        billing_history_id: Ledger row supplying the invoice number, if any

    Returns:
        True if the email was handed to the mail backend
    """
    from payments.models import BillingHistory
    from payments.services import SubscriptionService

    payment = _load_payment(payment_id)
    if payment is None:
        return False

    billing_history = None
    if billing_history_id:
        billing_history = BillingHistory.objects.filter(pk=billing_history_id).first()

    return InvoiceEmailService.deliver_invoice_email(
        payment,
        subscription=SubscriptionService.subscription_for_payment(payment),
        billing_history=billing_history,
    )


@shared_task(
    bind=True,
    autoretry_for=EMAIL_RETRY_EXCEPTIONS,
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def send_refund_confirmation(self, payment_id: str) -> bool:
    """Send the refund confirmation for a refunded subscription payment."""
    payment = _load_payment(payment_id)
    if payment is None:
        return False
    return InvoiceEmailService.deliver_refund_confirmation(payment)
