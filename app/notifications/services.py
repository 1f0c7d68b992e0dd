"""
Invoice email and in-app notification dispatch.

Both services are best-effort collaborators of the billing engine: every
public method reports success as a return value and never raises, so a
mail server outage cannot roll back or fail a financial state change.
Billing emails are queued to Celery (notifications.tasks) and sent by a
worker, so neither an API request nor a webhook waits on SMTP.

Related files:
    - tasks.py: Celery tasks that render and send billing emails
    - templates/notifications/email/: Invoice and refund email templates
    - models.py: Notification rows written by PushNotificationService

Configuration:
    - DEFAULT_FROM_EMAIL: Sender address
    - EMAIL_BACKEND / EMAIL_HOST / EMAIL_PORT: Django mail transport
    - IntegrationSettings.email_enabled: Operator switch for billing emails

Usage:
    from notifications.services import InvoiceEmailService, PushNotificationService

    queued = InvoiceEmailService.send_invoice_email(payment, billing_history=entry)

    count = PushNotificationService.send_to_users(
        [owner.id],
        title="Subscription Activated",
        body="Your Professional plan is now active.",
        data={"payment_id": str(payment.id)},
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils import timezone

from notifications.models import Notification, NotificationCategory

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


def _email_enabled() -> bool:
    from payments.models import IntegrationSettings

    return IntegrationSettings.current().email_enabled


class InvoiceEmailService:
    """
    Billing email sender.

    send_* queue a Celery task and return whether it was queued.
    deliver_* run inside that task: they render {template}.txt and
    {template}.html and send them as one multipart message, letting
    transport errors propagate so the task can retry.
    """

    INVOICE_TEMPLATE = "notifications/email/invoice"
    REFUND_TEMPLATE = "notifications/email/refund_confirmation"

    # =========================================================================
    # Queueing
    # =========================================================================

    @classmethod
    def send_invoice_email(cls, payment, billing_history=None) -> bool:
        """
        Queue the invoice for a subscription payment.

        Args:
            payment: SubscriptionPayment being invoiced
            billing_history: Ledger row supplying the invoice number, if any

        Returns:
            True if the email task was queued
        """
        from notifications import tasks

        return cls._enqueue(
            tasks.send_invoice_email,
            str(payment.id),
            str(billing_history.id) if billing_history is not None else None,
            log_extra={"payment_id": str(payment.id), "email": "invoice"},
        )

    @classmethod
    def send_refund_confirmation(cls, payment) -> bool:
        """
        Queue the refund confirmation for a refunded payment.

        Returns:
            True if the email task was queued
        """
        from notifications import tasks

        return cls._enqueue(
            tasks.send_refund_confirmation,
            str(payment.id),
            log_extra={"payment_id": str(payment.id), "email": "refund_confirmation"},
        )

    @staticmethod
    def _enqueue(task, *args, log_extra: dict[str, Any]) -> bool:
        try:
            task.delay(*args)
        except Exception:
            logger.exception("Failed to queue billing email", extra=log_extra)
            return False
        return True

    # =========================================================================
    # Delivery (runs in the Celery worker)
    # =========================================================================

    @classmethod
    def deliver_invoice_email(cls, payment, subscription=None, billing_history=None) -> bool:
        """
        Render and send an invoice.

        Returns:
            True if sent, False if skipped (no recipient, emails disabled)
        """
        owner = payment.owner
        plan = payment.plan
        invoice_number = cls.invoice_number(payment, billing_history)
        context = {
            "invoice_number": invoice_number,
            "owner_name": owner.billing_name,
            "plan_name": plan.name,
            "payment": payment,
            "subscription": subscription,
            "amount": payment.amount,
            "currency": (payment.currency or "usd").upper(),
            "billing_cycle": payment.billing_cycle,
            "status": payment.status,
            "payment_date": payment.payment_date or payment.created_at or timezone.now(),
            "next_billing_date": getattr(subscription, "next_billing_date", None),
        }
        return cls._send(
            owner.email,
            subject=f"Invoice {invoice_number} - {plan.name} Payment",
            template_name=cls.INVOICE_TEMPLATE,
            context=context,
            log_extra={"payment_id": str(payment.id), "invoice_number": invoice_number},
        )

    @classmethod
    def deliver_refund_confirmation(cls, payment) -> bool:
        """Render and send a refund confirmation; False if skipped."""
        owner = payment.owner
        plan = payment.plan
        context = {
            "owner_name": owner.billing_name,
            "plan_name": plan.name,
            "payment": payment,
            "refund_amount": payment.refund_amount if payment.refund_amount is not None else payment.amount,
            "currency": (payment.currency or "usd").upper(),
            "refund_reason": payment.refund_reason,
            "refunded_at": payment.refunded_at or timezone.now(),
        }
        return cls._send(
            owner.email,
            subject=f"Refund Confirmation - {plan.name}",
            template_name=cls.REFUND_TEMPLATE,
            context=context,
            log_extra={"payment_id": str(payment.id)},
        )

    @staticmethod
    def invoice_number(payment, billing_history=None) -> str:
        """Ledger invoice number, or INV-{first 8 of payment id} before settlement."""
        if billing_history is not None and billing_history.invoice_number:
            return billing_history.invoice_number
        return f"INV-{payment.short_ref}"

    @classmethod
    def _send(
        cls,
        recipient_email: str,
        subject: str,
        template_name: str,
        context: dict[str, Any],
        log_extra: dict[str, Any],
    ) -> bool:
        if not recipient_email:
            logger.warning("No recipient email; skipping", extra=log_extra)
            return False
        if not _email_enabled():
            logger.info("Billing emails disabled; skipping", extra=log_extra)
            return False

        text_content = render_to_string(f"{template_name}.txt", context)
        html_content = render_to_string(f"{template_name}.html", context)

        email = EmailMultiAlternatives(
            subject=subject,
            body=text_content,
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[recipient_email],
        )
        email.attach_alternative(html_content, "text/html")
        email.send(fail_silently=False)

        logger.info("Email sent", extra={**log_extra, "subject": subject})
        return True


class PushNotificationService:
    """
    In-app notification writer.

    Creates one Notification row per recipient. Device push delivery is
    handled outside this service.
    """

    @classmethod
    def send_to_users(
        cls,
        user_ids: Iterable,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
        category: str = NotificationCategory.BILLING,
    ) -> int:
        """
        Notify a set of users.

        Returns:
            Number of notifications created (0 on failure)
        """
        user_ids = [user_id for user_id in user_ids if user_id is not None]
        if not user_ids:
            return 0

        try:
            notifications = Notification.objects.bulk_create(
                Notification.fan_out(user_ids, title=title, body=body, data=data, category=category)
            )
        except Exception:
            logger.exception(
                "Failed to create notifications",
                extra={"notification_title": title, "recipient_count": len(user_ids)},
            )
            return 0

        logger.info(
            "Notifications created",
            extra={"notification_title": title, "recipient_count": len(notifications)},
        )
        return len(notifications)
