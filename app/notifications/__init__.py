"""
Notifications app for billing emails and in-app notifications.

This app provides:
- Notification model for storing in-app user notifications
- InvoiceEmailService for invoice and refund confirmation emails,
  sent by the Celery tasks in notifications.tasks
- PushNotificationService for writing in-app notifications

Both services are best-effort: failures are logged and reported as a
return value, never raised into the billing transaction.

Usage:
    from notifications.services import InvoiceEmailService

    queued = InvoiceEmailService.send_invoice_email(payment, billing_history=entry)
"""
