"""
Appointment payment checkout and cancellation.

One-off card payments for a single appointment. Settlement is driven by
the same Stripe webhooks as subscriptions; the intent metadata carries
appointment_id and payment_id so the reconciler can find the local row.

Usage:
    from payments.services import AppointmentPaymentService

    result = AppointmentPaymentService().checkout(
        appointment_id=appointment.id,
        user_id=request.user.id,
        method=PaymentMethod.VISA,
    )
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction

from core.services import BaseService, ServiceResult

from payments.adapters import (
    CreateIntentParams,
    IdempotencyKeyGenerator,
    StripeGateway,
    to_minor_units,
)
from payments.exceptions import (
    GatewayNotConfiguredError,
    PaymentsDisabledError,
    StripeError,
)
from payments.models import Payment
from payments.services.integration import GatewayFactory, build_gateway
from payments.state_machines import PaymentMethod, PaymentState
from salons.models import Appointment, AppointmentStatus


class AppointmentPaymentService(BaseService):
    """Checkout and owner-side cancel for appointment payments."""

    def __init__(self, gateway_factory: GatewayFactory = StripeGateway):
        self.gateway_factory = gateway_factory

    def checkout(self, appointment_id, user_id, method=PaymentMethod.VISA) -> ServiceResult[dict]:
        """
        Create a pending Payment and its PaymentIntent for an appointment.

        Only one payment may ever exist per appointment.

        Returns:
            ServiceResult with {"paymentId", "clientSecret", "amount"}
        """
        logger = self.get_logger()

        validation = self.validate_required(appointment_id=appointment_id, user_id=user_id)
        if validation is not None:
            return validation
        if method not in PaymentMethod.values:
            return ServiceResult.failure("Unsupported payment method", error_code="INVALID_ARGUMENT")

        try:
            gateway = build_gateway(self.gateway_factory)
        except (PaymentsDisabledError, GatewayNotConfiguredError) as exc:
            return self.handle_exception(exc, "Gateway unavailable for checkout", log_level=logging.WARNING)

        appointment = self._get_owned_appointment(appointment_id, user_id)
        if appointment is None:
            return ServiceResult.failure(
                "Appointment not found or not yours",
                error_code="APPOINTMENT_NOT_FOUND",
            )
        if not appointment.is_payable:
            return ServiceResult.failure(
                "Cannot pay for a cancelled or completed appointment",
                error_code="INVALID_STATE",
            )
        if appointment.total_price <= 0:
            return ServiceResult.failure("Appointment has nothing to pay", error_code="INVALID_ARGUMENT")

        try:
            with transaction.atomic():
                payment = Payment.objects.create(
                    user_id=user_id,
                    appointment=appointment,
                    amount=appointment.total_price,
                    method=method,
                )
        except IntegrityError:
            return ServiceResult.failure(
                "Payment already exists for this appointment",
                error_code="PAYMENT_EXISTS",
            )

        try:
            intent = gateway.create_intent(
                CreateIntentParams(
                    amount_cents=to_minor_units(payment.amount),
                    currency=gateway.config.currency,
                    idempotency_key=IdempotencyKeyGenerator.generate("appointment_intent", payment.id),
                    metadata={
                        "appointment_id": str(appointment.id),
                        "payment_id": str(payment.id),
                        "user_id": str(user_id),
                    },
                    description=f"Appointment payment - {appointment.salon.name}",
                )
            )
        except StripeError as exc:
            payment.mark_failed(reason=exc.message)
            payment.save()
            logger.error(
                "Appointment PaymentIntent creation failed",
                extra={"payment_id": str(payment.id), "stripe_code": exc.stripe_code},
            )
            return ServiceResult.failure(
                f"Payment gateway error: {exc.message}",
                error_code="GATEWAY_ERROR",
                data={"retryable": exc.is_retryable},
            )

        payment.transaction_id = intent.id
        payment.client_secret = intent.client_secret or ""
        payment.touch("transaction_id", "client_secret")

        logger.info(
            "Appointment payment intent created",
            extra={
                "payment_id": str(payment.id),
                "appointment_id": str(appointment.id),
                "payment_intent_id": intent.id,
            },
        )
        return ServiceResult.success(
            {
                "paymentId": str(payment.id),
                "clientSecret": payment.client_secret,
                "amount": payment.amount,
            }
        )

    def cancel_payment(self, payment_id, user_id) -> ServiceResult[dict]:
        """
        Cancel a pending appointment payment.

        The remote intent cancel is best-effort. The appointment is cancelled
        with the payment, the same outcome as a payment_intent.canceled
        webhook, so the slot is freed whichever arrives first.
        """
        validation = self.validate_required(payment_id=payment_id, user_id=user_id)
        if validation is not None:
            return validation

        try:
            payment = Payment.objects.filter(id=payment_id, user_id=user_id).first()
        except (DjangoValidationError, TypeError, ValueError):
            payment = None
        if payment is None:
            return ServiceResult.failure("Payment not found", error_code="PAYMENT_NOT_FOUND")
        if payment.status != PaymentState.PENDING:
            return ServiceResult.failure(
                f"Can only cancel pending payments (current status: {payment.status})",
                error_code="INVALID_STATE",
            )

        if payment.transaction_id:
            try:
                gateway = build_gateway(self.gateway_factory, require_enabled=False)
                gateway.cancel_intent(payment.transaction_id)
            except (StripeError, GatewayNotConfiguredError) as exc:
                self.get_logger().warning(
                    "Remote intent cancel failed; cancelling locally",
                    extra={"payment_id": str(payment.id), "error_code": exc.error_code},
                )

        with transaction.atomic():
            payment = Payment.objects.select_for_update().get(pk=payment.pk)
            if payment.status != PaymentState.PENDING:
                return ServiceResult.failure(
                    f"Can only cancel pending payments (current status: {payment.status})",
                    error_code="INVALID_STATE",
                )
            payment.cancel()
            payment.save()
            appointment_released = self.release_appointment(payment, reason="payment_canceled")

        self.get_logger().info(
            "Appointment payment cancelled",
            extra={"payment_id": str(payment.id), "appointment_released": appointment_released},
        )
        return ServiceResult.success({"paymentId": str(payment.id), "status": payment.status})

    @classmethod
    def release_appointment(cls, payment: Payment, reason: str) -> bool:
        """
        Cancel the appointment behind a payment that will not settle.

        Run inside the caller's transaction. Completed or already cancelled
        appointments are left alone.

        Returns:
            True if the appointment was cancelled by this call
        """
        appointment = Appointment.objects.select_for_update().get(pk=payment.appointment_id)
        if appointment.status not in (AppointmentStatus.PENDING, AppointmentStatus.BOOKED):
            return False

        appointment.cancel(reason=reason)
        appointment.save()
        cls.get_logger().info(
            "Appointment released",
            extra={"appointment_id": str(appointment.id), "payment_id": str(payment.id), "reason": reason},
        )
        return True

    @staticmethod
    def _get_owned_appointment(appointment_id, user_id) -> Appointment | None:
        try:
            return (
                Appointment.objects.select_related("salon")
                .filter(id=appointment_id, user_id=user_id)
                .first()
            )
        except (DjangoValidationError, TypeError, ValueError):
            return None
