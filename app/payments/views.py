"""
DRF views for the billing API.

This module provides API views for:
- Plan catalog listing
- Subscription payment intents (new, upgrade, downgrade)
- Subscription payment history, status, cancellation and refund
- Subscription cancellation (now or at period end)
- Billing history
- Appointment payment checkout and cancellation

Related files:
    - services/: Business logic (PaymentIntentService, RefundService, ...)
    - serializers.py: Request/response serialization
    - webhooks/views.py: Stripe webhook endpoint
    - urls.py: URL routing

Security:
    - All endpoints require JWT authentication except the plan catalog
      and the webhook
    - Subscription payments are scoped to the requesting owner
    - Billing history backfill is staff only

Error responses use ServiceResult.to_response():
    {"success": false, "message": "...", "error_code": "..."}
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.services import ServiceResult
from notifications.services import InvoiceEmailService
from payments.models import SubscriptionPayment
from payments.serializers import (
    AppointmentCheckoutSerializer,
    BillingHistorySerializer,
    ErrorResponseSerializer,
    IntentResponseSerializer,
    PlanSerializer,
    RefundRequestSerializer,
    SubscriptionCancelRequestSerializer,
    SubscriptionIntentRequestSerializer,
    SubscriptionPaymentSerializer,
    SubscriptionSerializer,
)
from payments.services import (
    AppointmentPaymentService,
    BillingLedgerService,
    PaymentIntentService,
    PlanCatalog,
    RefundService,
    SubscriptionService,
)


# =============================================================================
# Error Mapping
# =============================================================================

ERROR_STATUS = {
    "INVALID_ARGUMENT": status.HTTP_400_BAD_REQUEST,
    "INVALID_STATE": status.HTTP_400_BAD_REQUEST,
    "PAYMENT_EXISTS": status.HTTP_400_BAD_REQUEST,
    "REFUND_WINDOW_EXPIRED": status.HTTP_400_BAD_REQUEST,
    "PLAN_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "USER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PAYMENT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "APPOINTMENT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "DUPLICATE_SUBSCRIPTION": status.HTTP_403_FORBIDDEN,
    "NO_ACTIVE_SUBSCRIPTION": status.HTTP_403_FORBIDDEN,
    "NOT_AN_UPGRADE": status.HTTP_403_FORBIDDEN,
    "NOT_A_DOWNGRADE": status.HTTP_403_FORBIDDEN,
    "GATEWAY_NOT_CONFIGURED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "GATEWAY_ERROR": status.HTTP_502_BAD_GATEWAY,
    "PAYMENTS_DISABLED": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(result: ServiceResult) -> Response:
    """Render a failed ServiceResult with the status its error code maps to."""
    return Response(
        result.to_response(),
        status=ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST),
    )


def result_response(result: ServiceResult, success_status: int = status.HTTP_200_OK) -> Response:
    if not result.success:
        return error_response(result)
    return Response(result.to_response(), status=success_status)


def validation_error(serializer) -> Response:
    return Response(
        {
            "success": False,
            "message": "Invalid request",
            "error_code": "INVALID_ARGUMENT",
            "errors": serializer.errors,
        },
        status=status.HTTP_400_BAD_REQUEST,
    )


# =============================================================================
# Plans
# =============================================================================


@extend_schema(
    summary="List subscription plans",
    description="Returns all active plans ordered by monthly price.",
    tags=["Plans"],
)
class PlanListView(generics.ListAPIView):
    """
    GET /api/v1/payments/plans/

    Lists active plans to anyone, signed in or not. Unpaginated; the
    catalog is small.
    """

    serializer_class = PlanSerializer
    permission_classes = [AllowAny]
    # Public catalog; a stale token must not turn into a 401
    authentication_classes = []
    pagination_class = None

    def get_queryset(self):
        return PlanCatalog.list_active_plans()


# =============================================================================
# Subscription Payment Intents
# =============================================================================


class _IntentView(APIView):
    """Shared POST handling for the three intent endpoints."""

    permission_classes = [IsAuthenticated]
    service_method = ""

    def post(self, request):
        serializer = SubscriptionIntentRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer)

        service = PaymentIntentService()
        result = getattr(service, self.service_method)(
            plan_id=serializer.validated_data["planId"],
            owner_id=request.user.id,
            billing_cycle=serializer.validated_data["billingCycle"],
        )
        return result_response(result, success_status=status.HTTP_201_CREATED)


@extend_schema(
    summary="Create subscription payment intent",
    description=(
        "Starts a new subscription purchase. Fails with DUPLICATE_SUBSCRIPTION "
        "if the owner already has an active subscription."
    ),
    request=SubscriptionIntentRequestSerializer,
    responses={
        201: IntentResponseSerializer,
        400: ErrorResponseSerializer,
        403: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
    },
    tags=["Subscription Payments"],
)
class SubscriptionIntentView(_IntentView):
    """POST /api/v1/payments/subscription-payments/intent/"""

    service_method = "create_subscription_intent"


@extend_schema(
    summary="Create upgrade payment intent",
    description="Starts a change to a plan priced above the active one at the requested cycle.",
    request=SubscriptionIntentRequestSerializer,
    responses={201: IntentResponseSerializer, 403: ErrorResponseSerializer},
    tags=["Subscription Payments"],
)
class UpgradeIntentView(_IntentView):
    """POST /api/v1/payments/subscription-payments/upgrade-intent/"""

    service_method = "create_upgrade_intent"


@extend_schema(
    summary="Create downgrade payment intent",
    description="Starts a change to a plan priced below the active one at the requested cycle.",
    request=SubscriptionIntentRequestSerializer,
    responses={201: IntentResponseSerializer, 403: ErrorResponseSerializer},
    tags=["Subscription Payments"],
)
class DowngradeIntentView(_IntentView):
    """POST /api/v1/payments/subscription-payments/downgrade-intent/"""

    service_method = "create_downgrade_intent"


# =============================================================================
# Subscription Payments
# =============================================================================


class OwnedSubscriptionPaymentMixin:
    def get_queryset(self):
        return (
            SubscriptionPayment.objects.filter(owner=self.request.user)
            .select_related("plan")
            .order_by("-created_at")
        )


@extend_schema(
    summary="List my subscription payments",
    tags=["Subscription Payments"],
)
class SubscriptionPaymentListView(OwnedSubscriptionPaymentMixin, generics.ListAPIView):
    """GET /api/v1/payments/subscription-payments/"""

    serializer_class = SubscriptionPaymentSerializer
    permission_classes = [IsAuthenticated]


@extend_schema(
    summary="Get a subscription payment",
    tags=["Subscription Payments"],
)
class SubscriptionPaymentDetailView(OwnedSubscriptionPaymentMixin, generics.RetrieveAPIView):
    """
    GET /api/v1/payments/subscription-payments/{id}/

    Other owners' payments return 404.
    """

    serializer_class = SubscriptionPaymentSerializer
    permission_classes = [IsAuthenticated]
    lookup_url_kwarg = "payment_id"


@extend_schema(
    summary="Poll subscription payment status",
    description=(
        "Returns the payment and, once it is paid, the subscription it created "
        "or changed. Clients poll this after confirming the intent."
    ),
    tags=["Subscription Payments"],
)
class SubscriptionPaymentStatusView(OwnedSubscriptionPaymentMixin, APIView):
    """GET /api/v1/payments/subscription-payments/{id}/status/"""

    permission_classes = [IsAuthenticated]

    def get(self, request, payment_id):
        payment = self.get_queryset().filter(id=payment_id).first()
        if payment is None:
            return error_response(
                ServiceResult.failure("Payment not found", error_code="PAYMENT_NOT_FOUND")
            )

        subscription = None
        if payment.is_paid:
            subscription = SubscriptionService.subscription_for_payment(payment)

        return Response(
            {
                "success": True,
                "data": {
                    "payment": SubscriptionPaymentSerializer(payment).data,
                    "subscription": (
                        SubscriptionSerializer(subscription).data if subscription else None
                    ),
                },
            }
        )


@extend_schema(
    summary="Cancel a pending subscription payment",
    request=None,
    responses={200: OpenApiResponse(description="Payment cancelled"), 400: ErrorResponseSerializer},
    tags=["Subscription Payments"],
)
class SubscriptionPaymentCancelView(APIView):
    """POST /api/v1/payments/subscription-payments/{id}/cancel/"""

    permission_classes = [IsAuthenticated]

    def post(self, request, payment_id):
        result = RefundService().cancel_pending_payment(
            payment_id=payment_id,
            owner_id=request.user.id,
        )
        return result_response(result)


@extend_schema(
    summary="Refund a subscription payment",
    description=(
        "Refunds a paid subscription payment within the refund window and "
        "cancels the subscription it created. Outside the window the response "
        "is REFUND_WINDOW_EXPIRED with daysElapsed and refundWindowDays."
    ),
    request=RefundRequestSerializer,
    responses={200: OpenApiResponse(description="Refund issued"), 400: ErrorResponseSerializer},
    tags=["Subscription Payments"],
)
class SubscriptionPaymentRefundView(APIView):
    """POST /api/v1/payments/subscription-payments/{id}/refund/"""

    permission_classes = [IsAuthenticated]

    def post(self, request, payment_id):
        serializer = RefundRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer)

        result = RefundService().refund_subscription_payment(
            payment_id=payment_id,
            owner_id=request.user.id,
            reason=serializer.validated_data.get("refund_reason", "").strip(),
        )
        return result_response(result)


@extend_schema(
    summary="Resend the invoice email",
    request=None,
    tags=["Subscription Payments"],
)
class SubscriptionPaymentSendInvoiceView(OwnedSubscriptionPaymentMixin, APIView):
    """POST /api/v1/payments/subscription-payments/{id}/send-invoice/"""

    permission_classes = [IsAuthenticated]

    def post(self, request, payment_id):
        payment = self.get_queryset().select_related("owner").filter(id=payment_id).first()
        if payment is None:
            return error_response(
                ServiceResult.failure("Payment not found", error_code="PAYMENT_NOT_FOUND")
            )

        queued = InvoiceEmailService.send_invoice_email(
            payment,
            billing_history=BillingLedgerService.history_for_payment(payment),
        )
        return Response({"success": True, "data": {"queued": queued}})


@extend_schema(
    summary="Backfill billing history",
    description="Creates missing settlement ledger rows for every paid payment. Staff only.",
    request=None,
    tags=["Billing History"],
)
class BackfillBillingHistoryView(APIView):
    """POST /api/v1/payments/subscription-payments/backfill-billing-history/"""

    permission_classes = [IsAdminUser]

    def post(self, request):
        summary = BillingLedgerService.ensure_history_for_all_payments()
        return Response({"success": True, "data": summary})


# =============================================================================
# Subscription & Billing History
# =============================================================================


@extend_schema(
    summary="Get my active subscription",
    responses={200: SubscriptionSerializer, 403: ErrorResponseSerializer},
    tags=["Subscriptions"],
)
class CurrentSubscriptionView(APIView):
    """GET /api/v1/payments/subscription/"""

    permission_classes = [IsAuthenticated]

    def get(self, request):
        subscription = SubscriptionService.get_active_subscription(request.user)
        if subscription is None:
            return error_response(
                ServiceResult.failure(
                    "No active subscription",
                    error_code="NO_ACTIVE_SUBSCRIPTION",
                )
            )
        return Response({"success": True, "data": SubscriptionSerializer(subscription).data})


@extend_schema(
    summary="Cancel my subscription",
    description=(
        "Schedules cancellation at the next billing date, or cancels now "
        "with immediate=true. No refund is issued; use the payment refund "
        "endpoint inside the refund window for that."
    ),
    request=SubscriptionCancelRequestSerializer,
    responses={
        200: OpenApiResponse(description="Cancellation applied"),
        400: ErrorResponseSerializer,
        403: ErrorResponseSerializer,
    },
    tags=["Subscriptions"],
)
class SubscriptionCancelView(APIView):
    """POST /api/v1/payments/subscription/cancel/"""

    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = SubscriptionCancelRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer)

        result = RefundService().cancel_subscription(
            owner_id=request.user.id,
            reason=serializer.validated_data["reason"].strip(),
            immediate=serializer.validated_data["immediate"],
        )
        return result_response(result)


@extend_schema(
    summary="List my billing history",
    tags=["Billing History"],
)
class BillingHistoryListView(generics.ListAPIView):
    """GET /api/v1/payments/billing-history/"""

    serializer_class = BillingHistorySerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return BillingLedgerService.history_for_owner(self.request.user)


# =============================================================================
# Appointment Payments
# =============================================================================


@extend_schema(
    summary="Check out an appointment",
    request=AppointmentCheckoutSerializer,
    responses={201: OpenApiResponse(description="Payment intent created"), 400: ErrorResponseSerializer},
    tags=["Appointment Payments"],
)
class AppointmentCheckoutView(APIView):
    """POST /api/v1/payments/appointment-payments/checkout/"""

    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = AppointmentCheckoutSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer)

        result = AppointmentPaymentService().checkout(
            appointment_id=serializer.validated_data["appointment_id"],
            user_id=request.user.id,
            method=serializer.validated_data["method"],
        )
        return result_response(result, success_status=status.HTTP_201_CREATED)


@extend_schema(
    summary="Cancel a pending appointment payment",
    request=None,
    tags=["Appointment Payments"],
)
class AppointmentPaymentCancelView(APIView):
    """POST /api/v1/payments/appointment-payments/{id}/cancel/"""

    permission_classes = [IsAuthenticated]

    def post(self, request, payment_id):
        result = AppointmentPaymentService().cancel_payment(
            payment_id=payment_id,
            user_id=request.user.id,
        )
        return result_response(result)
