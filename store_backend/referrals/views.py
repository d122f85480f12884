# referrals/views.py

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle
from rest_framework.views import APIView

from core.api import client_ip, domain_error_response, result_error_response
from core.exceptions import StoreCreditError, ValidationError
from core.money import minor_units
from permissions.roles import (
    CAP_REFERRALS_REVOKE,
    CAP_REFERRALS_VIEW_ANY,
    HasCapability,
)
from referrals.serializers import (
    ReferralEligibilitySerializer,
    ReferralHistorySerializer,
    ReferralRevokeSerializer,
    ReferralSignupSerializer,
    ReferralStatsSerializer,
)
from referrals.services.referral_service import (
    bonus_eligibility,
    referral_history,
    referral_stats,
    revoke,
)
from referrals.services.signup_service import handle_signup

MAX_HISTORY = 100


class ReferralSignupThrottle(UserRateThrottle):
    scope = "referral_signup"


class MyReferralView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: ReferralStatsSerializer}, description="Own referral code and stats")
    def get(self, request):
        return Response(referral_stats(request.user))


class ReferralHistoryView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: ReferralHistorySerializer(many=True)}, description="People you referred")
    def get(self, request):
        qs = referral_history(request.user)[:MAX_HISTORY]
        return Response(ReferralHistorySerializer(qs, many=True).data)


class ReferralEligibilityView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        parameters=[OpenApiParameter("subtotal", int, required=True)],
        responses={200: ReferralEligibilitySerializer},
        description="How much more the cart needs for the referrer to earn the reward",
    )
    def get(self, request):
        try:
            subtotal = minor_units(request.query_params.get("subtotal"), field="subtotal")
        except ValidationError as exc:
            return domain_error_response(exc)
        return Response(bonus_eligibility(request.user, subtotal))


class ReferralSignupView(APIView):
    """
    Post-registration hook for accounts created outside /auth/register/.
    Safe to call more than once.
    """

    permission_classes = [IsAuthenticated]
    throttle_classes = [ReferralSignupThrottle]
    serializer_class = ReferralSignupSerializer

    @extend_schema(request=ReferralSignupSerializer, responses={200: dict})
    def post(self, request):
        serializer = ReferralSignupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        signup = handle_signup(
            user=request.user,
            referral_code=serializer.validated_data["referral_code"],
            ip_address=client_ip(request),
        )
        return Response(
            {
                "referral_code": signup.referral_code.code,
                "first_order_code": signup.first_order_promotion.code,
                "first_order_discount_percent": signup.first_order_promotion.discount_value,
                "referral_status": str(signup.outcome),
            }
        )


# ======================================================
# SUPPORT / ADMIN
# ======================================================


class UserReferralView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_REFERRALS_VIEW_ANY

    @extend_schema(responses={200: dict}, description="Referral stats and history of any user")
    def get(self, request, user_id):
        user = get_object_or_404(get_user_model(), pk=user_id)
        history = referral_history(user)[:MAX_HISTORY]
        return Response(
            {
                "stats": referral_stats(user),
                "history": ReferralHistorySerializer(history, many=True).data,
            }
        )


class ReferralRevokeView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_REFERRALS_REVOKE
    serializer_class = ReferralRevokeSerializer

    @extend_schema(request=ReferralRevokeSerializer, responses={200: dict})
    def post(self, request):
        serializer = ReferralRevokeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = revoke(
                order_id=serializer.validated_data["order_id"],
                reason=serializer.validated_data["reason"] or "manual",
            )
        except StoreCreditError as exc:
            return domain_error_response(exc)

        if not result.ok:
            return result_error_response(result)

        return Response(
            {
                "relationship_id": result.relationship.pk,
                "deducted": result.deducted,
                "shortfall": result.shortfall,
            }
        )
