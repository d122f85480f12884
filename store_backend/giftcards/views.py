# giftcards/views.py

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle
from rest_framework.views import APIView

from codes.services.code_registry import registry_stats
from core.api import domain_error_response, result_error_response
from core.exceptions import NotFoundError, StoreCreditError
from giftcards.serializers import (
    GiftCardAdminSerializer,
    GiftCardIssueSerializer,
    GiftCardPreviewSerializer,
    GiftCardRedeemResponseSerializer,
    GiftCardRedeemSerializer,
    GiftCardValidateResponseSerializer,
    GiftCardValidateSerializer,
)
from giftcards.services.giftcard_service import (
    RecipientInfo,
    deactivate,
    get_by_token,
    issue,
    redeem,
    search_cards,
    validate_code,
    vault_stats,
)
from permissions.roles import (
    CAP_GIFTCARDS_ISSUE,
    CAP_GIFTCARDS_MANAGE,
    HasAnyCapability,
    HasCapability,
)

logger = logging.getLogger(__name__)

MAX_SEARCH_RESULTS = 100


class GiftCardRedeemThrottle(UserRateThrottle):
    scope = "giftcard_redeem"


# ======================================================
# CUSTOMER ENDPOINTS
# ======================================================


class GiftCardPreviewView(APIView):
    permission_classes = [IsAuthenticated]
    serializer_class = GiftCardPreviewSerializer

    @extend_schema(
        responses={200: GiftCardPreviewSerializer},
        description="Preview a gift card from its QR token before redeeming",
    )
    def get(self, request, qr_token):
        card = get_by_token(qr_token)
        if card is None:
            return domain_error_response(NotFoundError(f"gift card token {qr_token} not found"))
        return Response(GiftCardPreviewSerializer(card).data)


class GiftCardRedeemView(APIView):
    """
    Redeem a gift card (QR token) into the caller's store credit.
    """

    permission_classes = [IsAuthenticated]
    throttle_classes = [GiftCardRedeemThrottle]
    serializer_class = GiftCardRedeemSerializer

    @extend_schema(
        request=GiftCardRedeemSerializer,
        responses={200: GiftCardRedeemResponseSerializer},
        description="Redeem a gift card into store credit",
    )
    def post(self, request):
        serializer = GiftCardRedeemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = redeem(
                qr_token=serializer.validated_data["qr_token"],
                user=request.user,
            )
        except StoreCreditError as exc:
            return domain_error_response(exc)

        if not result.ok:
            return result_error_response(result)

        return Response(
            {
                "amount": result.amount,
                "balance": result.balance,
                "gift_card_id": result.gift_card.pk,
            }
        )


class GiftCardValidateView(APIView):
    permission_classes = [IsAuthenticated]
    serializer_class = GiftCardValidateSerializer

    @extend_schema(
        request=GiftCardValidateSerializer,
        responses={200: GiftCardValidateResponseSerializer},
        description="Check whether a gift card code can be applied at checkout",
    )
    def post(self, request):
        serializer = GiftCardValidateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        check = validate_code(serializer.validated_data["code"])
        return Response(
            {
                "valid": check.ok,
                "reason": None if check.ok else str(check.outcome),
                "available": check.available,
            }
        )


# ======================================================
# SUPPORT / ADMIN ENDPOINTS
# ======================================================


class GiftCardIssueView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_GIFTCARDS_ISSUE
    serializer_class = GiftCardIssueSerializer

    @extend_schema(
        request=GiftCardIssueSerializer,
        responses={201: GiftCardAdminSerializer},
        description="Issue a gift card (support tooling)",
    )
    def post(self, request):
        serializer = GiftCardIssueSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            card = issue(
                amount=data["amount"],
                code=(data.get("code") or "").strip() or None,
                validity_days=data.get("validity_days"),
                recipient=RecipientInfo(
                    name=data["recipient_name"],
                    email=data["recipient_email"],
                    sender_name=data["sender_name"],
                    message=data["message"],
                    template=data["template"],
                ),
            )
        except StoreCreditError as exc:
            return domain_error_response(exc)

        logger.info(
            "Gift card issued by staff",
            extra={"gift_card_id": str(card.pk), "actor_id": str(request.user.pk)},
        )
        return Response(GiftCardAdminSerializer(card).data, status=status.HTTP_201_CREATED)


class GiftCardSearchView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_GIFTCARDS_MANAGE

    @extend_schema(
        parameters=[
            OpenApiParameter("q", str, required=False),
            OpenApiParameter("status", str, required=False, enum=["active", "redeemed", "inactive", "expired"]),
        ],
        responses={200: GiftCardAdminSerializer(many=True)},
        description="Search gift cards by code, recipient or buyer email",
    )
    def get(self, request):
        cards = search_cards(
            query=request.query_params.get("q", ""),
            status=request.query_params.get("status", ""),
        )[:MAX_SEARCH_RESULTS]
        return Response(GiftCardAdminSerializer(cards, many=True).data)


class GiftCardDeactivateView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_GIFTCARDS_MANAGE

    @extend_schema(
        request=None,
        responses={200: GiftCardAdminSerializer},
        description="Deactivate a gift card. The code stays blocked forever.",
    )
    def post(self, request, pk):
        try:
            card = deactivate(gift_card_id=pk)
        except StoreCreditError as exc:
            return domain_error_response(exc)
        return Response(GiftCardAdminSerializer(card).data)


class GiftCardStatsView(APIView):
    permission_classes = [IsAuthenticated, HasAnyCapability]
    required_any_capabilities = {CAP_GIFTCARDS_ISSUE, CAP_GIFTCARDS_MANAGE}

    @extend_schema(responses={200: dict}, description="Gift card vault and code registry statistics")
    def get(self, request):
        return Response({"gift_cards": vault_stats(), "code_registry": registry_stats()})
