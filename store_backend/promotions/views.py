# promotions/views.py

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.api import domain_error_response
from core.exceptions import NotFoundError, StoreCreditError
from permissions.roles import CAP_PROMOTIONS_MANAGE, HasCapability
from promotions.models import PromotionCode
from promotions.serializers import PromotionCodeSerializer, PromotionPreviewSerializer
from promotions.services.promotion_catalog import (
    create_promotion,
    deactivate_promotion,
    lookup,
    preview,
)


class PromotionPreviewView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        responses={200: PromotionPreviewSerializer},
        description="Preview a promotion code",
    )
    def get(self, request, code: str):
        promo = lookup(code)
        # codes bound to another customer are not disclosed
        if promo is None or (promo.user_id is not None and promo.user_id != request.user.pk):
            return domain_error_response(NotFoundError(f"promotion {code} not found"))
        return Response(preview(promo, user=request.user))


class PromotionListCreateView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_PROMOTIONS_MANAGE
    serializer_class = PromotionCodeSerializer

    @extend_schema(responses={200: PromotionCodeSerializer(many=True)}, description="Campaign codes")
    def get(self, request):
        qs = PromotionCode.objects.filter(is_first_order_code=False)
        return Response(PromotionCodeSerializer(qs[:200], many=True).data)

    @extend_schema(
        request=PromotionCodeSerializer,
        responses={201: PromotionCodeSerializer},
        description="Create a campaign promotion code",
    )
    def post(self, request):
        serializer = PromotionCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            promo = create_promotion(**serializer.validated_data)
        except StoreCreditError as exc:
            return domain_error_response(exc)

        return Response(PromotionCodeSerializer(promo).data, status=status.HTTP_201_CREATED)


class PromotionDeactivateView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_PROMOTIONS_MANAGE

    @extend_schema(request=None, responses={200: PromotionCodeSerializer})
    def post(self, request, code: str):
        try:
            promo = deactivate_promotion(code=code)
        except StoreCreditError as exc:
            return domain_error_response(exc)
        return Response(PromotionCodeSerializer(promo).data)
