# credits/views/admin_tools.py

"""
SUPPORT / ADMIN LEDGER TOOLS

- Manual adjustments (capability: credits.adjust)
- Per-user history + replay audit for dispute resolution (credits.view_any)

Every adjustment goes through the LedgerStore like any other mutation, so it
is sequenced, idempotent and visible in the user's history.
"""

import logging

from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.api import error_response, result_error_response
from credits.models import CreditTransaction
from credits.serializers import (
    CreditAdjustmentSerializer,
    CreditTransactionSerializer,
    LedgerAuditSerializer,
)
from credits.services.ledger_service import adjust, audit_user
from permissions.roles import CAP_CREDITS_ADJUST, CAP_CREDITS_VIEW_ANY, HasCapability

logger = logging.getLogger(__name__)

User = get_user_model()


class CreditAdjustmentView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_CREDITS_ADJUST
    serializer_class = CreditAdjustmentSerializer

    @extend_schema(
        request=CreditAdjustmentSerializer,
        responses={201: CreditTransactionSerializer},
        description="Credit (positive) or debit (negative) a user's store credit",
    )
    def post(self, request):
        serializer = CreditAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        target = get_object_or_404(User, pk=data["user_id"])

        result = adjust(
            user=target,
            amount=data["amount"],
            reason=data["reason"],
            created_by=request.user,
            reference_id=(data.get("reference_id") or "").strip() or None,
        )
        if not result.ok:
            return result_error_response(result)

        logger.info(
            "Admin credit adjustment",
            extra={
                "user_id": str(target.pk),
                "amount": data["amount"],
                "actor_id": str(request.user.pk),
                "replayed": result.replayed,
            },
        )
        return Response(
            CreditTransactionSerializer(result.transaction).data,
            status=status.HTTP_200_OK if result.replayed else status.HTTP_201_CREATED,
        )


class UserTransactionsView(generics.ListAPIView):
    """
    Paginated ledger history of any user. Filter with ?kind=&reference_type=&reference_id=
    """

    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_CREDITS_VIEW_ANY
    serializer_class = CreditTransactionSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["kind", "reference_type", "reference_id"]

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return CreditTransaction.objects.none()
        target = get_object_or_404(User, pk=self.kwargs["user_id"])
        return CreditTransaction.objects.filter(user=target).order_by("-sequence")


class LedgerAuditView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_CREDITS_VIEW_ANY

    @extend_schema(
        responses={200: LedgerAuditSerializer},
        description="Replay a user's ledger and compare with the stored balance",
    )
    def get(self, request, user_id):
        target = get_object_or_404(User, pk=user_id)
        audit = audit_user(target)
        if audit is None:
            return error_response(
                code="NO_STORE_CREDIT",
                message="This user has no store credit account.",
                http_status=status.HTTP_404_NOT_FOUND,
            )
        return Response(audit.as_dict())
