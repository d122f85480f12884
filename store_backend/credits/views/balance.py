# credits/views/balance.py

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.conf import store_credit_setting
from credits.serializers import CreditBalanceSerializer, CreditTransactionSerializer
from credits.services.ledger_service import (
    DEFAULT_HISTORY_LIMIT,
    account_summary,
    list_transactions,
)

MAX_HISTORY_LIMIT = 200


def _history_limit(request) -> int:
    try:
        limit = int(request.query_params.get("limit", DEFAULT_HISTORY_LIMIT))
    except (TypeError, ValueError):
        limit = DEFAULT_HISTORY_LIMIT
    return max(1, min(limit, MAX_HISTORY_LIMIT))


class CreditBalanceView(APIView):
    permission_classes = [IsAuthenticated]
    serializer_class = CreditBalanceSerializer

    @extend_schema(
        responses={200: CreditBalanceSerializer},
        description="Current store credit balance of the authenticated user (minor units)",
    )
    def get(self, request):
        data = account_summary(request.user)
        data["currency"] = store_credit_setting("CURRENCY")
        return Response(data)


class CreditTransactionListView(APIView):
    permission_classes = [IsAuthenticated]
    serializer_class = CreditTransactionSerializer

    @extend_schema(
        parameters=[OpenApiParameter("limit", int, required=False)],
        responses={200: CreditTransactionSerializer(many=True)},
        description="Ledger history of the authenticated user, newest first",
    )
    def get(self, request):
        rows = list_transactions(request.user, limit=_history_limit(request))
        return Response(CreditTransactionSerializer(rows, many=True).data)
