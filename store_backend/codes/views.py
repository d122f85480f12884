# codes/views.py

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from codes.serializers import (
    CodeAvailabilitySerializer,
    CodeRegistryEntrySerializer,
    CodeReserveSerializer,
)
from codes.services.code_registry import (
    block,
    is_available,
    normalize_code,
    registry_stats,
    reserve,
)
from core.api import result_error_response
from permissions.roles import CAP_CODES_RESERVE, HasCapability


class CodeReserveView(APIView):
    """
    Reserve (or block) a code so the generator never hands it out.
    """

    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_CODES_RESERVE
    serializer_class = CodeReserveSerializer

    @extend_schema(
        request=CodeReserveSerializer,
        responses={201: CodeRegistryEntrySerializer},
        description="Reserve or block a code in the permanent registry",
    )
    def post(self, request):
        serializer = CodeReserveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        action = block if data["block"] else reserve
        result = action(data["code"], namespace=data["namespace"])

        if not result.ok:
            return result_error_response(result)

        return Response(
            CodeRegistryEntrySerializer(result.entry).data,
            status=status.HTTP_201_CREATED,
        )


class CodeAvailabilityView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_CODES_RESERVE

    @extend_schema(
        responses={200: CodeAvailabilitySerializer},
        description="Check whether a code can still be issued",
    )
    def get(self, request, code: str):
        code = normalize_code(code)
        return Response({"code": code, "available": is_available(code)})


class CodeRegistryStatsView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_CODES_RESERVE

    @extend_schema(responses={200: dict}, description="Registry counts by reason and namespace")
    def get(self, request):
        return Response(registry_stats())
