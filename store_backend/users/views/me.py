# users/views/me.py

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from permissions.roles import effective_capabilities_for
from users.serializers import UserSerializer
from users.services.account_deletion import anonymize_user


class MeView(APIView):
    permission_classes = [IsAuthenticated]
    serializer_class = UserSerializer

    @extend_schema(
        responses={200: UserSerializer},
        description="Get current authenticated user profile",
    )
    def get(self, request):
        data = dict(UserSerializer(request.user).data)
        data["capabilities"] = sorted(effective_capabilities_for(request.user))
        return Response(data)

    @extend_schema(
        responses={204: None},
        description="Delete (anonymize) the current account. Ledger history is kept.",
    )
    def delete(self, request):
        anonymize_user(user=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
