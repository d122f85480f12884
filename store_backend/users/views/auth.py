# users/views/auth.py

import logging

from django.contrib.auth import authenticate
from django.db import transaction
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from core.api import client_ip, error_response
from referrals.services.signup_service import handle_signup
from users.models import User
from users.serializers import (
    LoginResponseSerializer,
    LoginSerializer,
    RegisterResponseSerializer,
    RegisterSerializer,
)

logger = logging.getLogger(__name__)


class SignupThrottle(AnonRateThrottle):
    scope = "referral_signup"


class RegisterView(APIView):
    """
    Create an account, then run the signup hook:
    referral code + first-order promotion + (optional) pending referral.
    """

    permission_classes = [AllowAny]
    throttle_classes = [SignupThrottle]
    serializer_class = RegisterSerializer

    @extend_schema(
        request=RegisterSerializer,
        responses={201: RegisterResponseSerializer},
        description="Register a new customer account (optionally with a referral code)",
    )
    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        with transaction.atomic():
            user = User.objects.create_user(
                email=data["email"],
                password=data["password"],
                first_name=data["first_name"],
                last_name=data["last_name"],
            )
            signup = handle_signup(
                user=user,
                referral_code=data["referral_code"],
                ip_address=client_ip(request),
            )

        return Response(
            {
                "user_id": user.id,
                "email": user.email,
                "referral_code": signup.referral_code.code,
                "first_order_code": signup.first_order_promotion.code,
                "first_order_discount_percent": signup.first_order_promotion.discount_value,
                "referral_status": str(signup.outcome),
            },
            status=status.HTTP_201_CREATED,
        )


class LoginView(APIView):
    permission_classes = [AllowAny]
    serializer_class = LoginSerializer

    @extend_schema(
        request=LoginSerializer,
        responses={200: LoginResponseSerializer},
        description="Authenticate with email and password, returns a JWT pair",
    )
    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = authenticate(
            request=request,
            email=serializer.validated_data["email"],
            password=serializer.validated_data["password"],
        )

        if not user:
            return error_response(
                code="INVALID_CREDENTIALS",
                message="Invalid credentials",
                http_status=status.HTTP_401_UNAUTHORIZED,
            )

        refresh = RefreshToken.for_user(user)
        return Response(
            {
                "user_id": user.id,
                "email": user.email,
                "role": user.role,
                "access": str(refresh.access_token),
                "refresh": str(refresh),
            }
        )
