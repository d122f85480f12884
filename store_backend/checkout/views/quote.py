# checkout/views/quote.py

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle
from rest_framework.views import APIView

from checkout.serializers import QuoteRequestSerializer, QuoteResponseSerializer
from checkout.services.quote_service import build_quote
from core.api import domain_error_response
from core.exceptions import StoreCreditError


class CheckoutQuoteThrottle(UserRateThrottle):
    scope = "checkout_quote"


class CheckoutQuoteView(APIView):
    """
    Price a cart: promotion, gift card and store credit applied in order.
    The returned metadata is sealed and must be attached unchanged to the
    processor payment.
    """

    permission_classes = [IsAuthenticated]
    throttle_classes = [CheckoutQuoteThrottle]
    serializer_class = QuoteRequestSerializer

    @extend_schema(
        request=QuoteRequestSerializer,
        responses={200: QuoteResponseSerializer},
        description="Compose the final charge for a cart",
    )
    def post(self, request):
        serializer = QuoteRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            quote = build_quote(
                user=request.user,
                subtotal=data["subtotal"],
                promo_code=data["promo_code"],
                gift_card_code=data["gift_card_code"],
                requested_credit=data["requested_credit"],
                lines=data["lines"],
            )
        except StoreCreditError as exc:
            return domain_error_response(exc)

        b = quote.breakdown
        return Response(
            {
                "subtotal": b.subtotal,
                "discount": b.discount,
                "gift_amount": b.gift_amount,
                "shipping": b.shipping,
                "credit_for_goods": b.credit_for_goods,
                "credit_for_ship": b.credit_for_ship,
                "coupon_total": b.coupon_total,
                "final_charge": b.final_charge,
                "store_credit_balance": quote.store_credit_balance,
                "ignored": quote.ignored,
                "discount_instruction": b.discount_instruction(),
                "metadata": quote.metadata,
            }
        )
