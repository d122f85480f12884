# checkout/views/webhook.py

from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.parsers import JSONParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework.views import APIView

from checkout.services.confirmation_service import (
    complete_gift_card_purchase,
    confirm_payment,
    refund_payment,
)
from checkout.services.webhook_signature import verify_signature
from core.conf import payments_setting
from core.exceptions import ConcurrencyConflictError, StoreCreditError

logger = logging.getLogger(__name__)

EVENT_PAYMENT_SUCCEEDED = "payment.succeeded"
EVENT_PAYMENT_REFUNDED = "payment.refunded"
EVENT_GIFT_CARD_PURCHASED = "giftcard.purchased"


class WebhookThrottle(AnonRateThrottle):
    scope = "webhook"


class PaymentWebhookView(APIView):
    """
    Payment processor webhook (at-least-once delivery).

    200 for processed / duplicate / ignored events so the processor stops
    retrying, 400 for a bad signature, 503 when a row lock timed out.
    """

    authentication_classes = []
    permission_classes = [AllowAny]
    parser_classes = [JSONParser]
    throttle_classes = [WebhookThrottle]

    def post(self, request, *args, **kwargs):
        raw_body = getattr(request, "body", b"") or b""
        header = payments_setting("SIGNATURE_HEADER", "X-Payment-Signature")
        signature = request.headers.get(header)

        if not verify_signature(raw_body=raw_body, signature=signature):
            logger.warning("Invalid payment webhook signature")
            return Response({"ok": False, "detail": "Invalid signature"}, status=status.HTTP_400_BAD_REQUEST)

        payload = request.data or {}
        event = str(payload.get("event") or "").strip()
        data = payload.get("data") or {}

        payment_id = str(data.get("payment_id") or "").strip()
        if not payment_id:
            logger.warning("Webhook received without payment_id", extra={"event": event})
            return Response({"ok": True, "detail": "No payment_id"}, status=status.HTTP_200_OK)

        logger.info("Payment webhook received", extra={"event": event, "payment_id": payment_id})

        try:
            if event == EVENT_PAYMENT_SUCCEEDED:
                result = confirm_payment(
                    payment_id=payment_id,
                    amount=data.get("amount"),
                    metadata=data.get("metadata") or {},
                )
            elif event == EVENT_PAYMENT_REFUNDED:
                result = refund_payment(
                    payment_id=payment_id,
                    reason=str(data.get("reason") or ""),
                )
            elif event == EVENT_GIFT_CARD_PURCHASED:
                result = complete_gift_card_purchase(
                    payment_id=payment_id,
                    amount=data.get("amount"),
                    metadata=data.get("metadata") or {},
                )
            else:
                logger.info("Webhook event ignored", extra={"event": event})
                return Response({"ok": True, "detail": "Ignored"}, status=status.HTTP_200_OK)

        except ConcurrencyConflictError:
            logger.warning("Webhook hit a lock conflict", extra={"payment_id": payment_id})
            return Response(
                {"ok": False, "detail": "Busy, retry later"},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        except StoreCreditError as exc:
            logger.exception(
                "Webhook payload rejected",
                extra={"payment_id": payment_id, "code": exc.code},
            )
            return Response({"ok": True, "detail": "Rejected"}, status=status.HTTP_200_OK)

        logger.info(
            "Webhook processed",
            extra={"event": event, "payment_id": payment_id, "outcome": str(result.outcome)},
        )
        return Response({"ok": True, "detail": str(result.outcome)}, status=status.HTTP_200_OK)
