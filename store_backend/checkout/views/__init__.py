# checkout/views/__init__.py

from .quote import CheckoutQuoteView
from .webhook import PaymentWebhookView

__all__ = [
    "CheckoutQuoteView",
    "PaymentWebhookView",
]
