# checkout/models/__init__.py

from .payment_confirmation import PaymentConfirmation

__all__ = [
    "PaymentConfirmation",
]
