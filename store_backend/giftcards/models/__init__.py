# giftcards/models/__init__.py

from .charge import GiftCardCharge
from .gift_card import GiftCard

__all__ = [
    "GiftCard",
    "GiftCardCharge",
]
