# promotions/models/__init__.py

from .promotion_code import PromotionCode

__all__ = [
    "PromotionCode",
]
