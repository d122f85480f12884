# credits/models/__init__.py

"""
CREDITS MODELS PACKAGE EXPORTS
"""

from .store_credit import StoreCredit
from .transaction import CreditTransaction

__all__ = [
    "StoreCredit",
    "CreditTransaction",
]
