from .admin_tools import CreditAdjustmentView, LedgerAuditView, UserTransactionsView
from .balance import CreditBalanceView, CreditTransactionListView

__all__ = [
    "CreditBalanceView",
    "CreditTransactionListView",
    "CreditAdjustmentView",
    "LedgerAuditView",
    "UserTransactionsView",
]
