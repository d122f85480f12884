# credits/urls.py

from django.urls import path

from credits.views import (
    CreditAdjustmentView,
    CreditBalanceView,
    CreditTransactionListView,
    LedgerAuditView,
    UserTransactionsView,
)

app_name = "credits"

urlpatterns = [
    path("balance/", CreditBalanceView.as_view(), name="balance"),
    path("transactions/", CreditTransactionListView.as_view(), name="transactions"),
    # ---------------- SUPPORT / ADMIN ----------------
    path("adjustments/", CreditAdjustmentView.as_view(), name="adjustments"),
    path("users/<uuid:user_id>/transactions/", UserTransactionsView.as_view(), name="user-transactions"),
    path("users/<uuid:user_id>/audit/", LedgerAuditView.as_view(), name="user-audit"),
]
