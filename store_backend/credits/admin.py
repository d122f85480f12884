# credits/admin.py

from django.contrib import admin

from credits.models import CreditTransaction, StoreCredit


# ======================================================
# READ-ONLY LEDGER ADMIN
# ======================================================
# Balances move only through credits.services.ledger_service.


class ReadOnlyAdminMixin:
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StoreCredit)
class StoreCreditAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("user", "balance", "total_earned", "total_spent", "last_sequence", "updated_at")
    search_fields = ("user__email",)
    readonly_fields = (
        "user",
        "balance",
        "total_earned",
        "total_spent",
        "last_sequence",
        "created_at",
        "updated_at",
    )


@admin.register(CreditTransaction)
class CreditTransactionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "user",
        "sequence",
        "kind",
        "amount",
        "balance_after",
        "reference_id",
        "created_at",
    )
    list_filter = ("kind", "created_at")
    search_fields = ("user__email", "reference_id")
    readonly_fields = (
        "store_credit",
        "user",
        "sequence",
        "amount",
        "kind",
        "reference_id",
        "reference_type",
        "balance_before",
        "balance_after",
        "description",
        "created_by",
        "created_at",
    )
