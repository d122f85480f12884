# giftcards/admin.py

from django.contrib import admin

from giftcards.models import GiftCard, GiftCardCharge


# ======================================================
# GIFT CARD ADMIN
# ======================================================
# Balances and redemption state are read-only here: they move only through
# giftcards.services.giftcard_service. Staff may toggle is_active.


@admin.register(GiftCard)
class GiftCardAdmin(admin.ModelAdmin):
    list_display = (
        "code",
        "amount",
        "remaining_balance",
        "is_active",
        "is_redeemed",
        "expires_at",
        "created_at",
    )
    list_filter = ("is_active", "is_redeemed", "template")
    search_fields = ("code", "recipient_email", "purchase_payment_id")
    readonly_fields = (
        "code",
        "qr_token",
        "amount",
        "remaining_balance",
        "is_redeemed",
        "redeemed_by",
        "redeemed_at",
        "purchased_by",
        "purchase_payment_id",
        "created_at",
        "updated_at",
    )

    def has_add_permission(self, request):
        # Issuance must register the code; use the issue endpoint.
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(GiftCardCharge)
class GiftCardChargeAdmin(admin.ModelAdmin):
    list_display = ("gift_card", "payment_id", "amount", "balance_after", "created_at")
    search_fields = ("gift_card__code", "payment_id")
    readonly_fields = (
        "gift_card",
        "payment_id",
        "amount",
        "balance_before",
        "balance_after",
        "user",
        "created_at",
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
