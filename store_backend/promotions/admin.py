# promotions/admin.py

from django.contrib import admin

from promotions.models import PromotionCode


@admin.register(PromotionCode)
class PromotionCodeAdmin(admin.ModelAdmin):
    list_display = (
        "code",
        "name",
        "discount_type",
        "discount_value",
        "usage_count",
        "usage_limit",
        "is_active",
        "ends_at",
    )
    list_filter = ("discount_type", "is_active", "is_first_order_code", "applies_to")
    search_fields = ("code", "name", "user__email")
    readonly_fields = ("code", "usage_count", "user", "is_first_order_code", "referral_bonus", "created_at", "updated_at")

    def has_add_permission(self, request):
        # New codes must go through the registry; use the API.
        return False

    def has_delete_permission(self, request, obj=None):
        return False
