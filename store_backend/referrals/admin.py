# referrals/admin.py

from django.contrib import admin

from referrals.models import ReferralCode, ReferralRelationship


@admin.register(ReferralCode)
class ReferralCodeAdmin(admin.ModelAdmin):
    list_display = ("code", "user", "is_active", "total_referrals", "total_conversions", "total_earned")
    list_filter = ("is_active",)
    search_fields = ("code", "user__email")
    readonly_fields = ("code", "user", "total_referrals", "total_conversions", "total_earned", "created_at")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ReferralRelationship)
class ReferralRelationshipAdmin(admin.ModelAdmin):
    list_display = ("referrer", "referee", "status", "outcome", "reward_credited", "converted_at")
    list_filter = ("status", "outcome", "reward_credited")
    search_fields = ("referrer__email", "referee__email", "converted_order_id", "ip_address")

    # state moves only through referrals.services.referral_service
    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
