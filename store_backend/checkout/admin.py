# checkout/admin.py

from django.contrib import admin

from checkout.models import PaymentConfirmation


@admin.register(PaymentConfirmation)
class PaymentConfirmationAdmin(admin.ModelAdmin):
    list_display = ("payment_id", "user", "amount", "status", "referral_outcome", "processed_at")
    list_filter = ("status", "referral_outcome", "credit_outcome")
    search_fields = ("payment_id", "user__email")

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
