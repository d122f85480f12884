# codes/admin.py

from django.contrib import admin

from codes.models import CodeRegistryEntry


# ======================================================
# CODE REGISTRY ADMIN (READ-ONLY, APPEND-ONLY TABLE)
# ======================================================


@admin.register(CodeRegistryEntry)
class CodeRegistryEntryAdmin(admin.ModelAdmin):
    list_display = ("code", "namespace", "reason", "owner_id", "registered_at")
    list_filter = ("namespace", "reason")
    search_fields = ("code", "owner_id")
    readonly_fields = ("code", "namespace", "reason", "owner_id", "registered_at")

    def has_add_permission(self, request):
        # Reservations go through the API so availability is checked.
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
