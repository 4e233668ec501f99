"""
apps.tenants.admin
"""
from django.contrib import admin

from .models import Tenant


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "status", "created_at"]
    list_filter = ["status"]
    search_fields = ["name", "slug"]
    readonly_fields = ["id", "slug", "created_at", "updated_at"]
    ordering = ["name"]

    def get_fields(self, request, obj=None):
        """Show the UUID prominently at the top of the detail form."""
        fields = super().get_fields(request, obj)
        if obj and "id" in fields:
            fields = list(fields)
            fields.remove("id")
            fields.insert(0, "id")
        return fields
