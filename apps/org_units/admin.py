"""
apps.org_units.admin
~~~~~~~~~~~~~~~~~~~~
Read-mostly admin for organization units.

Creation, re-parenting and deletion go through the API so that sibling
uniqueness and cycle checks always run; the admin only edits free-text
fields and status.
"""
from django.contrib import admin

from .models import OrganizationUnitRecord


@admin.register(OrganizationUnitRecord)
class OrganizationUnitRecordAdmin(admin.ModelAdmin):
    list_display = ["name", "tenant", "parent", "status", "updated_at"]
    list_filter = ["status", "tenant"]
    search_fields = ["name", "tenant__name"]
    readonly_fields = ["id", "tenant", "parent", "name", "created_at", "updated_at"]
    list_select_related = ["tenant", "parent"]
    ordering = ["tenant", "name"]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def get_fields(self, request, obj=None):
        fields = super().get_fields(request, obj)
        if obj and "id" in fields:
            fields = list(fields)
            fields.remove("id")
            fields.insert(0, "id")
        return fields
