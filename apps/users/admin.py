"""
apps.users.admin
"""
from django.contrib import admin

from .models import UserProfile


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ["email", "tenant", "organization_unit_id", "status", "created_at"]
    list_filter = ["status", "tenant"]
    search_fields = ["email", "first_name", "last_name"]
    readonly_fields = ["id", "created_at", "updated_at"]
    ordering = ["email"]
