"""
Django admin configuration for core models.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import History, Role, Tenant, User, Warehouse


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    """Admin interface for Tenant model."""

    list_display = ["company_name", "slug", "status", "currency", "created_at"]
    list_filter = ["status", "created_at"]
    search_fields = ["company_name", "slug", "id"]
    readonly_fields = ["id", "created_at", "updated_at"]
    ordering = ["-created_at"]

    def get_readonly_fields(self, request, obj=None):
        """Make slug readonly when editing existing tenant."""
        if obj:
            return self.readonly_fields + ["slug"]
        return self.readonly_fields


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ["name", "tenant", "created_at"]
    list_filter = ["tenant"]
    search_fields = ["name", "description"]


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ["name", "code", "tenant", "manager", "is_active", "del_flag"]
    list_filter = ["is_active", "del_flag", "tenant"]
    search_fields = ["name", "code", "location"]

    def get_queryset(self, request):
        return Warehouse.all_objects.select_related("tenant", "manager")


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin interface for User model."""

    list_display = ["username", "email", "user_type", "role", "tenant", "is_active"]
    list_filter = ["user_type", "is_active", "is_staff", "tenant"]
    search_fields = ["username", "email", "first_name", "last_name", "phone", "tenant__company_name"]
    readonly_fields = ["date_joined", "last_login"]
    filter_horizontal = ["warehouses", "groups", "user_permissions"]

    fieldsets = BaseUserAdmin.fieldsets + (
        ("Tenant", {"fields": ("tenant", "user_type", "role", "warehouses", "phone")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Tenant", {"fields": ("tenant", "user_type", "role")}),
    )


@admin.register(History)
class HistoryAdmin(admin.ModelAdmin):
    list_display = ["action_type", "entity_type", "entity_id", "actor", "tenant", "created_at"]
    list_filter = ["action_type", "entity_type", "tenant"]
    search_fields = ["message", "entity_id"]
    readonly_fields = [f.name for f in History._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
