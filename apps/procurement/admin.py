"""
Admin configuration for procurement models.
"""

from django.contrib import admin

from .models import Purchase, PurchaseItem, PurchaseReturn, PurchaseReturnItem, Supplier


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    """Admin interface for Supplier model."""

    list_display = ["name", "contact_person", "email", "phone", "is_active", "created_at"]
    list_filter = ["is_active", "del_flag", "tenant"]
    search_fields = ["name", "contact_person", "email", "phone"]
    readonly_fields = ["created_at", "updated_at"]

    def get_queryset(self, request):
        return Supplier.all_objects.select_related("tenant")


class PurchaseItemInline(admin.TabularInline):
    model = PurchaseItem
    extra = 0
    readonly_fields = ["line_total", "landed_unit_cost", "returned_quantity"]


@admin.register(Purchase)
class PurchaseAdmin(admin.ModelAdmin):
    list_display = [
        "purchase_number",
        "supplier",
        "warehouse",
        "status",
        "total",
        "purchase_date",
    ]
    list_filter = ["status", "tenant", "purchase_date"]
    search_fields = ["purchase_number", "supplier__name"]
    readonly_fields = ["status", "subtotal", "total", "received_at", "received_by", "created_at"]
    date_hierarchy = "purchase_date"
    inlines = [PurchaseItemInline]


class PurchaseReturnItemInline(admin.TabularInline):
    model = PurchaseReturnItem
    extra = 0
    readonly_fields = ["purchase_item", "batch", "quantity", "unit_cost", "line_total"]


@admin.register(PurchaseReturn)
class PurchaseReturnAdmin(admin.ModelAdmin):
    list_display = ["return_number", "purchase", "supplier", "total_amount", "created_at"]
    list_filter = ["tenant"]
    search_fields = ["return_number", "supplier__name"]
    inlines = [PurchaseReturnItemInline]
