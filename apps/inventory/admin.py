"""
Admin configuration for inventory models.
"""

from django.contrib import admin

from .models import (
    Brand,
    Category,
    Product,
    ProductBatch,
    StockAdjustment,
    StockTransfer,
    StockTransferItem,
    Unit,
)


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ["name", "parent", "tenant", "del_flag", "created_at"]
    list_filter = ["del_flag", "tenant"]
    search_fields = ["name", "description"]
    readonly_fields = ["created_at", "updated_at"]

    def get_queryset(self, request):
        return Category.all_objects.select_related("parent", "tenant")


@admin.register(Brand)
class BrandAdmin(admin.ModelAdmin):
    list_display = ["name", "tenant", "del_flag", "created_at"]
    list_filter = ["del_flag", "tenant"]
    search_fields = ["name"]


@admin.register(Unit)
class UnitAdmin(admin.ModelAdmin):
    list_display = ["name", "short_name", "unit_type", "base_unit", "conversion_factor", "tenant"]
    list_filter = ["unit_type", "tenant"]
    search_fields = ["name", "short_name"]


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    """Admin interface for Product."""

    list_display = ["sku", "name", "category", "brand", "unit", "is_active", "tenant"]
    list_filter = ["is_active", "del_flag", "category", "tenant"]
    search_fields = ["sku", "name", "barcode"]
    readonly_fields = ["created_at", "updated_at", "created_by", "modified_by"]
    fieldsets = (
        (
            "Basic Information",
            {
                "fields": ("tenant", "sku", "name", "barcode", "category", "brand", "unit"),
            },
        ),
        (
            "Attributes",
            {
                "fields": ("tags", "color", "size", "description", "alert_quantity"),
            },
        ),
        (
            "Status",
            {
                "fields": ("is_active", "del_flag", "mod_flag"),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_by", "modified_by", "created_at", "updated_at"),
                "classes": ("collapse",),
            },
        ),
    )

    def get_queryset(self, request):
        return Product.all_objects.select_related("category", "brand", "unit", "tenant")


@admin.register(ProductBatch)
class ProductBatchAdmin(admin.ModelAdmin):
    list_display = [
        "batch_number",
        "product",
        "warehouse",
        "unit_cost",
        "selling_price",
        "quantity",
        "remaining",
        "is_depleted",
        "received_at",
    ]
    list_filter = ["is_depleted", "source", "warehouse", "tenant"]
    search_fields = ["batch_number", "product__name", "product__sku"]
    # remaining only changes through the FIFO engine
    readonly_fields = ["remaining", "is_depleted", "depleted_at", "created_at", "updated_at"]
    date_hierarchy = "received_at"


@admin.register(StockAdjustment)
class StockAdjustmentAdmin(admin.ModelAdmin):
    list_display = ["product", "warehouse", "adjustment_type", "quantity", "total_cost", "created_at"]
    list_filter = ["adjustment_type", "tenant"]
    search_fields = ["product__name", "reason"]
    readonly_fields = ["created_at"]


class StockTransferItemInline(admin.TabularInline):
    model = StockTransferItem
    extra = 0
    readonly_fields = ["unit_cost", "selling_price"]


@admin.register(StockTransfer)
class StockTransferAdmin(admin.ModelAdmin):
    list_display = [
        "transfer_number",
        "from_warehouse",
        "to_warehouse",
        "status",
        "requested_by",
        "created_at",
    ]
    list_filter = ["status", "tenant"]
    search_fields = ["transfer_number", "notes"]
    readonly_fields = ["status", "approved_at", "completed_at", "cancelled_at", "created_at"]
    inlines = [StockTransferItemInline]
