"""
Django admin configuration for sales models.
"""

from django.contrib import admin

from .models import CashDrawerEvent, Customer, Sale, SaleItem, SellReturn, SellReturnItem


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ["name", "tenant", "phone", "tier", "loyalty_points", "total_spent", "del_flag"]
    list_filter = ["tier", "del_flag"]
    search_fields = ["name", "email", "phone"]
    readonly_fields = ["total_spent", "total_orders", "last_purchase_at", "created_at", "updated_at"]

    def get_queryset(self, request):
        return Customer.all_objects.select_related("tenant")


class SaleItemInline(admin.TabularInline):
    model = SaleItem
    extra = 0
    fields = ["product", "quantity", "unit_price", "line_total", "cost_of_goods", "returned_quantity"]
    readonly_fields = fields
    can_delete = False


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    """Admin interface for Sale model."""

    list_display = [
        "sale_number",
        "tenant",
        "warehouse",
        "customer",
        "payment_method",
        "total",
        "profit",
        "status",
        "sale_date",
    ]
    list_filter = ["status", "payment_method", "sale_date"]
    search_fields = ["sale_number", "customer__name"]
    readonly_fields = ["created_at", "updated_at", "voided_at"]
    date_hierarchy = "sale_date"
    inlines = [SaleItemInline]
    fieldsets = [
        (
            "Basic Information",
            {"fields": ["tenant", "sale_number", "warehouse", "customer", "cashier", "sale_date"]},
        ),
        (
            "Amounts",
            {
                "fields": [
                    "subtotal",
                    "discount",
                    "tax_rate",
                    "tax",
                    "total",
                    "total_cost",
                    "profit",
                ],
            },
        ),
        (
            "Payment",
            {"fields": ["payment_method", "cash_received", "change_given"]},
        ),
        (
            "Status",
            {"fields": ["status", "is_voided", "void_reason", "voided_at", "voided_by"]},
        ),
        (
            "Timestamps",
            {"fields": ["created_at", "updated_at"], "classes": ["collapse"]},
        ),
    ]


class SellReturnItemInline(admin.TabularInline):
    model = SellReturnItem
    extra = 0
    readonly_fields = ["sale_item", "quantity", "refund_amount", "cost_reversed"]
    can_delete = False


@admin.register(SellReturn)
class SellReturnAdmin(admin.ModelAdmin):
    list_display = ["return_number", "sale", "reason", "status", "refund_amount", "created_at"]
    list_filter = ["status", "reason"]
    search_fields = ["return_number", "sale__sale_number"]
    inlines = [SellReturnItemInline]


@admin.register(CashDrawerEvent)
class CashDrawerEventAdmin(admin.ModelAdmin):
    list_display = ["warehouse", "event_type", "amount", "user", "created_at"]
    list_filter = ["event_type", "warehouse"]
    readonly_fields = ["created_at"]
