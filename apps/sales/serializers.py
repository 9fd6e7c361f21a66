"""
Serializers for customers, sales, returns and the cash drawer.
"""

from decimal import Decimal

from rest_framework import serializers

from apps.core.models import Warehouse
from apps.core.serializers import TenantPrimaryKeyRelatedField
from apps.inventory.models import Product

from .models import (
    CashDrawerEvent,
    Customer,
    Sale,
    SaleItem,
    SaleItemAllocation,
    SellReturn,
    SellReturnItem,
)


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = [
            "id",
            "name",
            "email",
            "phone",
            "address",
            "tier",
            "loyalty_points",
            "total_spent",
            "total_orders",
            "last_purchase_at",
            "mod_flag",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "tier",
            "loyalty_points",
            "total_spent",
            "total_orders",
            "last_purchase_at",
            "mod_flag",
            "created_at",
            "updated_at",
        ]


class SaleLineInputSerializer(serializers.Serializer):
    product = TenantPrimaryKeyRelatedField(queryset=Product.objects.filter(is_active=True))
    quantity = serializers.DecimalField(
        max_digits=14, decimal_places=3, min_value=Decimal("0.001")
    )
    unit_price = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True
    )


class SaleCreateSerializer(serializers.Serializer):
    """
    Serializer for POS checkout and totals preview.
    """

    warehouse = TenantPrimaryKeyRelatedField(queryset=Warehouse.objects.filter(is_active=True))
    customer = TenantPrimaryKeyRelatedField(
        queryset=Customer.objects.all(), required=False, allow_null=True
    )
    items = SaleLineInputSerializer(many=True, allow_empty=False)
    payment_method = serializers.ChoiceField(
        choices=Sale.PAYMENT_METHOD_CHOICES, default=Sale.CASH
    )
    discount = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), default=Decimal("0.00")
    )
    tax_rate = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=Decimal("0"), default=Decimal("0.00")
    )
    cash_received = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True
    )
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class SaleItemAllocationSerializer(serializers.ModelSerializer):
    batch_number = serializers.CharField(source="batch.batch_number", read_only=True)

    class Meta:
        model = SaleItemAllocation
        fields = ["batch", "batch_number", "quantity", "unit_cost", "restored_quantity"]
        read_only_fields = fields


class SaleItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    sku = serializers.CharField(source="product.sku", read_only=True)
    allocations = SaleItemAllocationSerializer(many=True, read_only=True)

    class Meta:
        model = SaleItem
        fields = [
            "id",
            "product",
            "product_name",
            "sku",
            "quantity",
            "unit_price",
            "line_total",
            "cost_of_goods",
            "returned_quantity",
            "allocations",
        ]
        read_only_fields = fields


class SaleListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for sale lists."""

    customer_name = serializers.CharField(source="customer.name", read_only=True, default=None)
    cashier_name = serializers.CharField(source="cashier.username", read_only=True)
    warehouse_name = serializers.CharField(source="warehouse.name", read_only=True)

    class Meta:
        model = Sale
        fields = [
            "id",
            "sale_number",
            "sale_date",
            "status",
            "warehouse",
            "warehouse_name",
            "customer",
            "customer_name",
            "cashier_name",
            "payment_method",
            "total",
            "profit",
        ]
        read_only_fields = fields


class SaleDetailSerializer(SaleListSerializer):
    items = SaleItemSerializer(many=True, read_only=True)
    voided_by_name = serializers.CharField(source="voided_by.username", read_only=True, default=None)

    class Meta(SaleListSerializer.Meta):
        fields = SaleListSerializer.Meta.fields + [
            "subtotal",
            "discount",
            "tax_rate",
            "tax",
            "cash_received",
            "change_given",
            "total_cost",
            "loyalty_points_earned",
            "notes",
            "is_voided",
            "void_reason",
            "voided_at",
            "voided_by_name",
            "items",
        ]
        read_only_fields = fields


class ReturnLineInputSerializer(serializers.Serializer):
    sale_item = serializers.PrimaryKeyRelatedField(queryset=SaleItem.objects.all())
    quantity = serializers.DecimalField(
        max_digits=14, decimal_places=3, min_value=Decimal("0.001")
    )


class SellReturnCreateSerializer(serializers.Serializer):
    items = ReturnLineInputSerializer(many=True, allow_empty=False)
    reason = serializers.ChoiceField(choices=SellReturn.REASON_CHOICES, default="OTHER")
    restock = serializers.BooleanField(default=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    auto_complete = serializers.BooleanField(default=True)


class SellReturnItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="sale_item.product.name", read_only=True)

    class Meta:
        model = SellReturnItem
        fields = ["id", "sale_item", "product_name", "quantity", "refund_amount", "cost_reversed"]
        read_only_fields = fields


class SellReturnSerializer(serializers.ModelSerializer):
    sale_number = serializers.CharField(source="sale.sale_number", read_only=True)
    customer_name = serializers.CharField(source="customer.name", read_only=True, default=None)
    processed_by_name = serializers.CharField(
        source="processed_by.username", read_only=True, default=None
    )
    items = SellReturnItemSerializer(many=True, read_only=True)

    class Meta:
        model = SellReturn
        fields = [
            "id",
            "return_number",
            "sale",
            "sale_number",
            "customer",
            "customer_name",
            "reason",
            "status",
            "refund_amount",
            "cost_reversed",
            "restock",
            "notes",
            "processed_by_name",
            "processed_at",
            "items",
            "created_at",
        ]
        read_only_fields = fields


class CashDrawerEventSerializer(serializers.ModelSerializer):
    warehouse = TenantPrimaryKeyRelatedField(queryset=Warehouse.objects.all())
    user_name = serializers.CharField(source="user.username", read_only=True, default=None)
    sale_number = serializers.CharField(source="sale.sale_number", read_only=True, default=None)
    amount = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), default=Decimal("0.00")
    )

    class Meta:
        model = CashDrawerEvent
        fields = [
            "id",
            "warehouse",
            "event_type",
            "amount",
            "note",
            "user_name",
            "sale",
            "sale_number",
            "sell_return",
            "created_at",
        ]
        read_only_fields = ["id", "user_name", "sale", "sale_number", "sell_return", "created_at"]
