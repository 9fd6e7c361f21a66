"""
Serializers for suppliers, purchases and purchase returns.
"""

from decimal import Decimal

from rest_framework import serializers

from apps.core.models import Warehouse
from apps.core.serializers import TenantPrimaryKeyRelatedField
from apps.inventory.models import Product

from .models import Purchase, PurchaseItem, PurchaseReturn, PurchaseReturnItem, Supplier


class SupplierSerializer(serializers.ModelSerializer):
    class Meta:
        model = Supplier
        fields = [
            "id",
            "name",
            "contact_person",
            "email",
            "phone",
            "address",
            "tax_number",
            "payment_terms",
            "notes",
            "is_active",
            "mod_flag",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "mod_flag", "created_at", "updated_at"]

    def validate_name(self, value):
        tenant = self.context["request"].user.tenant
        queryset = Supplier.objects.filter(tenant=tenant, name__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("A supplier with this name already exists.")
        return value


class SupplierDetailSerializer(SupplierSerializer):
    statistics = serializers.SerializerMethodField()

    class Meta(SupplierSerializer.Meta):
        fields = SupplierSerializer.Meta.fields + ["statistics"]

    def get_statistics(self, obj):
        stats = obj.get_statistics()
        return {
            "purchase_count": stats["purchase_count"],
            "open_orders": stats["open_orders"],
            "total_purchased": float(stats["total_purchased"]),
            "total_returned": float(stats["total_returned"]),
            "last_purchase_date": stats["last_purchase_date"],
        }


class PurchaseItemInputSerializer(serializers.Serializer):
    product = TenantPrimaryKeyRelatedField(queryset=Product.objects.all())
    quantity = serializers.DecimalField(
        max_digits=14, decimal_places=3, min_value=Decimal("0.001")
    )
    unit_price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0"))
    selling_price = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0")
    )
    expiry_date = serializers.DateField(required=False, allow_null=True)


class PurchaseCreateSerializer(serializers.Serializer):
    supplier = TenantPrimaryKeyRelatedField(queryset=Supplier.objects.all())
    warehouse = TenantPrimaryKeyRelatedField(queryset=Warehouse.objects.all())
    items = PurchaseItemInputSerializer(many=True, allow_empty=False)
    transport_cost = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), default=Decimal("0.00")
    )
    tax = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), default=Decimal("0.00")
    )
    other_expenses = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), default=Decimal("0.00")
    )
    purchase_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    receive = serializers.BooleanField(default=False)


class PurchaseItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    sku = serializers.CharField(source="product.sku", read_only=True)

    class Meta:
        model = PurchaseItem
        fields = [
            "id",
            "product",
            "product_name",
            "sku",
            "quantity",
            "unit_price",
            "selling_price",
            "line_total",
            "landed_unit_cost",
            "expiry_date",
            "returned_quantity",
        ]
        read_only_fields = fields


class PurchaseSerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source="supplier.name", read_only=True)
    warehouse_name = serializers.CharField(source="warehouse.name", read_only=True)
    received_by_name = serializers.CharField(
        source="received_by.username", read_only=True, default=None
    )
    items = PurchaseItemSerializer(many=True, read_only=True)

    class Meta:
        model = Purchase
        fields = [
            "id",
            "purchase_number",
            "supplier",
            "supplier_name",
            "warehouse",
            "warehouse_name",
            "status",
            "subtotal",
            "transport_cost",
            "tax",
            "other_expenses",
            "total",
            "purchase_date",
            "notes",
            "received_at",
            "received_by_name",
            "cancelled_at",
            "items",
            "created_at",
        ]
        read_only_fields = fields


class ReturnItemInputSerializer(serializers.Serializer):
    purchase_item = serializers.PrimaryKeyRelatedField(queryset=PurchaseItem.objects.all())
    quantity = serializers.DecimalField(
        max_digits=14, decimal_places=3, min_value=Decimal("0.001")
    )


class PurchaseReturnCreateSerializer(serializers.Serializer):
    items = ReturnItemInputSerializer(many=True, allow_empty=False)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class PurchaseReturnItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="purchase_item.product.name", read_only=True)
    batch_number = serializers.CharField(source="batch.batch_number", read_only=True)

    class Meta:
        model = PurchaseReturnItem
        fields = [
            "id",
            "purchase_item",
            "product_name",
            "batch_number",
            "quantity",
            "unit_cost",
            "line_total",
        ]
        read_only_fields = fields


class PurchaseReturnSerializer(serializers.ModelSerializer):
    purchase_number = serializers.CharField(source="purchase.purchase_number", read_only=True)
    supplier_name = serializers.CharField(source="supplier.name", read_only=True)
    items = PurchaseReturnItemSerializer(many=True, read_only=True)

    class Meta:
        model = PurchaseReturn
        fields = [
            "id",
            "return_number",
            "purchase",
            "purchase_number",
            "supplier",
            "supplier_name",
            "reason",
            "total_amount",
            "notes",
            "items",
            "created_at",
        ]
        read_only_fields = fields
