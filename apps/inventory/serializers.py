"""
Serializers for inventory models.
"""

from decimal import Decimal

from rest_framework import serializers

from apps.core.models import Warehouse
from apps.core.serializers import TenantPrimaryKeyRelatedField

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


class TenantUniqueNameMixin:
    """Reject a ``name`` already used by a live record of the same model in the tenant."""

    def validate_name(self, value):
        model = self.Meta.model
        tenant = self.context["request"].user.tenant
        queryset = model.objects.filter(tenant=tenant, name__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError(
                f"A {model._meta.verbose_name} with this name already exists."
            )
        return value


class CategorySerializer(TenantUniqueNameMixin, serializers.ModelSerializer):
    parent = TenantPrimaryKeyRelatedField(
        queryset=Category.objects.all(), required=False, allow_null=True
    )
    parent_name = serializers.CharField(source="parent.name", read_only=True, default=None)
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = [
            "id",
            "name",
            "parent",
            "parent_name",
            "description",
            "product_count",
            "mod_flag",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "mod_flag", "created_at", "updated_at"]

    def get_product_count(self, obj):
        return obj.products.filter(del_flag=False).count()

    def validate(self, data):
        """Validate category data."""
        # Prevent circular parent relationships
        parent = data.get("parent")
        if parent and self.instance:
            if parent == self.instance:
                raise serializers.ValidationError({"parent": "A category cannot be its own parent."})

            current = parent
            while current:
                if current == self.instance:
                    raise serializers.ValidationError(
                        {"parent": "Circular parent relationship detected."}
                    )
                current = current.parent

        return data


class BrandSerializer(TenantUniqueNameMixin, serializers.ModelSerializer):
    class Meta:
        model = Brand
        fields = ["id", "name", "description", "mod_flag", "created_at", "updated_at"]
        read_only_fields = ["id", "mod_flag", "created_at", "updated_at"]


class UnitSerializer(TenantUniqueNameMixin, serializers.ModelSerializer):
    base_unit = TenantPrimaryKeyRelatedField(
        queryset=Unit.objects.all(), required=False, allow_null=True
    )
    base_unit_name = serializers.CharField(source="base_unit.name", read_only=True, default=None)

    class Meta:
        model = Unit
        fields = [
            "id",
            "name",
            "short_name",
            "unit_type",
            "base_unit",
            "base_unit_name",
            "conversion_factor",
            "mod_flag",
            "created_at",
        ]
        read_only_fields = ["id", "mod_flag", "created_at"]

    def validate(self, data):
        unit_type = data.get("unit_type", getattr(self.instance, "unit_type", Unit.BASE))
        base_unit = data.get("base_unit", getattr(self.instance, "base_unit", None))
        if unit_type == Unit.DERIVED:
            if base_unit is None:
                raise serializers.ValidationError({"base_unit": "Derived units require a base unit."})
            if base_unit.unit_type != Unit.BASE:
                raise serializers.ValidationError(
                    {"base_unit": "Base unit must itself be a base unit."}
                )
            factor = data.get("conversion_factor")
            if factor is not None and factor <= 0:
                raise serializers.ValidationError(
                    {"conversion_factor": "Conversion factor must be positive."}
                )
        elif base_unit is not None:
            raise serializers.ValidationError(
                {"base_unit": "Base units cannot reference another unit."}
            )
        return data


class ProductSerializer(serializers.ModelSerializer):
    category = TenantPrimaryKeyRelatedField(
        queryset=Category.objects.all(), required=False, allow_null=True
    )
    brand = TenantPrimaryKeyRelatedField(
        queryset=Brand.objects.all(), required=False, allow_null=True
    )
    unit = TenantPrimaryKeyRelatedField(queryset=Unit.objects.all(), required=False, allow_null=True)
    category_name = serializers.CharField(source="category.name", read_only=True, default=None)
    brand_name = serializers.CharField(source="brand.name", read_only=True, default=None)
    unit_name = serializers.CharField(source="unit.short_name", read_only=True, default=None)
    total_stock = serializers.SerializerMethodField()
    current_selling_price = serializers.SerializerMethodField()
    is_low_stock = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "sku",
            "barcode",
            "category",
            "category_name",
            "brand",
            "brand_name",
            "unit",
            "unit_name",
            "tags",
            "color",
            "size",
            "description",
            "alert_quantity",
            "is_active",
            "total_stock",
            "current_selling_price",
            "is_low_stock",
            "mod_flag",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "mod_flag", "created_at", "updated_at"]

    def _warehouse(self):
        return self.context.get("warehouse")

    def get_total_stock(self, obj):
        return obj.total_stock(self._warehouse())

    def get_current_selling_price(self, obj):
        return obj.current_selling_price(self._warehouse())

    def get_is_low_stock(self, obj):
        return obj.total_stock(self._warehouse()) <= obj.low_stock_threshold()

    def validate_sku(self, value):
        tenant = self.context["request"].user.tenant
        queryset = Product.all_objects.filter(tenant=tenant, sku__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("A product with this SKU already exists.")
        return value

    def validate_tags(self, value):
        if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
            raise serializers.ValidationError("Tags must be a list of strings.")
        return value


class ProductBatchSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    warehouse_name = serializers.CharField(source="warehouse.name", read_only=True)

    class Meta:
        model = ProductBatch
        fields = [
            "id",
            "batch_number",
            "product",
            "product_name",
            "warehouse",
            "warehouse_name",
            "unit_cost",
            "selling_price",
            "quantity",
            "remaining",
            "is_depleted",
            "depleted_at",
            "expiry_date",
            "received_at",
            "source",
            "notes",
        ]
        read_only_fields = fields


class StockRowSerializer(serializers.Serializer):
    """One row of a manual stock intake."""

    product = TenantPrimaryKeyRelatedField(queryset=Product.objects.all())
    warehouse = TenantPrimaryKeyRelatedField(queryset=Warehouse.objects.all())
    unit_cost = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0"))
    selling_price = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0")
    )
    quantity = serializers.DecimalField(
        max_digits=14, decimal_places=3, min_value=Decimal("0.001")
    )
    expiry_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class AddStockSerializer(serializers.Serializer):
    rows = StockRowSerializer(many=True, allow_empty=False)


class StockAdjustmentSerializer(serializers.ModelSerializer):
    product = TenantPrimaryKeyRelatedField(queryset=Product.objects.all())
    warehouse = TenantPrimaryKeyRelatedField(queryset=Warehouse.objects.all())
    product_name = serializers.CharField(source="product.name", read_only=True)
    warehouse_name = serializers.CharField(source="warehouse.name", read_only=True)
    batch_number = serializers.CharField(source="batch.batch_number", read_only=True, default=None)
    quantity = serializers.DecimalField(
        max_digits=14, decimal_places=3, min_value=Decimal("0.001")
    )

    class Meta:
        model = StockAdjustment
        fields = [
            "id",
            "product",
            "product_name",
            "warehouse",
            "warehouse_name",
            "adjustment_type",
            "quantity",
            "unit_cost",
            "total_cost",
            "reason",
            "batch_number",
            "created_at",
        ]
        read_only_fields = ["id", "total_cost", "batch_number", "created_at"]


class TransferItemInputSerializer(serializers.Serializer):
    product = TenantPrimaryKeyRelatedField(queryset=Product.objects.all())
    quantity = serializers.DecimalField(
        max_digits=14, decimal_places=3, min_value=Decimal("0.001")
    )


class StockTransferCreateSerializer(serializers.Serializer):
    from_warehouse = TenantPrimaryKeyRelatedField(queryset=Warehouse.objects.all())
    to_warehouse = TenantPrimaryKeyRelatedField(queryset=Warehouse.objects.all())
    items = TransferItemInputSerializer(many=True, allow_empty=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, data):
        if data["from_warehouse"] == data["to_warehouse"]:
            raise serializers.ValidationError(
                {"to_warehouse": "Source and destination warehouses must differ."}
            )
        return data


class StockTransferItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = StockTransferItem
        fields = ["id", "product", "product_name", "quantity", "unit_cost", "selling_price"]
        read_only_fields = fields


class StockTransferSerializer(serializers.ModelSerializer):
    from_warehouse_name = serializers.CharField(source="from_warehouse.name", read_only=True)
    to_warehouse_name = serializers.CharField(source="to_warehouse.name", read_only=True)
    requested_by_name = serializers.CharField(
        source="requested_by.username", read_only=True, default=None
    )
    approved_by_name = serializers.CharField(
        source="approved_by.username", read_only=True, default=None
    )
    items = StockTransferItemSerializer(many=True, read_only=True)
    total_value = serializers.SerializerMethodField()

    class Meta:
        model = StockTransfer
        fields = [
            "id",
            "transfer_number",
            "from_warehouse",
            "from_warehouse_name",
            "to_warehouse",
            "to_warehouse_name",
            "status",
            "notes",
            "requested_by_name",
            "approved_by_name",
            "approved_at",
            "completed_at",
            "cancelled_at",
            "items",
            "total_value",
            "created_at",
        ]
        read_only_fields = fields

    def get_total_value(self, obj):
        return str(obj.total_value())
