"""
Inventory models for the RetailOps platform.

Products are stocked as batches. Each ProductBatch is a received lot with its
own unit cost, selling price and remaining quantity; sales consume batches
oldest-first (see ``apps.inventory.fifo``).
"""

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Sum
from django.utils import timezone

from django_fsm import FSMField, transition

from apps.core.models import SoftDeleteModel, Tenant, Warehouse
from apps.core.utils import generate_daily_number

QUANTITY_FIELD = {"max_digits": 14, "decimal_places": 3}
MONEY_FIELD = {"max_digits": 14, "decimal_places": 2}


class Category(SoftDeleteModel):
    """
    Product category with optional parent for a simple hierarchy.
    """

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="categories")
    name = models.CharField(max_length=100)
    parent = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="children",
    )
    description = models.TextField(blank=True)

    class Meta:
        db_table = "inventory_categories"
        ordering = ["name"]
        verbose_name_plural = "Categories"
        indexes = [
            models.Index(fields=["tenant", "del_flag"], name="category_tenant_idx"),
        ]

    def __str__(self):
        if self.parent_id:
            return f"{self.parent.name} > {self.name}"
        return self.name


class Brand(SoftDeleteModel):
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="brands")
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)

    class Meta:
        db_table = "inventory_brands"
        ordering = ["name"]

    def __str__(self):
        return self.name


class Unit(SoftDeleteModel):
    """
    Unit of measure. Derived units convert to their base unit through
    ``conversion_factor`` (e.g. Dozen = 12 x Piece).
    """

    BASE = "BASE"
    DERIVED = "DERIVED"

    UNIT_TYPE_CHOICES = [
        (BASE, "Base unit"),
        (DERIVED, "Derived unit"),
    ]

    # Seeded for every new tenant by seed_base_units
    BASE_UNITS = [
        ("Piece", "pcs"),
        ("Liter", "L"),
        ("Kilogram", "kg"),
        ("Meter", "m"),
        ("Pack", "pack"),
        ("Bottle", "btl"),
        ("Can", "can"),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="units")
    name = models.CharField(max_length=50)
    short_name = models.CharField(max_length=20)
    unit_type = models.CharField(max_length=10, choices=UNIT_TYPE_CHOICES, default=BASE)
    base_unit = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="derived_units",
    )
    conversion_factor = models.DecimalField(
        max_digits=14,
        decimal_places=4,
        default=Decimal("1"),
        validators=[MinValueValidator(Decimal("0.0001"))],
        help_text="How many base units one of this unit represents",
    )

    class Meta:
        db_table = "inventory_units"
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.short_name})"

    def clean(self):
        if self.unit_type == self.DERIVED:
            if not self.base_unit_id:
                raise ValidationError({"base_unit": "Derived units require a base unit."})
            if self.base_unit.unit_type != self.BASE:
                raise ValidationError({"base_unit": "Base unit must itself be a base unit."})
        elif self.base_unit_id:
            raise ValidationError({"base_unit": "Base units cannot reference another unit."})
        if self.conversion_factor is not None and self.conversion_factor <= 0:
            raise ValidationError({"conversion_factor": "Conversion factor must be positive."})

    def save(self, *args, **kwargs):
        if self.unit_type == self.BASE:
            self.base_unit = None
            self.conversion_factor = Decimal("1")
        super().save(*args, **kwargs)

    def to_base(self, quantity):
        """Convert ``quantity`` of this unit into base units."""
        return Decimal(quantity) * self.conversion_factor


class Product(SoftDeleteModel):
    """
    A sellable item. Stock, cost and price live on its batches.
    """

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="products")
    name = models.CharField(max_length=255)
    sku = models.CharField(max_length=100)
    barcode = models.CharField(max_length=100, blank=True, db_index=True)
    category = models.ForeignKey(
        Category, on_delete=models.SET_NULL, null=True, blank=True, related_name="products"
    )
    brand = models.ForeignKey(
        Brand, on_delete=models.SET_NULL, null=True, blank=True, related_name="products"
    )
    unit = models.ForeignKey(
        Unit, on_delete=models.SET_NULL, null=True, blank=True, related_name="products"
    )
    tags = models.JSONField(default=list, blank=True)
    color = models.CharField(max_length=50, blank=True)
    size = models.CharField(max_length=50, blank=True)
    description = models.TextField(blank=True)
    alert_quantity = models.DecimalField(
        **QUANTITY_FIELD,
        null=True,
        blank=True,
        help_text="Low stock threshold; the tenant default applies when empty",
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "inventory_products"
        ordering = ["name"]
        unique_together = [["tenant", "sku"]]
        indexes = [
            models.Index(fields=["tenant", "name"], name="product_tenant_name_idx"),
            models.Index(fields=["tenant", "category"], name="product_tenant_category_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.sku})"

    def live_batches(self, warehouse=None):
        batches = self.batches.filter(is_depleted=False, remaining__gt=0)
        if warehouse is not None:
            batches = batches.filter(warehouse=warehouse)
        return batches

    def total_stock(self, warehouse=None):
        total = self.live_batches(warehouse).aggregate(total=Sum("remaining"))["total"]
        return total or Decimal("0")

    def current_selling_price(self, warehouse=None):
        """Selling price of the batch that FIFO would sell next."""
        head = self.live_batches(warehouse).order_by("received_at", "id").first()
        return head.selling_price if head else None

    def low_stock_threshold(self):
        if self.alert_quantity is not None:
            return self.alert_quantity
        return Decimal(settings.RETAILOPS_DEFAULT_LOW_STOCK_THRESHOLD)


class ProductBatch(models.Model):
    """
    A received lot of a product in one warehouse.

    ``remaining`` only moves through the FIFO engine; ``is_depleted`` is true
    exactly when ``remaining`` is zero.
    """

    PURCHASE = "PURCHASE"
    TRANSFER = "TRANSFER"
    ADJUSTMENT = "ADJUSTMENT"
    MANUAL = "MANUAL"
    RETURN = "RETURN"

    SOURCE_CHOICES = [
        (PURCHASE, "Purchase"),
        (TRANSFER, "Stock transfer"),
        (ADJUSTMENT, "Stock adjustment"),
        (MANUAL, "Manual entry"),
        (RETURN, "Customer return"),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="product_batches")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="batches")
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name="batches")
    batch_number = models.CharField(max_length=50)
    unit_cost = models.DecimalField(
        **MONEY_FIELD, validators=[MinValueValidator(Decimal("0"))]
    )
    selling_price = models.DecimalField(
        **MONEY_FIELD, validators=[MinValueValidator(Decimal("0"))]
    )
    quantity = models.DecimalField(**QUANTITY_FIELD, validators=[MinValueValidator(Decimal("0"))])
    remaining = models.DecimalField(**QUANTITY_FIELD, validators=[MinValueValidator(Decimal("0"))])
    is_depleted = models.BooleanField(default=False)
    depleted_at = models.DateTimeField(null=True, blank=True)
    expiry_date = models.DateField(null=True, blank=True)
    received_at = models.DateTimeField(default=timezone.now, db_index=True)
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default=MANUAL)
    purchase_item = models.ForeignKey(
        "procurement.PurchaseItem",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="batches",
    )
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "inventory_product_batches"
        ordering = ["received_at", "id"]
        verbose_name_plural = "Product batches"
        unique_together = [["tenant", "batch_number"]]
        indexes = [
            models.Index(
                fields=["product", "warehouse", "is_depleted"], name="batch_fifo_lookup_idx"
            ),
            models.Index(fields=["tenant", "expiry_date"], name="batch_expiry_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(remaining__gte=0) & models.Q(remaining__lte=models.F("quantity")),
                name="batch_remaining_within_quantity",
            ),
        ]

    def __str__(self):
        return f"{self.batch_number} - {self.product.name} ({self.remaining}/{self.quantity})"

    def save(self, *args, **kwargs):
        if not self.batch_number:
            self.batch_number = generate_daily_number(
                ProductBatch, self.tenant, "batch_number", "BATCH"
            )
        if self.remaining is None:
            self.remaining = self.quantity
        self.sync_depletion()
        super().save(*args, **kwargs)

    def sync_depletion(self):
        """Keep ``is_depleted``/``depleted_at`` consistent with ``remaining``."""
        if self.remaining <= 0:
            if not self.is_depleted:
                self.is_depleted = True
                self.depleted_at = timezone.now()
        else:
            self.is_depleted = False
            self.depleted_at = None

    @property
    def cost_value(self):
        return self.remaining * self.unit_cost

    @property
    def retail_value(self):
        return self.remaining * self.selling_price


class StockAdjustment(models.Model):
    """
    Manual correction of stock: ADD creates an adjustment batch, REMOVE
    consumes FIFO (damage, shrinkage, count corrections).
    """

    ADD = "ADD"
    REMOVE = "REMOVE"

    ADJUSTMENT_TYPE_CHOICES = [
        (ADD, "Add stock"),
        (REMOVE, "Remove stock"),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="stock_adjustments")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="adjustments")
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name="adjustments")
    adjustment_type = models.CharField(max_length=10, choices=ADJUSTMENT_TYPE_CHOICES)
    quantity = models.DecimalField(**QUANTITY_FIELD)
    unit_cost = models.DecimalField(**MONEY_FIELD, null=True, blank=True)
    total_cost = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    reason = models.CharField(max_length=255, blank=True)
    batch = models.ForeignKey(
        ProductBatch, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "inventory_stock_adjustments"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.get_adjustment_type_display()} {self.quantity} x {self.product.name}"


class StockTransfer(SoftDeleteModel):
    """
    Movement of stock between two warehouses of the same tenant.

    pending -> in_transit: source batches are consumed FIFO
    in_transit -> completed: destination batches are created at transfer cost
    pending/in_transit -> cancelled: consumed stock is put back
    """

    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (IN_TRANSIT, "In Transit"),
        (COMPLETED, "Completed"),
        (CANCELLED, "Cancelled"),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="stock_transfers")
    transfer_number = models.CharField(max_length=50, help_text="e.g. TRF-20240115-0001")
    from_warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="transfers_out"
    )
    to_warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="transfers_in"
    )
    status = FSMField(default=PENDING, choices=STATUS_CHOICES, protected=False)
    notes = models.TextField(blank=True)
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="requested_transfers",
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_transfers",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "inventory_stock_transfers"
        ordering = ["-created_at"]
        unique_together = [["tenant", "transfer_number"]]
        indexes = [
            models.Index(fields=["tenant", "status"], name="transfer_tenant_status_idx"),
        ]

    def __str__(self):
        return f"{self.transfer_number} ({self.from_warehouse.name} -> {self.to_warehouse.name})"

    def clean(self):
        if self.from_warehouse_id and self.from_warehouse_id == self.to_warehouse_id:
            raise ValidationError("Source and destination warehouses must differ.")

    def save(self, *args, **kwargs):
        """Generate transfer number if not provided."""
        if not self.transfer_number:
            self.transfer_number = generate_daily_number(
                StockTransfer, self.tenant, "transfer_number", "TRF"
            )
        super().save(*args, **kwargs)

    @transition(field=status, source=PENDING, target=IN_TRANSIT)
    def mark_in_transit(self, user):
        self.approved_by = user
        self.approved_at = timezone.now()

    @transition(field=status, source=IN_TRANSIT, target=COMPLETED)
    def mark_completed(self):
        self.completed_at = timezone.now()

    @transition(field=status, source=[PENDING, IN_TRANSIT], target=CANCELLED)
    def mark_cancelled(self):
        self.cancelled_at = timezone.now()

    def total_value(self):
        return sum((item.quantity * item.unit_cost for item in self.items.all()), Decimal("0"))


class StockTransferItem(models.Model):
    transfer = models.ForeignKey(StockTransfer, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="+")
    quantity = models.DecimalField(**QUANTITY_FIELD, validators=[MinValueValidator(Decimal("0.001"))])
    unit_cost = models.DecimalField(
        **MONEY_FIELD,
        default=Decimal("0.00"),
        help_text="Weighted cost of the source batches consumed at approval",
    )
    selling_price = models.DecimalField(**MONEY_FIELD, null=True, blank=True)

    class Meta:
        db_table = "inventory_stock_transfer_items"

    def __str__(self):
        return f"{self.quantity} x {self.product.name}"


class StockTransferAllocation(models.Model):
    """Source batch quantities taken for one transfer line."""

    item = models.ForeignKey(StockTransferItem, on_delete=models.CASCADE, related_name="allocations")
    batch = models.ForeignKey(ProductBatch, on_delete=models.PROTECT, related_name="+")
    quantity = models.DecimalField(**QUANTITY_FIELD)
    unit_cost = models.DecimalField(**MONEY_FIELD)

    class Meta:
        db_table = "inventory_stock_transfer_allocations"
