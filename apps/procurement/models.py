"""
Procurement models for suppliers, purchases and returns to suppliers.

Receiving a purchase creates one PURCHASE batch per line at its landed unit
cost; returning goods takes units back out of those same batches.
"""

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Max, Sum
from django.utils import timezone

from django_fsm import FSMField, transition

from apps.core.models import SoftDeleteModel, Tenant, Warehouse
from apps.core.utils import generate_daily_number
from apps.inventory.models import MONEY_FIELD, QUANTITY_FIELD, Product


class Supplier(SoftDeleteModel):
    """
    Supplier model for managing vendor relationships.
    """

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="suppliers",
        help_text="Tenant that owns this supplier",
    )

    # Basic Information
    name = models.CharField(max_length=255, help_text="Supplier company name")
    contact_person = models.CharField(
        max_length=255, blank=True, help_text="Primary contact person name"
    )

    # Contact Information
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)

    # Business Information
    tax_number = models.CharField(max_length=50, blank=True, help_text="Tax identification number")
    payment_terms = models.CharField(
        max_length=100, blank=True, help_text="Payment terms (e.g., Net 30, COD)"
    )

    is_active = models.BooleanField(default=True)
    notes = models.TextField(blank=True, help_text="Internal notes about supplier")

    class Meta:
        db_table = "procurement_suppliers"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["tenant", "is_active"], name="supplier_tenant_active_idx"),
        ]

    def __str__(self):
        return self.name

    def get_statistics(self):
        """Purchase count, total purchased and last purchase date (received purchases only)."""
        received = self.purchases.filter(status=Purchase.RECEIVED)
        totals = received.aggregate(total=Sum("total"), last=Max("purchase_date"))
        returned = (
            PurchaseReturn.objects.filter(supplier=self).aggregate(total=Sum("total_amount"))[
                "total"
            ]
            or Decimal("0.00")
        )
        return {
            "purchase_count": received.count(),
            "open_orders": self.purchases.filter(status=Purchase.ORDERED).count(),
            "total_purchased": totals["total"] or Decimal("0.00"),
            "total_returned": returned,
            "last_purchase_date": totals["last"],
        }


class Purchase(SoftDeleteModel):
    """
    Purchase of goods from a supplier into one warehouse.

    ordered -> received: batches are created at landed cost
    ordered -> cancelled
    """

    ORDERED = "ordered"
    RECEIVED = "received"
    CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (ORDERED, "Ordered"),
        (RECEIVED, "Received"),
        (CANCELLED, "Cancelled"),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="purchases")
    purchase_number = models.CharField(max_length=50, help_text="e.g. PUR-20240115-0001")
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name="purchases")
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name="purchases")
    status = FSMField(default=ORDERED, choices=STATUS_CHOICES, protected=False)

    # Financial Information
    subtotal = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    transport_cost = models.DecimalField(
        **MONEY_FIELD, default=Decimal("0.00"), validators=[MinValueValidator(Decimal("0.00"))]
    )
    tax = models.DecimalField(
        **MONEY_FIELD, default=Decimal("0.00"), validators=[MinValueValidator(Decimal("0.00"))]
    )
    other_expenses = models.DecimalField(
        **MONEY_FIELD, default=Decimal("0.00"), validators=[MinValueValidator(Decimal("0.00"))]
    )
    total = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))

    purchase_date = models.DateField(default=timezone.localdate)
    notes = models.TextField(blank=True)
    received_at = models.DateTimeField(null=True, blank=True)
    received_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="received_purchases",
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "procurement_purchases"
        ordering = ["-purchase_date", "-created_at"]
        unique_together = [["tenant", "purchase_number"]]
        indexes = [
            models.Index(fields=["tenant", "status"], name="purchase_tenant_status_idx"),
            models.Index(fields=["tenant", "purchase_date"], name="purchase_tenant_date_idx"),
        ]

    def __str__(self):
        return f"{self.purchase_number} - {self.supplier.name}"

    def save(self, *args, **kwargs):
        if not self.purchase_number:
            self.purchase_number = generate_daily_number(
                Purchase, self.tenant, "purchase_number", "PUR"
            )
        super().save(*args, **kwargs)

    @property
    def extra_costs(self):
        return self.transport_cost + self.tax + self.other_expenses

    def calculate_totals(self):
        """Recompute subtotal and total from the line items."""
        self.subtotal = sum((item.line_total for item in self.items.all()), Decimal("0.00"))
        self.total = self.subtotal + self.extra_costs

    @transition(field=status, source=ORDERED, target=RECEIVED)
    def mark_received(self, user):
        self.received_at = timezone.now()
        self.received_by = user

    @transition(field=status, source=ORDERED, target=CANCELLED)
    def mark_cancelled(self):
        self.cancelled_at = timezone.now()


class PurchaseItem(models.Model):
    purchase = models.ForeignKey(Purchase, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="purchase_items")
    quantity = models.DecimalField(**QUANTITY_FIELD, validators=[MinValueValidator(Decimal("0.001"))])
    unit_price = models.DecimalField(**MONEY_FIELD, validators=[MinValueValidator(Decimal("0"))])
    selling_price = models.DecimalField(
        **MONEY_FIELD, validators=[MinValueValidator(Decimal("0"))]
    )
    line_total = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    landed_unit_cost = models.DecimalField(
        **MONEY_FIELD,
        null=True,
        blank=True,
        help_text="Unit price plus this line's share of transport, tax and other costs",
    )
    expiry_date = models.DateField(null=True, blank=True)
    returned_quantity = models.DecimalField(**QUANTITY_FIELD, default=Decimal("0"))

    class Meta:
        db_table = "procurement_purchase_items"

    def __str__(self):
        return f"{self.quantity} x {self.product.name}"

    def save(self, *args, **kwargs):
        self.line_total = (self.quantity * self.unit_price).quantize(Decimal("0.01"))
        super().save(*args, **kwargs)

    @property
    def returnable_quantity(self):
        return self.quantity - self.returned_quantity


class PurchaseReturn(models.Model):
    """Goods sent back to a supplier from a received purchase."""

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="purchase_returns")
    return_number = models.CharField(max_length=50, help_text="e.g. PRET-20240115-0001")
    purchase = models.ForeignKey(Purchase, on_delete=models.PROTECT, related_name="returns")
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name="returns")
    reason = models.CharField(max_length=255, blank=True)
    total_amount = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "procurement_purchase_returns"
        ordering = ["-created_at"]
        unique_together = [["tenant", "return_number"]]

    def __str__(self):
        return self.return_number

    def save(self, *args, **kwargs):
        if not self.return_number:
            self.return_number = generate_daily_number(
                PurchaseReturn, self.tenant, "return_number", "PRET"
            )
        super().save(*args, **kwargs)


class PurchaseReturnItem(models.Model):
    purchase_return = models.ForeignKey(
        PurchaseReturn, on_delete=models.CASCADE, related_name="items"
    )
    purchase_item = models.ForeignKey(
        PurchaseItem, on_delete=models.PROTECT, related_name="return_items"
    )
    batch = models.ForeignKey(
        "inventory.ProductBatch", on_delete=models.PROTECT, related_name="+"
    )
    quantity = models.DecimalField(**QUANTITY_FIELD)
    unit_cost = models.DecimalField(**MONEY_FIELD)
    line_total = models.DecimalField(**MONEY_FIELD)

    class Meta:
        db_table = "procurement_purchase_return_items"

    def __str__(self):
        return f"{self.quantity} x {self.purchase_item.product.name}"
