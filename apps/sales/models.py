"""
Sales models for POS, customers, returns and the cash drawer.

Every SaleItem keeps the batch allocations FIFO handed out for it
(SaleItemAllocation); COGS, voids and restocking returns all work from those
rows rather than re-walking batches.
"""

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from apps.core.models import SoftDeleteModel, Tenant, Warehouse
from apps.core.utils import generate_daily_number, generate_sequence_number
from apps.inventory.models import MONEY_FIELD, QUANTITY_FIELD, Product, ProductBatch


class Customer(SoftDeleteModel):
    """
    Customer with purchase aggregates and loyalty tier.

    The tier follows lifetime spend using ``RETAILOPS_LOYALTY_TIERS``.
    """

    # Loyalty tier choices
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"

    TIER_CHOICES = [
        (BRONZE, "Bronze"),
        (SILVER, "Silver"),
        (GOLD, "Gold"),
        (PLATINUM, "Platinum"),
    ]

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="customers",
        help_text="Tenant that owns this customer",
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)

    # Loyalty and purchase tracking
    tier = models.CharField(max_length=20, choices=TIER_CHOICES, default=BRONZE)
    loyalty_points = models.IntegerField(default=0, validators=[MinValueValidator(0)])
    total_spent = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    total_orders = models.PositiveIntegerField(default=0)
    last_purchase_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "sales_customers"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["tenant", "phone"], name="cust_tenant_phone_idx"),
            models.Index(fields=["tenant", "email"], name="cust_tenant_email_idx"),
            models.Index(fields=["tenant", "tier"], name="cust_tenant_tier_idx"),
        ]

    def __str__(self):
        return self.name

    @staticmethod
    def tier_for(total_spent):
        for tier, threshold in settings.RETAILOPS_LOYALTY_TIERS:
            if total_spent >= threshold:
                return tier
        return Customer.BRONZE

    def evaluate_tier(self):
        """Set ``tier`` from ``total_spent``; returns True if it changed."""
        new_tier = self.tier_for(self.total_spent)
        changed = new_tier != self.tier
        self.tier = new_tier
        return changed


class Sale(models.Model):
    """
    A completed POS sale.

    completed -> voided: every allocation goes back to its batch
    completed -> returned: all units came back through returns
    """

    COMPLETED = "completed"
    VOIDED = "voided"
    RETURNED = "returned"

    STATUS_CHOICES = [
        (COMPLETED, "Completed"),
        (VOIDED, "Voided"),
        (RETURNED, "Returned"),
    ]

    CASH = "cash"
    CARD = "card"
    MOBILE = "mobile"

    PAYMENT_METHOD_CHOICES = [
        (CASH, "Cash"),
        (CARD, "Card"),
        (MOBILE, "Mobile payment"),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="sales")
    sale_number = models.CharField(max_length=50, help_text="e.g. SALE-00000001")
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name="sales")
    customer = models.ForeignKey(
        Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name="sales"
    )
    cashier = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="sales"
    )
    status = FSMField(default=COMPLETED, choices=STATUS_CHOICES, protected=False)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default=CASH)

    # Financial details
    subtotal = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    discount = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    tax = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    total = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    cash_received = models.DecimalField(**MONEY_FIELD, null=True, blank=True)
    change_given = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    total_cost = models.DecimalField(
        **MONEY_FIELD, default=Decimal("0.00"), help_text="Cost of goods sold (FIFO)"
    )
    profit = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    loyalty_points_earned = models.IntegerField(default=0)

    sale_date = models.DateTimeField(default=timezone.now, db_index=True)
    notes = models.TextField(blank=True)

    # Void details
    is_voided = models.BooleanField(default=False)
    void_reason = models.CharField(max_length=255, blank=True)
    voided_at = models.DateTimeField(null=True, blank=True)
    voided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="voided_sales",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "sales"
        ordering = ["-sale_date"]
        unique_together = [["tenant", "sale_number"]]
        indexes = [
            models.Index(fields=["tenant", "sale_date"], name="sale_tenant_date_idx"),
            models.Index(fields=["tenant", "status"], name="sale_tenant_status_idx"),
            models.Index(fields=["warehouse", "sale_date"], name="sale_warehouse_date_idx"),
        ]

    def __str__(self):
        return f"{self.sale_number} - {self.total}"

    def save(self, *args, **kwargs):
        if not self.sale_number:
            self.sale_number = generate_sequence_number(Sale, self.tenant, "sale_number", "SALE")
        super().save(*args, **kwargs)

    @property
    def net_sales(self):
        """Revenue excluding tax."""
        return self.subtotal - self.discount

    def has_returns(self):
        return self.returns.exclude(status=SellReturn.REJECTED).exists()

    def is_fully_returned(self):
        return all(item.returned_quantity >= item.quantity for item in self.items.all())

    @transition(field=status, source=COMPLETED, target=VOIDED)
    def mark_voided(self, user, reason):
        self.is_voided = True
        self.void_reason = reason
        self.voided_at = timezone.now()
        self.voided_by = user

    @transition(field=status, source=COMPLETED, target=RETURNED)
    def mark_returned(self):
        pass


class SaleItem(models.Model):
    sale = models.ForeignKey(Sale, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="sale_items")
    quantity = models.DecimalField(**QUANTITY_FIELD, validators=[MinValueValidator(Decimal("0.001"))])
    unit_price = models.DecimalField(**MONEY_FIELD)
    line_total = models.DecimalField(**MONEY_FIELD)
    cost_of_goods = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    returned_quantity = models.DecimalField(**QUANTITY_FIELD, default=Decimal("0"))

    class Meta:
        db_table = "sale_items"

    def __str__(self):
        return f"{self.quantity} x {self.product.name}"

    @property
    def returnable_quantity(self):
        return self.quantity - self.returned_quantity


class SaleItemAllocation(models.Model):
    """Units of one batch sold on a sale line, at that batch's cost."""

    sale_item = models.ForeignKey(SaleItem, on_delete=models.CASCADE, related_name="allocations")
    batch = models.ForeignKey(ProductBatch, on_delete=models.PROTECT, related_name="sale_allocations")
    quantity = models.DecimalField(**QUANTITY_FIELD)
    unit_cost = models.DecimalField(**MONEY_FIELD)
    restored_quantity = models.DecimalField(**QUANTITY_FIELD, default=Decimal("0"))

    class Meta:
        db_table = "sale_item_allocations"
        ordering = ["id"]

    def __str__(self):
        return f"{self.quantity} from {self.batch.batch_number}"

    @property
    def restorable_quantity(self):
        return self.quantity - self.restored_quantity


class SellReturn(models.Model):
    """
    Customer return against a sale.

    pending -> completed: refund issued, stock optionally restored
    pending -> rejected
    """

    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (COMPLETED, "Completed"),
        (REJECTED, "Rejected"),
    ]

    REASON_CHOICES = [
        ("DEFECTIVE", "Defective"),
        ("WRONG_ITEM", "Wrong Item"),
        ("CUSTOMER_REQUEST", "Customer Request"),
        ("DAMAGED", "Damaged"),
        ("EXPIRED", "Expired"),
        ("OTHER", "Other"),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="sell_returns")
    return_number = models.CharField(max_length=50, help_text="e.g. RET-20240115-0001")
    sale = models.ForeignKey(Sale, on_delete=models.PROTECT, related_name="returns")
    customer = models.ForeignKey(
        Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name="returns"
    )
    reason = models.CharField(max_length=20, choices=REASON_CHOICES, default="OTHER")
    status = FSMField(default=PENDING, choices=STATUS_CHOICES, protected=False)
    refund_amount = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    cost_reversed = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    restock = models.BooleanField(default=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name="+"
    )
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="processed_returns",
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "sell_returns"
        ordering = ["-created_at"]
        unique_together = [["tenant", "return_number"]]
        indexes = [
            models.Index(fields=["tenant", "status"], name="return_tenant_status_idx"),
        ]

    def __str__(self):
        return self.return_number

    def save(self, *args, **kwargs):
        if not self.return_number:
            self.return_number = generate_daily_number(
                SellReturn, self.tenant, "return_number", "RET"
            )
        super().save(*args, **kwargs)

    @transition(field=status, source=PENDING, target=COMPLETED)
    def mark_completed(self, user):
        self.processed_by = user
        self.processed_at = timezone.now()

    @transition(field=status, source=PENDING, target=REJECTED)
    def mark_rejected(self, user):
        self.processed_by = user
        self.processed_at = timezone.now()


class SellReturnItem(models.Model):
    sell_return = models.ForeignKey(SellReturn, on_delete=models.CASCADE, related_name="items")
    sale_item = models.ForeignKey(SaleItem, on_delete=models.PROTECT, related_name="return_items")
    quantity = models.DecimalField(**QUANTITY_FIELD)
    refund_amount = models.DecimalField(**MONEY_FIELD)
    cost_reversed = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))

    class Meta:
        db_table = "sell_return_items"

    def __str__(self):
        return f"{self.quantity} x {self.sale_item.product.name}"


class CashDrawerEvent(models.Model):
    """
    Movement of cash in a warehouse's till.

    Refunds are ``cash_out`` events linked to the return that caused them.
    """

    NO_SALE = "no_sale"
    SALE = "sale"
    CASH_IN = "cash_in"
    CASH_OUT = "cash_out"
    COUNT = "count"

    EVENT_TYPE_CHOICES = [
        (NO_SALE, "No sale (drawer opened)"),
        (SALE, "Cash sale"),
        (CASH_IN, "Cash in"),
        (CASH_OUT, "Cash out"),
        (COUNT, "Cash count"),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="drawer_events")
    warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="drawer_events"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name="+"
    )
    event_type = models.CharField(max_length=20, choices=EVENT_TYPE_CHOICES)
    amount = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    sale = models.ForeignKey(
        Sale, on_delete=models.SET_NULL, null=True, blank=True, related_name="drawer_events"
    )
    sell_return = models.ForeignKey(
        SellReturn, on_delete=models.SET_NULL, null=True, blank=True, related_name="drawer_events"
    )
    note = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = "cash_drawer_events"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["tenant", "warehouse", "created_at"], name="drawer_lookup_idx"),
        ]

    def __str__(self):
        return f"{self.get_event_type_display()} {self.amount}"
