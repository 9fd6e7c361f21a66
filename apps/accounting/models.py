"""
Accounting models: payment accounts, expenses, other income and transfers.

Balances are kept on ``Account.balance``. A paid expense debits its account,
received income credits it; soft-deleting either reverses the effect and
restoring re-applies it.
"""

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone

from apps.core.models import SoftDeleteModel, Tenant, Warehouse
from apps.core.utils import generate_daily_number

MONEY_FIELD = {"max_digits": 14, "decimal_places": 2}


class Account(SoftDeleteModel):
    """
    A payment account (cash box, bank account, credit line) or a balance
    sheet account the business tracks by hand.
    """

    CASH = "cash"
    BANK = "bank"
    CREDIT = "credit"
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"

    ACCOUNT_TYPE_CHOICES = [
        (CASH, "Cash"),
        (BANK, "Bank"),
        (CREDIT, "Credit"),
        (ASSET, "Asset"),
        (LIABILITY, "Liability"),
        (EQUITY, "Equity"),
    ]

    ASSET_TYPES = (CASH, BANK, ASSET)
    LIABILITY_TYPES = (LIABILITY, CREDIT)

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="accounts")
    name = models.CharField(max_length=255)
    account_number = models.CharField(max_length=50, blank=True)
    account_type = models.CharField(max_length=20, choices=ACCOUNT_TYPE_CHOICES, default=CASH)
    opening_balance = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    balance = models.DecimalField(
        **MONEY_FIELD, default=Decimal("0.00"), help_text="Current book balance"
    )
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "accounts"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["tenant", "account_type"], name="account_tenant_type_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.get_account_type_display()})"

    def save(self, *args, **kwargs):
        if self._state.adding and not self.balance:
            self.balance = self.opening_balance
        super().save(*args, **kwargs)

    def adjust_balance(self, delta):
        """Add ``delta`` to the balance with a single UPDATE and refresh it."""
        Account.all_objects.filter(pk=self.pk).update(balance=F("balance") + delta)
        self.refresh_from_db(fields=["balance"])

    @property
    def is_credit_account(self):
        return self.account_type in self.LIABILITY_TYPES


class BalanceEffectModel(SoftDeleteModel):
    """
    Base for records that move money in or out of an account once they
    reach their settled status.
    """

    settled_status = None
    sign = 0

    class Meta:
        abstract = True

    def affects_balance(self):
        return (
            self.account_id is not None
            and not self.del_flag
            and self.status == self.settled_status
        )

    def apply_balance(self, direction=1):
        if self.affects_balance():
            self.account.adjust_balance(self.sign * direction * self.amount)

    @transaction.atomic
    def soft_delete(self, user=None):
        self.apply_balance(-1)
        super().soft_delete(user)

    @transaction.atomic
    def restore(self, user=None):
        super().restore(user)
        self.apply_balance(1)


class Expense(BalanceEffectModel):
    """
    Money spent by the business (rent, utilities, salaries ...).
    """

    PENDING = "pending"
    PAID = "paid"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (PAID, "Paid"),
    ]

    settled_status = PAID
    sign = -1

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="expenses")
    reference = models.CharField(max_length=50, help_text="e.g. EXP-20240115-0001")
    category = models.CharField(max_length=100, help_text="e.g. Rent, Utilities, Salary")
    amount = models.DecimalField(**MONEY_FIELD, validators=[MinValueValidator(Decimal("0.01"))])
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, null=True, blank=True, related_name="expenses"
    )
    warehouse = models.ForeignKey(
        Warehouse, on_delete=models.SET_NULL, null=True, blank=True, related_name="expenses"
    )
    expense_date = models.DateField(default=timezone.localdate, db_index=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PAID)
    description = models.TextField(blank=True)

    class Meta:
        db_table = "expenses"
        ordering = ["-expense_date", "-id"]
        unique_together = [["tenant", "reference"]]
        indexes = [
            models.Index(fields=["tenant", "expense_date"], name="expense_tenant_date_idx"),
            models.Index(fields=["tenant", "category"], name="expense_tenant_category_idx"),
        ]

    def __str__(self):
        return f"{self.reference} {self.category} {self.amount}"

    def save(self, *args, **kwargs):
        if not self.reference:
            self.reference = generate_daily_number(Expense, self.tenant, "reference", "EXP")
        super().save(*args, **kwargs)


class Income(BalanceEffectModel):
    """
    Money received outside of POS sales (services, interest, other).
    """

    PENDING = "pending"
    RECEIVED = "received"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (RECEIVED, "Received"),
    ]

    CATEGORY_CHOICES = [
        ("Sales", "Sales"),
        ("Service", "Service"),
        ("Interest", "Interest"),
        ("Other", "Other"),
    ]

    settled_status = RECEIVED
    sign = 1

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="incomes")
    reference = models.CharField(max_length=50, help_text="e.g. INC-20240115-0001")
    category = models.CharField(max_length=100, default="Other")
    amount = models.DecimalField(**MONEY_FIELD, validators=[MinValueValidator(Decimal("0.01"))])
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, null=True, blank=True, related_name="incomes"
    )
    income_date = models.DateField(default=timezone.localdate, db_index=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=RECEIVED)
    description = models.TextField(blank=True)

    class Meta:
        db_table = "incomes"
        ordering = ["-income_date", "-id"]
        verbose_name_plural = "Income"
        unique_together = [["tenant", "reference"]]
        indexes = [
            models.Index(fields=["tenant", "income_date"], name="income_tenant_date_idx"),
        ]

    def __str__(self):
        return f"{self.reference} {self.category} {self.amount}"

    def save(self, *args, **kwargs):
        if not self.reference:
            self.reference = generate_daily_number(Income, self.tenant, "reference", "INC")
        super().save(*args, **kwargs)


class AccountTransfer(models.Model):
    """Money moved between two of the tenant's accounts."""

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="account_transfers")
    from_account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="outgoing_transfers"
    )
    to_account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="incoming_transfers"
    )
    amount = models.DecimalField(**MONEY_FIELD, validators=[MinValueValidator(Decimal("0.01"))])
    transfer_date = models.DateField(default=timezone.localdate, db_index=True)
    note = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        "core.User", on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "account_transfers"
        ordering = ["-transfer_date", "-id"]

    def __str__(self):
        return f"{self.from_account.name} -> {self.to_account.name}: {self.amount}"
