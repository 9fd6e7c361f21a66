"""
HR models: departments, salary structures, employee profiles, payroll,
salary and leave requests, and awards.
"""

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from apps.core.models import SoftDeleteModel, Tenant
from apps.core.utils import money

MONEY_FIELD = {"max_digits": 14, "decimal_places": 2}


class Department(SoftDeleteModel):
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="departments")
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    head = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="headed_departments",
    )

    class Meta:
        db_table = "hr_departments"
        ordering = ["name"]

    def __str__(self):
        return self.name


class SalaryStructure(SoftDeleteModel):
    """
    A pay template: basic salary plus allowance and deduction components.

    Components are ``{"name": str, "type": "fixed" | "percentage", "value": number}``;
    a percentage component is a percentage of the basic salary.
    """

    FIXED = "fixed"
    PERCENTAGE = "percentage"
    COMPONENT_TYPES = (FIXED, PERCENTAGE)

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="salary_structures")
    name = models.CharField(max_length=255)
    basic_salary = models.DecimalField(**MONEY_FIELD, validators=[MinValueValidator(Decimal("0"))])
    allowances = models.JSONField(default=list, blank=True)
    deductions = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "hr_salary_structures"
        ordering = ["name"]

    def __str__(self):
        return self.name

    def _component_total(self, components):
        total = Decimal("0.00")
        for component in components or []:
            value = Decimal(str(component.get("value", 0)))
            if component.get("type") == self.PERCENTAGE:
                total += self.basic_salary * value / Decimal("100")
            else:
                total += value
        return money(total)

    def allowance_total(self):
        return self._component_total(self.allowances)

    def deduction_total(self):
        return self._component_total(self.deductions)

    def gross(self):
        return money(self.basic_salary + self.allowance_total())

    def net(self):
        return money(self.gross() - self.deduction_total())


class EmployeeProfile(models.Model):
    """HR details for a staff user."""

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="employee_profiles")
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="employee_profile"
    )
    department = models.ForeignKey(
        Department, on_delete=models.SET_NULL, null=True, blank=True, related_name="employees"
    )
    salary_structure = models.ForeignKey(
        SalaryStructure,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="employees",
    )
    designation = models.CharField(max_length=100, blank=True)
    joining_date = models.DateField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "hr_employee_profiles"

    def __str__(self):
        return f"{self.user.username} profile"


class SalaryPayment(models.Model):
    """One month's pay for one employee."""

    PENDING = "pending"
    PAID = "paid"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (PAID, "Paid"),
    ]

    PAYMENT_METHOD_CHOICES = [
        ("cash", "Cash"),
        ("bank", "Bank Transfer"),
        ("mobile", "Mobile Money"),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="salary_payments")
    employee = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="salary_payments"
    )
    salary_structure = models.ForeignKey(
        SalaryStructure, on_delete=models.SET_NULL, null=True, blank=True, related_name="payments"
    )
    pay_month = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(12)]
    )
    pay_year = models.PositiveIntegerField()
    basic_salary = models.DecimalField(**MONEY_FIELD)
    total_allowances = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    total_deductions = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    gross_salary = models.DecimalField(**MONEY_FIELD)
    net_salary = models.DecimalField(**MONEY_FIELD)
    bonus = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))

    status = FSMField(default=PENDING, choices=STATUS_CHOICES, protected=False)
    paid_at = models.DateTimeField(null=True, blank=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, blank=True)
    account = models.ForeignKey(
        "accounting.Account",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="salary_payments",
    )
    expense = models.OneToOneField(
        "accounting.Expense",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="salary_payment",
    )
    paid_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "hr_salary_payments"
        ordering = ["-pay_year", "-pay_month", "employee__username"]
        unique_together = [["employee", "pay_month", "pay_year"]]
        indexes = [
            models.Index(fields=["tenant", "pay_year", "pay_month"], name="salary_tenant_period_idx"),
        ]

    def __str__(self):
        return f"{self.employee.username} {self.pay_year}-{self.pay_month:02d}"

    @property
    def amount_due(self):
        return money(self.net_salary + self.bonus)

    @transition(field=status, source=PENDING, target=PAID)
    def mark_paid(self, user, account=None, payment_method="cash"):
        self.paid_at = timezone.now()
        self.paid_by = user
        self.account = account
        self.payment_method = payment_method


class ReviewableRequest(models.Model):
    """Base for employee requests a manager approves or rejects once."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (APPROVED, "Approved"),
        (REJECTED, "Rejected"),
    ]

    status = FSMField(default=PENDING, choices=STATUS_CHOICES, protected=False)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    review_note = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True

    def _review(self, user, note):
        self.reviewed_by = user
        self.reviewed_at = timezone.now()
        self.review_note = note

    @transition(field="status", source=PENDING, target=APPROVED)
    def approve(self, user, note=""):
        self._review(user, note)

    @transition(field="status", source=PENDING, target=REJECTED)
    def reject(self, user, note=""):
        self._review(user, note)


class SalaryRequest(ReviewableRequest):
    """An advance or adjustment an employee asks for."""

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="salary_requests")
    employee = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="salary_requests"
    )
    amount = models.DecimalField(**MONEY_FIELD, validators=[MinValueValidator(Decimal("0.01"))])
    reason = models.TextField(blank=True)

    class Meta:
        db_table = "hr_salary_requests"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.employee.username} requests {self.amount}"


class LeaveRequest(ReviewableRequest):
    SICK = "sick"
    CASUAL = "casual"
    ANNUAL = "annual"
    UNPAID = "unpaid"
    OTHER = "other"

    LEAVE_TYPE_CHOICES = [
        (SICK, "Sick"),
        (CASUAL, "Casual"),
        (ANNUAL, "Annual"),
        (UNPAID, "Unpaid"),
        (OTHER, "Other"),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="leave_requests")
    employee = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="leave_requests"
    )
    leave_type = models.CharField(max_length=20, choices=LEAVE_TYPE_CHOICES, default=CASUAL)
    start_date = models.DateField()
    end_date = models.DateField()
    reason = models.TextField(blank=True)

    class Meta:
        db_table = "hr_leave_requests"
        ordering = ["-start_date"]

    def __str__(self):
        return f"{self.employee.username} {self.leave_type} {self.start_date}..{self.end_date}"

    def clean(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError({"end_date": "End date cannot be before start date."})

    @property
    def days(self):
        return (self.end_date - self.start_date).days + 1


class Award(models.Model):
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="awards")
    employee = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="awards"
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    gift = models.CharField(max_length=255, blank=True)
    cash_amount = models.DecimalField(**MONEY_FIELD, default=Decimal("0.00"))
    awarded_on = models.DateField(default=timezone.localdate)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "hr_awards"
        ordering = ["-awarded_on"]

    def __str__(self):
        return f"{self.title} ({self.employee.username})"
