"""
Serializers for HR: departments, salary structures, payroll, requests and awards.
"""

from decimal import Decimal

from django.contrib.auth import get_user_model

from rest_framework import serializers

from apps.accounting.models import Account
from apps.core.serializers import TenantPrimaryKeyRelatedField

from .models import (
    Award,
    Department,
    EmployeeProfile,
    LeaveRequest,
    SalaryPayment,
    SalaryRequest,
    SalaryStructure,
)

User = get_user_model()


class DepartmentSerializer(serializers.ModelSerializer):
    head = TenantPrimaryKeyRelatedField(queryset=User.objects.all(), required=False, allow_null=True)
    head_name = serializers.CharField(source="head.username", read_only=True, default=None)
    employee_count = serializers.SerializerMethodField()

    class Meta:
        model = Department
        fields = ["id", "name", "description", "head", "head_name", "employee_count", "created_at"]
        read_only_fields = ["id", "created_at"]

    def get_employee_count(self, obj):
        return obj.employees.count()

    def validate_name(self, value):
        tenant = self.context["request"].user.tenant
        queryset = Department.objects.filter(tenant=tenant, name__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("A department with this name already exists.")
        return value


class SalaryComponentSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    type = serializers.ChoiceField(choices=SalaryStructure.COMPONENT_TYPES)
    value = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0"))

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        # Stored as JSON
        value["value"] = str(value["value"])
        return value


class SalaryStructureSerializer(serializers.ModelSerializer):
    allowances = SalaryComponentSerializer(many=True, required=False)
    deductions = SalaryComponentSerializer(many=True, required=False)
    allowance_total = serializers.SerializerMethodField()
    deduction_total = serializers.SerializerMethodField()
    gross = serializers.SerializerMethodField()
    net = serializers.SerializerMethodField()

    class Meta:
        model = SalaryStructure
        fields = [
            "id",
            "name",
            "basic_salary",
            "allowances",
            "deductions",
            "allowance_total",
            "deduction_total",
            "gross",
            "net",
            "is_active",
            "created_at",
        ]
        read_only_fields = ["id", "created_at"]

    def get_allowance_total(self, obj):
        return str(obj.allowance_total())

    def get_deduction_total(self, obj):
        return str(obj.deduction_total())

    def get_gross(self, obj):
        return str(obj.gross())

    def get_net(self, obj):
        return str(obj.net())

    def validate(self, attrs):
        basic = attrs.get("basic_salary", getattr(self.instance, "basic_salary", Decimal("0")))
        probe = SalaryStructure(
            basic_salary=basic,
            allowances=attrs.get("allowances", getattr(self.instance, "allowances", [])),
            deductions=attrs.get("deductions", getattr(self.instance, "deductions", [])),
        )
        if probe.net() < 0:
            raise serializers.ValidationError("Deductions exceed gross salary.")
        return attrs


class EmployeeProfileSerializer(serializers.ModelSerializer):
    department = TenantPrimaryKeyRelatedField(
        queryset=Department.objects.all(), required=False, allow_null=True
    )
    salary_structure = TenantPrimaryKeyRelatedField(
        queryset=SalaryStructure.objects.filter(is_active=True), required=False, allow_null=True
    )
    username = serializers.CharField(source="user.username", read_only=True)
    department_name = serializers.CharField(source="department.name", read_only=True, default=None)
    salary_structure_name = serializers.CharField(
        source="salary_structure.name", read_only=True, default=None
    )

    class Meta:
        model = EmployeeProfile
        fields = [
            "id",
            "user",
            "username",
            "department",
            "department_name",
            "salary_structure",
            "salary_structure_name",
            "designation",
            "joining_date",
        ]
        read_only_fields = ["id", "user"]


class SalaryPaymentSerializer(serializers.ModelSerializer):
    employee_name = serializers.CharField(source="employee.username", read_only=True)
    amount_due = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    expense_reference = serializers.CharField(
        source="expense.reference", read_only=True, default=None
    )

    class Meta:
        model = SalaryPayment
        fields = [
            "id",
            "employee",
            "employee_name",
            "pay_month",
            "pay_year",
            "basic_salary",
            "total_allowances",
            "total_deductions",
            "gross_salary",
            "net_salary",
            "bonus",
            "amount_due",
            "status",
            "paid_at",
            "payment_method",
            "account",
            "expense_reference",
        ]
        read_only_fields = fields


class PayrollGenerateSerializer(serializers.Serializer):
    month = serializers.IntegerField(min_value=1, max_value=12)
    year = serializers.IntegerField(min_value=2000, max_value=2100)


class SalaryPaySerializer(serializers.Serializer):
    account = TenantPrimaryKeyRelatedField(
        queryset=Account.objects.filter(is_active=True), required=False, allow_null=True
    )
    payment_method = serializers.ChoiceField(
        choices=SalaryPayment.PAYMENT_METHOD_CHOICES, default="cash"
    )
    bonus = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True
    )


class _RequestSerializer(serializers.ModelSerializer):
    employee = TenantPrimaryKeyRelatedField(queryset=User.objects.all(), required=False)
    employee_name = serializers.CharField(source="employee.username", read_only=True)
    reviewed_by_name = serializers.CharField(
        source="reviewed_by.username", read_only=True, default=None
    )

    review_fields = ["status", "reviewed_by_name", "reviewed_at", "review_note", "created_at"]


class SalaryRequestSerializer(_RequestSerializer):
    class Meta:
        model = SalaryRequest
        fields = ["id", "employee", "employee_name", "amount", "reason"] + (
            _RequestSerializer.review_fields
        )
        read_only_fields = ["id"] + _RequestSerializer.review_fields


class LeaveRequestSerializer(_RequestSerializer):
    days = serializers.IntegerField(read_only=True)

    class Meta:
        model = LeaveRequest
        fields = [
            "id",
            "employee",
            "employee_name",
            "leave_type",
            "start_date",
            "end_date",
            "days",
            "reason",
        ] + _RequestSerializer.review_fields
        read_only_fields = ["id", "days"] + _RequestSerializer.review_fields

    def validate(self, attrs):
        start = attrs.get("start_date", getattr(self.instance, "start_date", None))
        end = attrs.get("end_date", getattr(self.instance, "end_date", None))
        if start and end and end < start:
            raise serializers.ValidationError({"end_date": "End date cannot be before start date."})
        return attrs


class ReviewSerializer(serializers.Serializer):
    note = serializers.CharField(required=False, allow_blank=True, default="")


class AwardSerializer(serializers.ModelSerializer):
    employee = TenantPrimaryKeyRelatedField(queryset=User.objects.all())
    employee_name = serializers.CharField(source="employee.username", read_only=True)

    class Meta:
        model = Award
        fields = [
            "id",
            "employee",
            "employee_name",
            "title",
            "description",
            "gift",
            "cash_amount",
            "awarded_on",
            "created_at",
        ]
        read_only_fields = ["id", "created_at"]
