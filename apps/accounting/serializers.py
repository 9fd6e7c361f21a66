"""
Serializers for accounts, expenses, income and account transfers.
"""

from decimal import Decimal

from rest_framework import serializers

from apps.core.models import Warehouse
from apps.core.serializers import TenantPrimaryKeyRelatedField

from .models import Account, AccountTransfer, Expense, Income


class AccountSerializer(serializers.ModelSerializer):
    class Meta:
        model = Account
        fields = [
            "id",
            "name",
            "account_number",
            "account_type",
            "opening_balance",
            "balance",
            "description",
            "is_active",
            "mod_flag",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "balance", "mod_flag", "created_at", "updated_at"]

    def validate_name(self, value):
        tenant = self.context["request"].user.tenant
        queryset = Account.objects.filter(tenant=tenant, name__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("An account with this name already exists.")
        return value

    def update(self, instance, validated_data):
        # Editing the opening balance shifts the running balance by the same amount
        old_opening = instance.opening_balance
        instance = super().update(instance, validated_data)
        delta = instance.opening_balance - old_opening
        if delta:
            instance.adjust_balance(delta)
        return instance


class ExpenseSerializer(serializers.ModelSerializer):
    account = TenantPrimaryKeyRelatedField(
        queryset=Account.objects.filter(is_active=True), required=False, allow_null=True
    )
    warehouse = TenantPrimaryKeyRelatedField(
        queryset=Warehouse.objects.all(), required=False, allow_null=True
    )
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0.01"))
    account_name = serializers.CharField(source="account.name", read_only=True, default=None)

    class Meta:
        model = Expense
        fields = [
            "id",
            "reference",
            "category",
            "amount",
            "account",
            "account_name",
            "warehouse",
            "expense_date",
            "status",
            "description",
            "mod_flag",
            "created_at",
        ]
        read_only_fields = ["id", "reference", "mod_flag", "created_at"]


class IncomeSerializer(serializers.ModelSerializer):
    account = TenantPrimaryKeyRelatedField(
        queryset=Account.objects.filter(is_active=True), required=False, allow_null=True
    )
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0.01"))
    account_name = serializers.CharField(source="account.name", read_only=True, default=None)

    class Meta:
        model = Income
        fields = [
            "id",
            "reference",
            "category",
            "amount",
            "account",
            "account_name",
            "income_date",
            "status",
            "description",
            "mod_flag",
            "created_at",
        ]
        read_only_fields = ["id", "reference", "mod_flag", "created_at"]


class AccountTransferSerializer(serializers.ModelSerializer):
    from_account = TenantPrimaryKeyRelatedField(queryset=Account.objects.all())
    to_account = TenantPrimaryKeyRelatedField(queryset=Account.objects.all())
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0.01"))
    from_account_name = serializers.CharField(source="from_account.name", read_only=True)
    to_account_name = serializers.CharField(source="to_account.name", read_only=True)

    class Meta:
        model = AccountTransfer
        fields = [
            "id",
            "from_account",
            "from_account_name",
            "to_account",
            "to_account_name",
            "amount",
            "transfer_date",
            "note",
            "created_at",
        ]
        read_only_fields = ["id", "created_at"]

    def validate(self, attrs):
        if attrs["from_account"].pk == attrs["to_account"].pk:
            raise serializers.ValidationError(
                {"to_account": "Source and destination accounts must differ."}
            )
        return attrs
