"""
API views for accounts, expenses, income, transfers and financial statements.
"""

from django.shortcuts import get_object_or_404
from django.utils import timezone

from rest_framework import generics, permissions
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core.decorators import permission_required
from apps.core.mixins import (
    ActiveFilterMixin,
    AuditedCreateMixin,
    AuditedUpdateMixin,
    SoftDeleteMixin,
    TenantScopedMixin,
)
from apps.core.permissions import HasTenantAccess
from apps.core.utils import parse_day, parse_period

from . import services
from .models import Account, AccountTransfer, Expense, Income
from .serializers import (
    AccountSerializer,
    AccountTransferSerializer,
    ExpenseSerializer,
    IncomeSerializer,
)

ACCOUNT_PERMISSIONS = {
    "GET": "viewListAccount",
    "POST": "addListAccount",
    "PUT": "editListAccount",
    "PATCH": "editListAccount",
    "DELETE": "deleteListAccount",
}

EXPENSE_PERMISSIONS = {
    "GET": "viewExpenses",
    "POST": "addExpenses",
    "PUT": "editExpenses",
    "PATCH": "editExpenses",
    "DELETE": "deleteExpenses",
}


def _as_of(request):
    return parse_day(request.query_params, "as_of", timezone.localdate())


# Accounts


class AccountListCreateView(
    ActiveFilterMixin, TenantScopedMixin, AuditedCreateMixin, generics.ListCreateAPIView
):
    model = Account
    serializer_class = AccountSerializer
    required_permissions = ACCOUNT_PERMISSIONS
    search_fields = ("name", "account_number")

    def filter_queryset_params(self, queryset):
        account_type = self.request.query_params.get("account_type")
        if account_type:
            queryset = queryset.filter(account_type=account_type)
        return queryset


class AccountDetailView(
    TenantScopedMixin, AuditedUpdateMixin, SoftDeleteMixin, generics.RetrieveUpdateDestroyAPIView
):
    model = Account
    serializer_class = AccountSerializer
    required_permissions = ACCOUNT_PERMISSIONS


# Expenses and income


class _EntryFilterMixin:
    date_field = None

    def filter_queryset_params(self, queryset):
        params = self.request.query_params
        if params.get("start_date") or params.get("end_date"):
            start_date, end_date = parse_period(params)
            queryset = queryset.filter(
                **{f"{self.date_field}__gte": start_date, f"{self.date_field}__lte": end_date}
            )
        for name in ("category", "status"):
            if params.get(name):
                queryset = queryset.filter(**{name: params[name]})
        if params.get("account"):
            queryset = queryset.filter(account_id=params["account"])
        return queryset


class ExpenseListCreateView(_EntryFilterMixin, TenantScopedMixin, generics.ListCreateAPIView):
    model = Expense
    serializer_class = ExpenseSerializer
    required_permissions = EXPENSE_PERMISSIONS
    search_fields = ("reference", "category", "description")
    date_field = "expense_date"

    def get_base_queryset(self):
        return Expense.objects.select_related("account", "warehouse")

    def filter_queryset_params(self, queryset):
        queryset = super().filter_queryset_params(queryset)
        warehouse = self.request.query_params.get("warehouse")
        if warehouse:
            queryset = queryset.filter(warehouse_id=warehouse)
        return queryset

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        serializer.instance = services.record_expense(
            self.request.user.tenant,
            self.request.user,
            data.pop("category"),
            data.pop("amount"),
            account=data.pop("account", None),
            **data,
        )


class ExpenseDetailView(TenantScopedMixin, SoftDeleteMixin, generics.RetrieveUpdateDestroyAPIView):
    model = Expense
    serializer_class = ExpenseSerializer
    required_permissions = EXPENSE_PERMISSIONS

    def perform_update(self, serializer):
        serializer.instance = services.update_entry(
            serializer.instance, self.request.user, **serializer.validated_data
        )


class IncomeListCreateView(_EntryFilterMixin, TenantScopedMixin, generics.ListCreateAPIView):
    model = Income
    serializer_class = IncomeSerializer
    required_permissions = ACCOUNT_PERMISSIONS
    search_fields = ("reference", "category", "description")
    date_field = "income_date"

    def get_base_queryset(self):
        return Income.objects.select_related("account")

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        serializer.instance = services.record_income(
            self.request.user.tenant,
            self.request.user,
            data.pop("category", "Other"),
            data.pop("amount"),
            account=data.pop("account", None),
            **data,
        )


class IncomeDetailView(TenantScopedMixin, SoftDeleteMixin, generics.RetrieveUpdateDestroyAPIView):
    model = Income
    serializer_class = IncomeSerializer
    required_permissions = ACCOUNT_PERMISSIONS

    def perform_update(self, serializer):
        serializer.instance = services.update_entry(
            serializer.instance, self.request.user, **serializer.validated_data
        )


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("editExpenses", "manageExpenses")
def pay_expense(request, pk):
    expense = get_object_or_404(Expense, pk=pk, tenant=request.user.tenant)
    return Response(ExpenseSerializer(services.settle_entry(expense, request.user)).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("editListAccount")
def receive_income(request, pk):
    income = get_object_or_404(Income, pk=pk, tenant=request.user.tenant)
    return Response(IncomeSerializer(services.settle_entry(income, request.user)).data)


# Transfers


class AccountTransferListCreateView(TenantScopedMixin, generics.ListCreateAPIView):
    model = AccountTransfer
    serializer_class = AccountTransferSerializer
    required_permissions = {"GET": "viewListAccount", "POST": "editListAccount"}

    def get_base_queryset(self):
        return AccountTransfer.objects.select_related("from_account", "to_account")

    def filter_queryset_params(self, queryset):
        account = self.request.query_params.get("account")
        if account:
            queryset = queryset.filter(from_account_id=account) | queryset.filter(
                to_account_id=account
            )
        return queryset

    def perform_create(self, serializer):
        data = serializer.validated_data
        serializer.instance = services.transfer_funds(
            self.request.user.tenant,
            self.request.user,
            data["from_account"],
            data["to_account"],
            data["amount"],
            transfer_date=data.get("transfer_date"),
            note=data.get("note", ""),
        )


# Statements


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("balanceSheet")
def balance_sheet(request):
    """Balance sheet as of ``?as_of=YYYY-MM-DD`` (default today)."""
    return Response(services.balance_sheet(request.user.tenant, _as_of(request)))


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("balanceSheet")
def trial_balance(request):
    return Response(services.trial_balance(request.user.tenant, _as_of(request)))


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("balanceSheet", "profitLostReport")
def cash_flow(request):
    """Cash in and out between ``start_date`` and ``end_date`` (default last 30 days)."""
    start_date, end_date = parse_period(request.query_params)
    return Response(services.cash_flow(request.user.tenant, start_date, end_date))


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("viewListAccount")
def payment_account_report(request):
    start_date, end_date = parse_period(request.query_params)
    account = None
    if request.query_params.get("account"):
        account = get_object_or_404(
            Account, pk=request.query_params["account"], tenant=request.user.tenant
        )
    return Response(
        services.payment_account_report(request.user.tenant, start_date, end_date, account)
    )
