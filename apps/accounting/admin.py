"""
Django admin configuration for accounting models.
"""

from django.contrib import admin

from .models import Account, AccountTransfer, Expense, Income


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ["name", "tenant", "account_type", "opening_balance", "balance", "is_active"]
    list_filter = ["account_type", "is_active", "del_flag"]
    search_fields = ["name", "account_number"]
    readonly_fields = ["balance", "created_at", "updated_at"]

    def get_queryset(self, request):
        return Account.all_objects.select_related("tenant")


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ["reference", "tenant", "category", "amount", "account", "status", "expense_date"]
    list_filter = ["status", "category", "del_flag"]
    search_fields = ["reference", "category", "description"]
    date_hierarchy = "expense_date"
    readonly_fields = ["reference", "created_at", "updated_at"]


@admin.register(Income)
class IncomeAdmin(admin.ModelAdmin):
    list_display = ["reference", "tenant", "category", "amount", "account", "status", "income_date"]
    list_filter = ["status", "category", "del_flag"]
    search_fields = ["reference", "category", "description"]
    readonly_fields = ["reference", "created_at", "updated_at"]


@admin.register(AccountTransfer)
class AccountTransferAdmin(admin.ModelAdmin):
    list_display = ["from_account", "to_account", "amount", "transfer_date", "created_by"]
    readonly_fields = ["created_at"]
