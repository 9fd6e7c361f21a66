"""
URL configuration for accounting app.
"""

from django.urls import path

from . import views

app_name = "accounting"

urlpatterns = [
    # Accounts
    path("api/accounts/", views.AccountListCreateView.as_view(), name="account_list"),
    path("api/accounts/<int:pk>/", views.AccountDetailView.as_view(), name="account_detail"),
    path(
        "api/accounts/transfers/",
        views.AccountTransferListCreateView.as_view(),
        name="transfer_list",
    ),
    # Expenses and income
    path("api/expenses/", views.ExpenseListCreateView.as_view(), name="expense_list"),
    path("api/expenses/<int:pk>/", views.ExpenseDetailView.as_view(), name="expense_detail"),
    path("api/expenses/<int:pk>/pay/", views.pay_expense, name="expense_pay"),
    path("api/income/", views.IncomeListCreateView.as_view(), name="income_list"),
    path("api/income/<int:pk>/", views.IncomeDetailView.as_view(), name="income_detail"),
    path("api/income/<int:pk>/receive/", views.receive_income, name="income_receive"),
    # Statements
    path("api/accounting/balance-sheet/", views.balance_sheet, name="balance_sheet"),
    path("api/accounting/trial-balance/", views.trial_balance, name="trial_balance"),
    path("api/accounting/cash-flow/", views.cash_flow, name="cash_flow"),
    path(
        "api/accounting/payment-accounts/",
        views.payment_account_report,
        name="payment_account_report",
    ),
]
