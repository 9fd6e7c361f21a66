"""
Tests for accounts, expenses, income, transfers and statements.
"""

from datetime import timedelta
from decimal import Decimal

from django.urls import reverse
from django.utils import timezone

import pytest
from rest_framework import status

from apps.accounting import services
from apps.accounting.models import Account, Expense, Income
from apps.core.exceptions import BadRequest, InvalidStateError
from apps.sales import services as sales_services


@pytest.fixture
def bank_account(tenant):
    return Account.objects.create(
        tenant=tenant, name="Bank", account_type=Account.BANK, opening_balance=Decimal("0.00")
    )


@pytest.mark.django_db
class TestAccountBalances:
    """Test how entries move account balances."""

    def test_opening_balance_becomes_balance(self, cash_account):
        assert cash_account.balance == Decimal("1000.00")

    def test_paid_expense_debits_account(self, tenant, tenant_user, cash_account):
        services.record_expense(tenant, tenant_user, "Rent", "250.00", account=cash_account)
        cash_account.refresh_from_db()
        assert cash_account.balance == Decimal("750.00")

    def test_pending_expense_waits_for_payment(self, tenant, tenant_user, cash_account):
        expense = services.record_expense(
            tenant, tenant_user, "Utilities", "40.00", account=cash_account, status=Expense.PENDING
        )
        cash_account.refresh_from_db()
        assert cash_account.balance == Decimal("1000.00")

        services.settle_entry(expense, tenant_user)
        cash_account.refresh_from_db()
        assert cash_account.balance == Decimal("960.00")
        with pytest.raises(InvalidStateError):
            services.settle_entry(expense, tenant_user)

    def test_received_income_credits_account(self, tenant, tenant_user, cash_account):
        income = services.record_income(
            tenant, tenant_user, "Commission", "80.00", account=cash_account, status=Income.RECEIVED
        )
        assert income.reference.startswith("INC-")
        cash_account.refresh_from_db()
        assert cash_account.balance == Decimal("1080.00")

    def test_update_moves_effect_between_accounts(
        self, tenant, tenant_user, cash_account, bank_account
    ):
        expense = services.record_expense(tenant, tenant_user, "Rent", "100.00", account=cash_account)

        services.update_entry(expense, tenant_user, account=bank_account, amount=Decimal("60.00"))

        cash_account.refresh_from_db()
        bank_account.refresh_from_db()
        assert cash_account.balance == Decimal("1000.00")
        assert bank_account.balance == Decimal("-60.00")

    def test_soft_delete_and_restore(self, tenant, tenant_user, cash_account):
        expense = services.record_expense(tenant, tenant_user, "Rent", "100.00", account=cash_account)

        expense.soft_delete(tenant_user)
        cash_account.refresh_from_db()
        assert cash_account.balance == Decimal("1000.00")

        expense.restore(tenant_user)
        cash_account.refresh_from_db()
        assert cash_account.balance == Decimal("900.00")

    def test_foreign_account_rejected(self, tenant, tenant_user, other_tenant):
        foreign = Account.objects.create(tenant=other_tenant, name="Elsewhere")
        with pytest.raises(BadRequest):
            services.record_expense(tenant, tenant_user, "Rent", "10.00", account=foreign)

    @pytest.mark.parametrize("amount", ["0", "-5.00"])
    def test_non_positive_expense_rejected(self, tenant, tenant_user, cash_account, amount):
        with pytest.raises(BadRequest):
            services.record_expense(tenant, tenant_user, "Rent", amount, account=cash_account)
        cash_account.refresh_from_db()
        assert cash_account.balance == Decimal("1000.00")
        assert not Expense.objects.exists()

    @pytest.mark.parametrize("amount", ["0", "-5.00"])
    def test_non_positive_income_rejected(self, tenant, tenant_user, cash_account, amount):
        with pytest.raises(BadRequest):
            services.record_income(
                tenant,
                tenant_user,
                "Commission",
                amount,
                account=cash_account,
                status=Income.RECEIVED,
            )
        cash_account.refresh_from_db()
        assert cash_account.balance == Decimal("1000.00")

    def test_update_to_negative_amount_rejected(self, tenant, tenant_user, cash_account):
        expense = services.record_expense(tenant, tenant_user, "Rent", "100.00", account=cash_account)

        with pytest.raises(BadRequest):
            services.update_entry(expense, tenant_user, amount=Decimal("-20.00"))

        cash_account.refresh_from_db()
        assert cash_account.balance == Decimal("900.00")


@pytest.mark.django_db
class TestTransfers:
    """Test fund transfers between accounts."""

    def test_transfer_moves_money(self, tenant, tenant_user, cash_account, bank_account):
        services.transfer_funds(tenant, tenant_user, cash_account, bank_account, "300.00")

        cash_account.refresh_from_db()
        bank_account.refresh_from_db()
        assert cash_account.balance == Decimal("700.00")
        assert bank_account.balance == Decimal("300.00")

    def test_cannot_overdraw_cash(self, tenant, tenant_user, cash_account, bank_account):
        with pytest.raises(BadRequest):
            services.transfer_funds(tenant, tenant_user, cash_account, bank_account, "1000.01")

    def test_credit_account_may_go_negative(self, tenant, tenant_user, cash_account):
        card = Account.objects.create(tenant=tenant, name="Card", account_type=Account.CREDIT)
        services.transfer_funds(tenant, tenant_user, card, cash_account, "50.00")
        card.refresh_from_db()
        assert card.balance == Decimal("-50.00")

    def test_same_account_rejected(self, tenant, tenant_user, cash_account):
        with pytest.raises(BadRequest):
            services.transfer_funds(tenant, tenant_user, cash_account, cash_account, "1.00")


@pytest.mark.django_db
class TestStatements:
    """Test balance sheet, trial balance, cash flow and account movements."""

    def test_balance_sheet_includes_inventory(self, tenant, cash_account, stocked_product):
        sheet = services.balance_sheet(tenant)

        names = [line["name"] for line in sheet["assets"]["accounts"]]
        assert names == ["Till", "Inventory"]
        assert sheet["assets"]["total"] == 1110.0
        assert sheet["equity"]["accounts"][-1]["name"] == "Retained earnings"

    def test_trial_balance_columns(self, tenant, cash_account):
        Account.objects.create(
            tenant=tenant,
            name="Supplier credit",
            account_type=Account.LIABILITY,
            opening_balance=Decimal("200.00"),
        )
        report = services.trial_balance(tenant)

        assert report["summary"]["total_debits"] == 1000.0
        assert report["summary"]["total_credits"] == 200.0
        assert not report["summary"]["is_balanced"]

    def test_cash_flow(self, tenant, tenant_user, warehouse, stocked_product, cash_account):
        sales_services.create_sale(
            tenant, tenant_user, warehouse, [{"product": stocked_product, "quantity": Decimal("2")}]
        )
        services.record_expense(tenant, tenant_user, "Rent", "50.00", account=cash_account)
        today = timezone.localdate()

        report = services.cash_flow(tenant, today - timedelta(days=1), today)

        assert report["inflows"]["sales"] == 30.0
        assert report["outflows"]["expenses"] == 50.0
        assert report["summary"]["net"] == -20.0
        assert len(report["series"]) == 2

    def test_payment_account_movements(self, tenant, tenant_user, cash_account, bank_account):
        services.record_expense(tenant, tenant_user, "Rent", "100.00", account=cash_account)
        services.transfer_funds(tenant, tenant_user, cash_account, bank_account, "200.00")
        today = timezone.localdate()

        report = services.payment_account_report(tenant, today, today)

        by_name = {row["name"]: row for row in report["accounts"]}
        assert by_name["Till"]["outflow"] == 300.0
        assert by_name["Bank"]["inflow"] == 200.0
        assert len(by_name["Till"]["movements"]) == 2


@pytest.mark.django_db
class TestAccountingAPI:
    """Test accounting endpoints."""

    def test_create_expense(self, authenticated_client, cash_account):
        response = authenticated_client.post(
            reverse("accounting:expense_list"),
            {"category": "Rent", "amount": "120.00", "account": cash_account.pk},
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["reference"].startswith("EXP-")
        cash_account.refresh_from_db()
        assert cash_account.balance == Decimal("880.00")

    def test_zero_expense_is_400(self, authenticated_client, cash_account):
        response = authenticated_client.post(
            reverse("accounting:expense_list"),
            {"category": "Rent", "amount": "0.00", "account": cash_account.pk},
            format="json",
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        cash_account.refresh_from_db()
        assert cash_account.balance == Decimal("1000.00")

    def test_delete_expense_reverses_balance(self, authenticated_client, tenant, tenant_user, cash_account):
        expense = services.record_expense(tenant, tenant_user, "Rent", "100.00", account=cash_account)
        response = authenticated_client.delete(
            reverse("accounting:expense_detail", kwargs={"pk": expense.pk})
        )
        assert response.status_code == status.HTTP_204_NO_CONTENT
        cash_account.refresh_from_db()
        assert cash_account.balance == Decimal("1000.00")

    def test_transfer_overdraw_is_400(self, authenticated_client, cash_account, bank_account):
        response = authenticated_client.post(
            reverse("accounting:transfer_list"),
            {"from_account": cash_account.pk, "to_account": bank_account.pk, "amount": "5000.00"},
            format="json",
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_balance_sheet_endpoint(self, authenticated_client, cash_account):
        response = authenticated_client.get(reverse("accounting:balance_sheet"))
        assert response.status_code == status.HTTP_200_OK
        assert response.data["report_type"] == "balance_sheet"

    def test_cashier_cannot_see_balance_sheet(self, staff_client):
        response = staff_client.get(reverse("accounting:balance_sheet"))
        assert response.status_code == status.HTTP_403_FORBIDDEN
