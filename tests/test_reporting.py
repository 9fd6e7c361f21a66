"""
Tests for profit, sales, stock and register reports and their exports.
"""

from datetime import timedelta
from decimal import Decimal

from django.urls import reverse
from django.utils import timezone

import pytest
from rest_framework import status
from rest_framework.test import APIClient

from apps.accounting import services as accounting_services
from apps.accounting.models import Expense
from apps.core.exceptions import BadRequest
from apps.core.models import Role, User
from apps.procurement import services as procurement_services
from apps.reporting import services
from apps.reporting.exports import ReportExportService
from apps.sales import services as sales_services
from apps.sales.models import Sale, SellReturn


def _period():
    today = timezone.localdate()
    return today - timedelta(days=1), today


def _sell(tenant, user, warehouse, product, quantity):
    return sales_services.create_sale(
        tenant, user, warehouse, [{"product": product, "quantity": Decimal(quantity)}]
    )


@pytest.fixture
def cola(product, warehouse, make_batch):
    make_batch(product, warehouse, "10", "10.00", "15.00")
    return product


@pytest.mark.django_db
class TestProfitAndLoss:
    """Test the profit and loss statement."""

    def test_sales_cogs_and_expenses(self, tenant, tenant_user, warehouse, cola):
        _sell(tenant, tenant_user, warehouse, cola, "2")
        accounting_services.record_expense(tenant, tenant_user, "Rent", "3.00")
        accounting_services.record_expense(
            tenant, tenant_user, "Repairs", "50.00", status=Expense.PENDING
        )

        report = services.profit_and_loss(tenant, *_period())

        summary = report["summary"]
        assert summary["totalSales"] == 30.0
        assert summary["totalCOGS"] == 20.0
        assert summary["grossProfit"] == 10.0
        assert summary["totalExpenses"] == 3.0
        assert summary["netProfit"] == 7.0
        assert summary["salesCount"] == 1
        assert report["items"][0]["category"] == "Beverages"
        assert report["expenses_by_category"] == [{"category": "Rent", "amount": 3.0, "count": 1}]

    def test_restocked_return_reverses_revenue_and_cost(self, tenant, tenant_user, warehouse, cola):
        sale = _sell(tenant, tenant_user, warehouse, cola, "2")
        sales_services.process_return(
            sale, tenant_user, [{"sale_item": sale.items.get(), "quantity": Decimal("1")}]
        )

        summary = services.profit_and_loss(tenant, *_period())["summary"]

        assert summary["totalRefunds"] == 15.0
        assert summary["totalSales"] == 15.0
        assert summary["totalCOGS"] == 10.0
        assert summary["returnsCount"] == 1

    def test_voided_sales_excluded(self, tenant, tenant_user, warehouse, cola):
        sale = _sell(tenant, tenant_user, warehouse, cola, "2")
        sales_services.void_sale(sale, tenant_user, "Mistake")

        assert services.profit_and_loss(tenant, *_period())["summary"]["totalSales"] == 0.0

    def test_other_income_added(self, tenant, tenant_user):
        accounting_services.record_income(tenant, tenant_user, "Commission", "12.00")
        summary = services.profit_and_loss(tenant, *_period())["summary"]
        assert summary["totalOtherIncome"] == 12.0
        assert summary["netProfit"] == 12.0

    def test_opening_and_closing_stock(self, tenant, tenant_user, warehouse, cola):
        _sell(tenant, tenant_user, warehouse, cola, "2")

        inventory = services.profit_and_loss(tenant, *_period())["inventory"]

        assert inventory["openingStockCost"] == 100.0
        assert inventory["openingStockRetail"] == 150.0
        assert inventory["closingStockCost"] == 80.0

    def test_warehouse_filter(self, tenant, tenant_user, warehouse, second_warehouse, cola):
        _sell(tenant, tenant_user, warehouse, cola, "2")
        report = services.profit_and_loss(tenant, *_period(), warehouse=second_warehouse)
        assert report["summary"]["totalSales"] == 0.0
        assert report["filters"]["warehouse"] == second_warehouse.pk


@pytest.mark.django_db
class TestProductReports:
    """Test product level reports."""

    def test_top_profitable_products(self, tenant, tenant_user, warehouse, cola, second_product, make_batch):
        make_batch(second_product, warehouse, "10", "1.00", "2.00")
        _sell(tenant, tenant_user, warehouse, cola, "2")
        _sell(tenant, tenant_user, warehouse, second_product, "5")

        report = services.top_profitable_products(tenant, *_period(), limit=1)

        assert len(report["items"]) == 1
        assert report["items"][0]["sku"] == "COLA-500"
        assert report["items"][0]["profit"] == 10.0

    def test_trending_products(self, tenant, tenant_user, warehouse, cola, second_product, make_batch):
        make_batch(second_product, warehouse, "10", "1.00", "2.00")
        old = _sell(tenant, tenant_user, warehouse, cola, "1")
        _sell(tenant, tenant_user, warehouse, cola, "3")
        old_water = _sell(tenant, tenant_user, warehouse, second_product, "4")
        Sale.objects.filter(pk__in=[old.pk, old_water.pk]).update(
            sale_date=timezone.now() - timedelta(days=40)
        )

        report = services.trending_products(tenant, days=30)

        by_sku = {item["sku"]: item for item in report["items"]}
        assert by_sku["COLA-500"]["growth"] == 200.0
        assert by_sku["COLA-500"]["trend"] == "up"
        assert by_sku["WATER-1L"]["growth"] == -100.0
        assert by_sku["WATER-1L"]["trend"] == "down"

    def test_new_product_trends_up(self, tenant, tenant_user, warehouse, cola):
        _sell(tenant, tenant_user, warehouse, cola, "1")
        item = services.trending_products(tenant, days=7)["items"][0]
        assert item["growth"] == 100.0
        assert item["trend"] == "up"

    def test_items_report(self, tenant, tenant_user, warehouse, cola):
        _sell(tenant, tenant_user, warehouse, cola, "4")
        item = services.items_report(tenant, *_period())["items"][0]
        assert item["stock"] == 6.0
        assert item["stock_value"] == 60.0
        assert item["units_sold"] == 4.0


@pytest.mark.django_db
class TestTrendReports:
    """Test month by month profit."""

    def test_profit_trends_by_month(self, tenant, tenant_user, warehouse, cola):
        _sell(tenant, tenant_user, warehouse, cola, "2")
        accounting_services.record_expense(tenant, tenant_user, "Rent", "3.00")

        report = services.profit_trends(tenant, months=3)

        assert len(report["items"]) == 3
        assert report["items"][0]["revenue"] == 0.0
        assert report["items"][-1] == {
            "month": timezone.localdate().strftime("%Y-%m"),
            "revenue": 30.0,
            "cogs": 20.0,
            "expenses": 3.0,
            "net_profit": 7.0,
        }
        assert report["summary"] == {"months": 3, "revenue": 30.0, "net_profit": 7.0}


@pytest.mark.django_db
class TestPurchaseReports:
    """Test purchase, supplier return and purchase against sale reports."""

    @pytest.fixture
    def received(self, tenant, tenant_user, supplier, warehouse, product, second_product):
        return procurement_services.create_purchase(
            tenant,
            tenant_user,
            supplier,
            warehouse,
            [
                {
                    "product": product,
                    "quantity": Decimal("10"),
                    "unit_price": Decimal("5.00"),
                    "selling_price": Decimal("8.00"),
                },
                {
                    "product": second_product,
                    "quantity": Decimal("5"),
                    "unit_price": Decimal("10.00"),
                    "selling_price": Decimal("15.00"),
                },
            ],
            transport_cost=Decimal("20.00"),
            receive=True,
        )

    def _return(self, purchase, user, quantity):
        item = purchase.items.get(product__sku="COLA-500")
        return procurement_services.return_to_supplier(
            purchase, user, [{"purchase_item": item, "quantity": Decimal(quantity)}], reason="Damaged"
        )

    def test_product_purchase_uses_landed_cost(self, tenant, received):
        report = services.product_purchase_report(tenant, *_period())

        by_sku = {item["sku"]: item for item in report["items"]}
        assert by_sku["COLA-500"]["quantity"] == 10.0
        assert by_sku["COLA-500"]["invoice_value"] == 50.0
        assert by_sku["COLA-500"]["cost"] == 60.0
        assert by_sku["COLA-500"]["average_landed_cost"] == 6.0
        assert report["summary"] == {"products": 2, "quantity": 15.0, "cost": 120.0}

    def test_purchase_return_by_supplier(self, tenant, tenant_user, received):
        self._return(received, tenant_user, "3")

        report = services.purchase_return_report(tenant, *_period())

        assert report["items"] == [
            {
                "supplier_id": received.supplier_id,
                "supplier": "Acme Wholesale",
                "returns": 1,
                "total_amount": 18.0,
            }
        ]
        assert report["summary"] == {"returns": 1, "total_amount": 18.0, "suppliers": 1}

    def test_purchase_sale_comparison(self, tenant, tenant_user, warehouse, product, received):
        _sell(tenant, tenant_user, warehouse, product, "2")
        self._return(received, tenant_user, "3")

        summary = services.purchase_sale_report(tenant, *_period())["summary"]

        assert summary["purchases"] == 120.0
        assert summary["purchase_returns"] == 18.0
        assert summary["net_purchases"] == 102.0
        assert summary["purchase_count"] == 1
        assert summary["sales"] == 16.0
        assert summary["sell_returns"] == 0.0
        assert summary["sale_count"] == 1
        assert summary["difference"] == -86.0


@pytest.mark.django_db
class TestExpenseAndReturnReports:
    """Test the expense breakdown and the customer returns report."""

    def test_expenses_by_category_and_month(self, tenant, tenant_user):
        accounting_services.record_expense(tenant, tenant_user, "Rent", "100.00")
        accounting_services.record_expense(
            tenant, tenant_user, "Rent", "40.00", status=Expense.PENDING
        )
        accounting_services.record_expense(tenant, tenant_user, "Utilities", "20.00")

        report = services.expenses_report(tenant, *_period())

        assert report["items"] == [
            {"category": "Rent", "paid": 100.0, "pending": 40.0, "count": 2},
            {"category": "Utilities", "paid": 20.0, "pending": 0.0, "count": 1},
        ]
        assert report["by_month"] == [
            {"month": timezone.localdate().strftime("%Y-%m"), "amount": 120.0}
        ]
        assert report["summary"] == {"total_paid": 120.0, "total_pending": 40.0, "count": 3}

    def test_sell_returns_by_reason_and_status(self, tenant, tenant_user, warehouse, cola):
        sale = _sell(tenant, tenant_user, warehouse, cola, "2")
        item = sale.items.get()
        sales_services.process_return(
            sale, tenant_user, [{"sale_item": item, "quantity": Decimal("1")}], reason="DEFECTIVE"
        )
        sales_services.process_return(
            sale,
            tenant_user,
            [{"sale_item": item, "quantity": Decimal("1")}],
            reason="CUSTOMER_REQUEST",
            auto_complete=False,
        )

        report = services.sell_return_report(tenant, *_period())

        assert [row["reason"] for row in report["items"]] == ["CUSTOMER_REQUEST", "DEFECTIVE"]
        defective = report["items"][1]
        assert defective["count"] == 1
        assert defective["refund_amount"] == 15.0
        assert defective["cost_reversed"] == 10.0
        statuses = {row["status"]: row["count"] for row in report["by_status"]}
        assert statuses == {SellReturn.COMPLETED: 1, SellReturn.PENDING: 1}
        assert report["summary"] == {"returns": 2, "completed_refunds": 15.0, "pending": 1}


@pytest.mark.django_db
class TestRegisterReport:
    """Test the cash register report."""

    def test_events_grouped(self, tenant, tenant_user, warehouse, cola):
        sales_services.record_drawer_event(tenant, tenant_user, warehouse, "cash_in", "100")
        _sell(tenant, tenant_user, warehouse, cola, "2")

        report = services.register_report(tenant, *_period())

        assert report["by_event_type"]["cash_in"]["amount"] == 100.0
        assert report["by_event_type"]["sale"]["count"] == 1


@pytest.mark.django_db
class TestExports:
    """Test report downloads."""

    @pytest.fixture
    def report(self, tenant, tenant_user, warehouse, cola):
        _sell(tenant, tenant_user, warehouse, cola, "2")
        return services.product_sell_report(tenant, *_period())

    def test_csv(self, tenant, report):
        content = ReportExportService(tenant).export_to_csv(report).decode("utf-8")
        assert "Product Sell" in content
        assert "COLA-500" in content

    def test_excel(self, tenant, report):
        content = ReportExportService(tenant).export_to_excel(report)
        assert content[:2] == b"PK"

    def test_pdf(self, tenant, report):
        content = ReportExportService(tenant).export_to_pdf(report)
        assert content.startswith(b"%PDF")

    def test_unknown_format(self, tenant, report):
        with pytest.raises(BadRequest):
            ReportExportService(tenant).export(report, "docx")


@pytest.mark.django_db
class TestReportingAPI:
    """Test report endpoints."""

    def test_profit_and_loss_json(self, authenticated_client, tenant, tenant_user, warehouse, cola):
        _sell(tenant, tenant_user, warehouse, cola, "2")
        start, end = _period()
        response = authenticated_client.get(
            reverse("reporting:profit_and_loss"),
            {"start_date": start.isoformat(), "end_date": end.isoformat()},
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.data["summary"]["netProfit"] == 10.0

    @pytest.mark.parametrize(
        "export_format,content_type",
        [
            ("csv", "text/csv"),
            ("xlsx", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
            ("pdf", "application/pdf"),
        ],
    )
    def test_export_formats(self, authenticated_client, export_format, content_type):
        response = authenticated_client.get(
            reverse("reporting:product_sell"), {"format": export_format}
        )
        assert response.status_code == status.HTTP_200_OK
        assert response["Content-Type"].startswith(content_type)
        assert "attachment" in response["Content-Disposition"]

    def test_unsupported_export(self, authenticated_client):
        response = authenticated_client.get(reverse("reporting:product_sell"), {"format": "docx"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_reversed_period(self, authenticated_client):
        response = authenticated_client.get(
            reverse("reporting:profit_and_loss"),
            {"start_date": "2024-02-10", "end_date": "2024-02-01"},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_cashier_cannot_see_profit(self, staff_client):
        response = staff_client.get(reverse("reporting:profit_and_loss"))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_dashboard(self, authenticated_client, tenant, tenant_user, warehouse, product, make_batch):
        make_batch(product, warehouse, "6", "10.00", "15.00")
        _sell(tenant, tenant_user, warehouse, product, "2")

        response = authenticated_client.get(reverse("reporting:dashboard"))

        assert response.status_code == status.HTTP_200_OK
        summary = response.data["summary"]
        assert summary["sales_count"] == 1
        assert summary["revenue"] == 30.0
        assert summary["low_stock_count"] == 1
        assert len(response.data["items"]) == 12
        assert len(response.data["recent_sales"]) == 1

    def test_staff_outside_warehouse(self, tenant, second_warehouse):
        role = Role.objects.create(
            tenant=tenant, name="Reporter", permissions={"dashboard": True}
        )
        user = User.objects.create_user(
            username="reporter", password="x", tenant=tenant, role=role
        )
        user.warehouses.add(second_warehouse)
        client = APIClient()
        client.force_authenticate(user=user)

        response = client.get(
            reverse("reporting:dashboard"), {"warehouse": second_warehouse.pk + 1000}
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND

        response = client.get(reverse("reporting:dashboard"))
        assert response.status_code == status.HTTP_200_OK
        assert response.data["filters"]["warehouse"] == second_warehouse.pk

    def test_staff_refused_unassigned_warehouse(self, tenant, warehouse, second_warehouse):
        role = Role.objects.create(tenant=tenant, name="Reporter", permissions={"dashboard": True})
        user = User.objects.create_user(username="reporter", password="x", tenant=tenant, role=role)
        user.warehouses.add(warehouse)
        client = APIClient()
        client.force_authenticate(user=user)

        response = client.get(reverse("reporting:dashboard"), {"warehouse": second_warehouse.pk})

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error"]["code"] == "FORBIDDEN"
