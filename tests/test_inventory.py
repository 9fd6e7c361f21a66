"""
Tests for products, stock intake, adjustments and transfers.
"""

from datetime import timedelta
from decimal import Decimal

from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone

import pytest
from rest_framework import status

from apps.core.exceptions import Forbidden, InsufficientStockError, InvalidStateError
from apps.inventory import fifo, services
from apps.inventory.models import ProductBatch, StockAdjustment, StockTransfer, Unit
from apps.inventory.reports import InventoryReportGenerator
from apps.inventory.tasks import scan_low_stock


@pytest.mark.django_db
class TestProductAPI:
    """Test product CRUD and lookups."""

    def test_create_product(self, authenticated_client, category, unit):
        response = authenticated_client.post(
            reverse("inventory:product_list"),
            {"name": "Juice", "sku": "JUICE-1", "category": category.pk, "unit": unit.pk},
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["category_name"] == "Beverages"

    def test_list_with_search(self, authenticated_client, product, second_product):
        response = authenticated_client.get(reverse("inventory:product_list"), {"search": "cola"})
        assert response.status_code == status.HTTP_200_OK
        assert response.data["count"] == 1
        assert response.data["results"][0]["sku"] == "COLA-500"

    def test_lookup_by_barcode(self, authenticated_client, stocked_product, warehouse):
        response = authenticated_client.get(
            reverse("inventory:product_lookup"),
            {"barcode": "4000000000017", "warehouse": warehouse.pk},
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.data["id"] == stocked_product.pk

    def test_cashier_cannot_create_product(self, staff_client):
        response = staff_client.post(
            reverse("inventory:product_list"), {"name": "X", "sku": "X"}, format="json"
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_add_stock_via_api(self, authenticated_client, product, warehouse):
        response = authenticated_client.post(
            reverse("inventory:stock"),
            {
                "rows": [
                    {
                        "product": product.pk,
                        "warehouse": warehouse.pk,
                        "unit_cost": "2.50",
                        "selling_price": "4.00",
                        "quantity": "12",
                    }
                ]
            },
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert fifo.stock_level(product, warehouse) == Decimal("12")


@pytest.mark.django_db
class TestStockAdjustments:
    """Test manual stock adjustments."""

    def test_add_uses_latest_batch_cost(self, tenant, tenant_user, stocked_product, warehouse):
        adjustment = services.adjust_stock(
            tenant, tenant_user, stocked_product, warehouse, StockAdjustment.ADD, "3", reason="Found"
        )
        assert adjustment.batch.source == ProductBatch.ADJUSTMENT
        assert adjustment.total_cost == Decimal("36.00")
        assert fifo.stock_level(stocked_product, warehouse) == Decimal("13")

    def test_remove_consumes_fifo(self, tenant, tenant_user, stocked_product, warehouse):
        adjustment = services.adjust_stock(
            tenant, tenant_user, stocked_product, warehouse, StockAdjustment.REMOVE, "6"
        )
        assert adjustment.total_cost == Decimal("62.00")
        assert fifo.stock_level(stocked_product, warehouse) == Decimal("4")

    def test_staff_cannot_adjust_other_warehouse(
        self, tenant, staff_user, product, second_warehouse
    ):
        with pytest.raises(Forbidden):
            services.adjust_stock(
                tenant, staff_user, product, second_warehouse, StockAdjustment.ADD, "1", unit_cost="1"
            )


@pytest.mark.django_db
class TestStockTransfers:
    """Test the transfer workflow between warehouses."""

    @pytest.fixture
    def transfer(self, tenant, tenant_user, stocked_product, warehouse, second_warehouse):
        return services.create_transfer(
            tenant,
            tenant_user,
            warehouse,
            second_warehouse,
            [{"product": stocked_product, "quantity": Decimal("7")}],
        )

    def test_create_does_not_move_stock(self, transfer, stocked_product, warehouse):
        assert transfer.status == StockTransfer.PENDING
        assert transfer.transfer_number.startswith("TRF-")
        assert fifo.stock_level(stocked_product, warehouse) == Decimal("10")

    def test_create_checks_available_stock(
        self, tenant, tenant_user, stocked_product, warehouse, second_warehouse
    ):
        with pytest.raises(InsufficientStockError):
            services.create_transfer(
                tenant,
                tenant_user,
                warehouse,
                second_warehouse,
                [{"product": stocked_product, "quantity": Decimal("50")}],
            )

    def test_approve_and_complete_carry_fifo_cost(
        self, tenant, transfer, tenant_user, stocked_product, warehouse, second_warehouse
    ):
        transfer = services.approve_transfer(transfer, tenant_user)
        assert transfer.status == StockTransfer.IN_TRANSIT
        assert fifo.stock_level(stocked_product, warehouse) == Decimal("3")

        item = transfer.items.get()
        assert item.unit_cost == Decimal("10.57")

        transfer = services.complete_transfer(transfer, tenant_user)
        assert transfer.status == StockTransfer.COMPLETED
        received = list(ProductBatch.objects.filter(warehouse=second_warehouse))
        assert [batch.source for batch in received] == [ProductBatch.TRANSFER] * 2
        assert [(batch.quantity, batch.unit_cost) for batch in received] == [
            (Decimal("5"), Decimal("10.00")),
            (Decimal("2"), Decimal("12.00")),
        ]
        assert fifo.stock_value(tenant, second_warehouse) == Decimal("74.00")

    def test_transfer_keeps_value_that_averages_unevenly(
        self, tenant, tenant_user, product, warehouse, second_warehouse, make_batch
    ):
        make_batch(product, warehouse, "1", "1.00", "2.00")
        make_batch(product, warehouse, "2", "2.00", "3.00")
        transfer = services.create_transfer(
            tenant,
            tenant_user,
            warehouse,
            second_warehouse,
            [{"product": product, "quantity": Decimal("3")}],
        )
        transfer = services.approve_transfer(transfer, tenant_user)
        services.complete_transfer(transfer, tenant_user)

        assert fifo.stock_value(tenant, second_warehouse) == Decimal("5.00")
        received = ProductBatch.objects.filter(warehouse=second_warehouse).first()
        assert received.selling_price == Decimal("2.00")

    def test_cancel_in_transit_restores_stock(self, transfer, tenant_user, stocked_product, warehouse):
        services.approve_transfer(transfer, tenant_user)
        transfer = services.cancel_transfer(transfer, tenant_user, reason="Wrong store")

        assert transfer.status == StockTransfer.CANCELLED
        assert fifo.stock_level(stocked_product, warehouse) == Decimal("10")

    def test_cannot_complete_pending_transfer(self, transfer, tenant_user):
        with pytest.raises(InvalidStateError):
            services.complete_transfer(transfer, tenant_user)

    def test_transfer_api_rejects_same_warehouse(self, authenticated_client, stocked_product, warehouse):
        response = authenticated_client.post(
            reverse("inventory:transfer_list"),
            {
                "from_warehouse": warehouse.pk,
                "to_warehouse": warehouse.pk,
                "items": [{"product": stocked_product.pk, "quantity": "1"}],
            },
            format="json",
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestLowStock:
    """Test low stock detection."""

    def test_report_flags_products_at_threshold(self, tenant, product, second_product, warehouse, make_batch):
        make_batch(product, warehouse, "5", "1.00", "2.00")
        make_batch(second_product, warehouse, "50", "1.00", "2.00")

        report = InventoryReportGenerator(tenant).get_low_stock_alert_report()

        assert report["summary"]["total_alerts"] == 1
        assert report["items"][0]["sku"] == "COLA-500"
        assert report["items"][0]["status"] == "LOW_STOCK"

    def test_scan_task_counts_alerts(self, tenant, product):
        results = scan_low_stock.apply().get()
        assert results[str(tenant.pk)] == 1


@pytest.mark.django_db
class TestInventoryReports:
    """Test the stock overview, valuation and expiry reports."""

    def test_valuation_totals_match_stock_value(self, tenant, stocked_product, warehouse):
        report = InventoryReportGenerator(tenant).get_inventory_valuation_report()
        summary = report["summary"]

        assert summary["total_cost_value"] == 110.0
        assert summary["total_selling_value"] == 150.0
        assert Decimal(str(summary["total_cost_value"])) == fifo.stock_value(tenant)
        assert Decimal(str(summary["total_selling_value"])) == fifo.stock_value(tenant, basis="price")
        assert summary["total_quantity"] == 10.0
        assert summary["potential_profit"] == 40.0
        assert summary["profit_margin_percentage"] == 36.36

    def test_valuation_breakdowns(
        self, tenant, stocked_product, second_product, second_warehouse, make_batch
    ):
        make_batch(second_product, second_warehouse, "4", "0.50", "1.00")

        report = InventoryReportGenerator(tenant).get_inventory_valuation_report()

        assert report["by_category"] == [
            {
                "category": "Beverages",
                "products": 2,
                "total_quantity": 14.0,
                "cost_value": 112.0,
                "selling_value": 154.0,
            }
        ]
        assert [row["warehouse"] for row in report["by_warehouse"]] == ["Back Store", "Main Store"]
        assert report["by_warehouse"][1]["batch_count"] == 2
        assert report["by_warehouse"][1]["cost_value"] == 110.0

    def test_valuation_filtered_by_warehouse(
        self, tenant, stocked_product, second_product, second_warehouse, make_batch
    ):
        make_batch(second_product, second_warehouse, "4", "0.50", "1.00")

        report = InventoryReportGenerator(tenant).get_inventory_valuation_report(
            warehouse_id=second_warehouse.pk
        )

        assert report["summary"]["total_cost_value"] == 2.0
        assert report["summary"]["total_products"] == 1

    def test_stock_overview_rows(self, tenant, stocked_product, warehouse):
        report = InventoryReportGenerator(tenant).get_stock_overview()

        assert report["summary"]["rows"] == 1
        row = report["items"][0]
        assert row["sku"] == "COLA-500"
        assert row["remaining"] == 10.0
        assert row["batch_count"] == 2
        assert row["cost_value"] == 110.0
        assert row["retail_value"] == 150.0

    def test_expiring_batches(self, tenant, product, second_product, warehouse, make_batch):
        today = timezone.localdate()
        expired = make_batch(product, warehouse, "2", "3.00", "5.00")
        soon = make_batch(second_product, warehouse, "4", "1.00", "2.00")
        later = make_batch(product, warehouse, "1", "1.00", "2.00")
        ProductBatch.objects.filter(pk=expired.pk).update(expiry_date=today - timedelta(days=2))
        ProductBatch.objects.filter(pk=soon.pk).update(expiry_date=today + timedelta(days=10))
        ProductBatch.objects.filter(pk=later.pk).update(expiry_date=today + timedelta(days=90))

        report = InventoryReportGenerator(tenant).get_expiring_batches_report(days=30)

        assert [item["batch_number"] for item in report["items"]] == [
            expired.batch_number,
            soon.batch_number,
        ]
        assert report["items"][0]["expired"]
        assert report["items"][0]["days_left"] == -2
        assert report["items"][1]["days_left"] == 10
        assert not report["items"][1]["expired"]
        assert report["summary"] == {"batch_count": 2, "expired_count": 1, "value_at_risk": 10.0}


@pytest.mark.django_db
class TestSeedBaseUnits:
    """Test seeding the standard units of measure."""

    def test_seed_is_idempotent(self, tenant):
        assert services.seed_base_units(tenant) == len(Unit.BASE_UNITS)
        assert services.seed_base_units(tenant) == 0
        assert Unit.objects.filter(tenant=tenant).count() == len(Unit.BASE_UNITS)

    def test_existing_name_is_skipped_case_insensitively(self, tenant):
        Unit.objects.create(tenant=tenant, name="PIECE", short_name="pc")

        assert services.seed_base_units(tenant) == len(Unit.BASE_UNITS) - 1
        assert Unit.objects.filter(tenant=tenant, name__iexact="piece").count() == 1

    def test_command_seeds_one_tenant(self, tenant, other_tenant):
        call_command("seed_base_units", tenant="test-shop")

        assert Unit.objects.filter(tenant=tenant).count() == len(Unit.BASE_UNITS)
        assert not Unit.objects.filter(tenant=other_tenant).exists()
