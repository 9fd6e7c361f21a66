"""
Tests for POS checkout, voids, returns, the cash drawer and loyalty.
"""

from decimal import Decimal

from django.urls import reverse
from django.utils import timezone

import pytest
from rest_framework import status

from apps.core.exceptions import BadRequest, Forbidden, InsufficientStockError, InvalidStateError
from apps.inventory import fifo
from apps.sales import services
from apps.sales.models import CashDrawerEvent, Customer, Sale, SellReturn


def _sell(tenant, user, warehouse, product, quantity, **kwargs):
    return services.create_sale(
        tenant, user, warehouse, [{"product": product, "quantity": Decimal(quantity)}], **kwargs
    )


@pytest.mark.django_db
class TestCheckout:
    """Test sale creation and its FIFO cost."""

    def test_sale_persists_fifo_cogs(self, tenant, tenant_user, warehouse, stocked_product):
        sale = _sell(tenant, tenant_user, warehouse, stocked_product, "7")

        assert sale.status == Sale.COMPLETED
        assert sale.subtotal == Decimal("105.00")
        assert sale.total_cost == Decimal("74.00")
        assert sale.profit == Decimal("31.00")
        item = sale.items.get()
        assert item.cost_of_goods == Decimal("74.00")
        assert [a.quantity for a in item.allocations.order_by("id")] == [Decimal("5"), Decimal("2")]
        assert fifo.stock_level(stocked_product, warehouse) == Decimal("3")

    def test_discount_and_tax(self, tenant, tenant_user, warehouse, stocked_product):
        sale = _sell(
            tenant,
            tenant_user,
            warehouse,
            stocked_product,
            "2",
            discount=Decimal("10.00"),
            tax_rate=Decimal("10"),
            cash_received=Decimal("50.00"),
        )
        assert sale.tax == Decimal("2.00")
        assert sale.total == Decimal("22.00")
        assert sale.change_given == Decimal("28.00")
        assert sale.profit == Decimal("0.00")

    def test_discount_cannot_exceed_subtotal(self, tenant, tenant_user, warehouse, stocked_product):
        with pytest.raises(BadRequest):
            _sell(tenant, tenant_user, warehouse, stocked_product, "1", discount=Decimal("20"))
        assert fifo.stock_level(stocked_product, warehouse) == Decimal("10")

    def test_short_cash_rejected(self, tenant, tenant_user, warehouse, stocked_product):
        with pytest.raises(BadRequest):
            _sell(tenant, tenant_user, warehouse, stocked_product, "2", cash_received=Decimal("10"))

    def test_insufficient_stock_rolls_back(self, tenant, tenant_user, warehouse, stocked_product):
        with pytest.raises(InsufficientStockError):
            _sell(tenant, tenant_user, warehouse, stocked_product, "11")
        assert Sale.objects.count() == 0

    def test_cash_sale_writes_drawer_event(self, tenant, tenant_user, warehouse, stocked_product):
        sale = _sell(tenant, tenant_user, warehouse, stocked_product, "1")
        event = CashDrawerEvent.objects.get(sale=sale)
        assert event.event_type == CashDrawerEvent.SALE
        assert event.amount == Decimal("15.00")

    def test_card_sale_has_no_drawer_event(self, tenant, tenant_user, warehouse, stocked_product):
        _sell(tenant, tenant_user, warehouse, stocked_product, "1", payment_method=Sale.CARD)
        assert not CashDrawerEvent.objects.exists()

    def test_staff_limited_to_own_warehouse(self, tenant, staff_user, second_warehouse, product, make_batch):
        make_batch(product, second_warehouse, "5", "1.00", "2.00")
        with pytest.raises(Forbidden):
            _sell(tenant, staff_user, second_warehouse, product, "1")

    def test_calculate_totals_previews_without_consuming(self, warehouse, stocked_product):
        totals = services.calculate_totals(
            warehouse, [{"product": stocked_product, "quantity": Decimal("6")}]
        )
        assert totals["total"] == Decimal("90.00")
        assert totals["total_cost"] == Decimal("62.00")
        assert fifo.stock_level(stocked_product, warehouse) == Decimal("10")


@pytest.mark.django_db
class TestLoyalty:
    """Test customer aggregates and tiers."""

    def test_sale_updates_customer(self, tenant, tenant_user, warehouse, product, customer, make_batch):
        make_batch(product, warehouse, "100", "5.00", "15.00")

        _sell(tenant, tenant_user, warehouse, product, "70", customer=customer)

        customer.refresh_from_db()
        assert customer.total_spent == Decimal("1050.00")
        assert customer.total_orders == 1
        assert customer.loyalty_points == 1050
        assert customer.tier == Customer.SILVER

    def test_void_reverses_customer(self, tenant, tenant_user, warehouse, product, customer, make_batch):
        make_batch(product, warehouse, "100", "5.00", "15.00")
        sale = _sell(tenant, tenant_user, warehouse, product, "70", customer=customer)

        services.void_sale(sale, tenant_user, "Mistake")

        customer.refresh_from_db()
        assert customer.total_spent == Decimal("0.00")
        assert customer.loyalty_points == 0
        assert customer.tier == Customer.BRONZE


@pytest.mark.django_db
class TestVoid:
    """Test voiding a sale."""

    def test_void_restores_exact_batches(self, tenant, tenant_user, warehouse, stocked_product):
        sale = _sell(tenant, tenant_user, warehouse, stocked_product, "7")

        sale = services.void_sale(sale, tenant_user, "Customer left")

        assert sale.is_voided
        assert sale.status == Sale.VOIDED
        first, second = stocked_product.batches.order_by("received_at")
        assert first.remaining == Decimal("5")
        assert second.remaining == Decimal("5")

    def test_void_cash_sale_records_cash_out(self, tenant, tenant_user, warehouse, stocked_product):
        sale = _sell(tenant, tenant_user, warehouse, stocked_product, "1")
        services.void_sale(sale, tenant_user, "Mistake")
        assert CashDrawerEvent.objects.filter(
            sale=sale, event_type=CashDrawerEvent.CASH_OUT, amount=Decimal("15.00")
        ).exists()

    def test_cannot_void_twice(self, tenant, tenant_user, warehouse, stocked_product):
        sale = _sell(tenant, tenant_user, warehouse, stocked_product, "1")
        services.void_sale(sale, tenant_user, "Mistake")
        with pytest.raises(InvalidStateError):
            services.void_sale(sale, tenant_user, "Again")

    def test_cannot_void_after_return(self, tenant, tenant_user, warehouse, stocked_product):
        sale = _sell(tenant, tenant_user, warehouse, stocked_product, "2")
        services.process_return(
            sale, tenant_user, [{"sale_item": sale.items.get(), "quantity": Decimal("1")}]
        )
        with pytest.raises(InvalidStateError):
            services.void_sale(sale, tenant_user, "Too late")


@pytest.mark.django_db
class TestReturns:
    """Test customer returns."""

    def test_restocking_return_reverses_newest_cost_first(
        self, tenant, tenant_user, warehouse, stocked_product
    ):
        sale = _sell(tenant, tenant_user, warehouse, stocked_product, "7")
        item = sale.items.get()

        sell_return = services.process_return(
            sale, tenant_user, [{"sale_item": item, "quantity": Decimal("2")}], reason="DEFECTIVE"
        )

        assert sell_return.status == SellReturn.COMPLETED
        assert sell_return.refund_amount == Decimal("30.00")
        assert sell_return.cost_reversed == Decimal("24.00")
        item.refresh_from_db()
        assert item.returned_quantity == Decimal("2")
        assert fifo.stock_level(stocked_product, warehouse) == Decimal("5")

    def test_refund_shares_discount(self, tenant, tenant_user, warehouse, stocked_product):
        sale = _sell(tenant, tenant_user, warehouse, stocked_product, "2", discount=Decimal("3.00"))
        sell_return = services.process_return(
            sale, tenant_user, [{"sale_item": sale.items.get(), "quantity": Decimal("1")}]
        )
        assert sell_return.refund_amount == Decimal("13.50")

    def test_return_without_restock_keeps_stock(self, tenant, tenant_user, warehouse, stocked_product):
        sale = _sell(tenant, tenant_user, warehouse, stocked_product, "2")
        sell_return = services.process_return(
            sale,
            tenant_user,
            [{"sale_item": sale.items.get(), "quantity": Decimal("1")}],
            restock=False,
        )
        assert sell_return.cost_reversed == Decimal("0.00")
        assert fifo.stock_level(stocked_product, warehouse) == Decimal("8")

    def test_full_return_marks_sale_returned(self, tenant, tenant_user, warehouse, stocked_product):
        sale = _sell(tenant, tenant_user, warehouse, stocked_product, "2")
        services.process_return(
            sale, tenant_user, [{"sale_item": sale.items.get(), "quantity": Decimal("2")}]
        )
        sale.refresh_from_db()
        assert sale.status == Sale.RETURNED

    def test_pending_return_reserves_quantity(self, tenant, tenant_user, warehouse, stocked_product):
        sale = _sell(tenant, tenant_user, warehouse, stocked_product, "2")
        item = sale.items.get()
        pending = services.process_return(
            sale, tenant_user, [{"sale_item": item, "quantity": Decimal("2")}], auto_complete=False
        )
        assert pending.status == SellReturn.PENDING

        with pytest.raises(BadRequest):
            services.process_return(sale, tenant_user, [{"sale_item": item, "quantity": Decimal("1")}])

        services.reject_return(pending, tenant_user, note="Opened box")
        again = services.process_return(
            sale, tenant_user, [{"sale_item": item, "quantity": Decimal("1")}]
        )
        assert again.status == SellReturn.COMPLETED

    def test_cash_refund_recorded_in_drawer(self, tenant, tenant_user, warehouse, stocked_product):
        sale = _sell(tenant, tenant_user, warehouse, stocked_product, "2")
        sell_return = services.process_return(
            sale, tenant_user, [{"sale_item": sale.items.get(), "quantity": Decimal("1")}]
        )
        event = CashDrawerEvent.objects.get(sell_return=sell_return)
        assert event.event_type == CashDrawerEvent.CASH_OUT
        assert event.amount == Decimal("15.00")


@pytest.mark.django_db
class TestCashDrawer:
    """Test drawer events and the daily summary."""

    def test_summary_expected_cash(self, tenant, tenant_user, warehouse, stocked_product):
        services.record_drawer_event(tenant, tenant_user, warehouse, CashDrawerEvent.CASH_IN, "100")
        sale = _sell(tenant, tenant_user, warehouse, stocked_product, "2")
        services.process_return(
            sale, tenant_user, [{"sale_item": sale.items.get(), "quantity": Decimal("1")}]
        )
        services.record_drawer_event(tenant, tenant_user, warehouse, CashDrawerEvent.CASH_OUT, "20")
        services.record_drawer_event(tenant, tenant_user, warehouse, CashDrawerEvent.COUNT, "110")

        summary = services.drawer_summary(tenant, warehouse, timezone.localdate())

        assert summary["cash_sales"] == Decimal("30.00")
        assert summary["refunds"] == Decimal("15.00")
        assert summary["cash_out"] == Decimal("20.00")
        assert summary["expected_cash"] == Decimal("95.00")
        assert summary["variance"] == Decimal("15.00")

    def test_sale_events_cannot_be_recorded_manually(self, tenant, tenant_user, warehouse):
        with pytest.raises(BadRequest):
            services.record_drawer_event(tenant, tenant_user, warehouse, CashDrawerEvent.SALE, "5")

    def test_cash_in_needs_amount(self, tenant, tenant_user, warehouse):
        with pytest.raises(BadRequest):
            services.record_drawer_event(tenant, tenant_user, warehouse, CashDrawerEvent.CASH_IN, "0")


@pytest.mark.django_db
class TestSalesAPI:
    """Test POS and sale endpoints."""

    def test_cashier_checkout(self, staff_client, warehouse, stocked_product):
        response = staff_client.post(
            reverse("sales:pos_checkout"),
            {
                "warehouse": warehouse.pk,
                "items": [{"product": stocked_product.pk, "quantity": "2"}],
                "cash_received": "40.00",
            },
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["sale_number"].startswith("SALE-")
        assert Decimal(response.data["change_given"]) == Decimal("10.00")

    def test_checkout_insufficient_stock_is_422(self, authenticated_client, warehouse, stocked_product):
        response = authenticated_client.post(
            reverse("sales:pos_checkout"),
            {"warehouse": warehouse.pk, "items": [{"product": stocked_product.pk, "quantity": "20"}]},
            format="json",
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.data["error"]["code"] == "INSUFFICIENT_STOCK"

    def test_cashier_cannot_void(self, staff_client, tenant, tenant_user, warehouse, stocked_product):
        sale = _sell(tenant, tenant_user, warehouse, stocked_product, "1")
        response = staff_client.post(
            reverse("sales:sale_void", kwargs={"pk": sale.pk}), {"reason": "x"}, format="json"
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_void_requires_reason(self, authenticated_client, tenant, tenant_user, warehouse, stocked_product):
        sale = _sell(tenant, tenant_user, warehouse, stocked_product, "1")
        response = authenticated_client.post(
            reverse("sales:sale_void", kwargs={"pk": sale.pk}), {}, format="json"
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_product_search_requires_warehouse(self, authenticated_client):
        response = authenticated_client.get(reverse("sales:pos_product_search"), {"q": "cola"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_product_search(self, authenticated_client, warehouse, stocked_product, second_product):
        response = authenticated_client.get(
            reverse("sales:pos_product_search"), {"warehouse": warehouse.pk, "in_stock": "true"}
        )
        assert response.status_code == status.HTTP_200_OK
        assert [row["sku"] for row in response.data["results"]] == ["COLA-500"]

    def test_receipt_pdf(self, authenticated_client, tenant, tenant_user, warehouse, stocked_product):
        sale = _sell(tenant, tenant_user, warehouse, stocked_product, "1")
        response = authenticated_client.get(
            reverse("sales:sale_receipt", kwargs={"pk": sale.pk}), {"layout": "thermal"}
        )
        assert response.status_code == status.HTTP_200_OK
        assert response["Content-Type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")
