"""
Tests for purchases, landed costs and supplier returns.
"""

from decimal import Decimal

from django.urls import reverse

import pytest
from rest_framework import status

from apps.core.exceptions import BadRequest, InsufficientStockError, InvalidStateError
from apps.inventory import fifo
from apps.inventory.models import ProductBatch
from apps.procurement import services
from apps.procurement.models import Purchase


@pytest.mark.django_db
class TestPurchaseWorkflow:
    """Test purchase creation, receipt and cancellation."""

    @pytest.fixture
    def purchase(self, tenant, tenant_user, supplier, warehouse, product, second_product):
        return services.create_purchase(
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
        )

    def test_create_computes_totals(self, purchase):
        assert purchase.status == Purchase.ORDERED
        assert purchase.subtotal == Decimal("100.00")
        assert purchase.total == Decimal("120.00")
        assert purchase.purchase_number.startswith("PUR-")

    def test_ordered_purchase_adds_no_stock(self, purchase, product, warehouse):
        assert fifo.stock_level(product, warehouse) == Decimal("0")

    def test_receive_spreads_extra_costs_by_line_value(
        self, purchase, tenant_user, product, second_product
    ):
        purchase = services.receive_purchase(purchase, tenant_user)

        assert purchase.status == Purchase.RECEIVED
        assert purchase.received_at is not None
        cola = ProductBatch.objects.get(product=product)
        water = ProductBatch.objects.get(product=second_product)
        assert cola.source == ProductBatch.PURCHASE
        assert cola.unit_cost == Decimal("6.00")
        assert water.unit_cost == Decimal("12.00")
        assert water.selling_price == Decimal("15.00")

    def test_receive_twice_fails(self, purchase, tenant_user):
        services.receive_purchase(purchase, tenant_user)
        with pytest.raises(InvalidStateError):
            services.receive_purchase(purchase, tenant_user)

    def test_cancel_only_ordered(self, purchase, tenant_user):
        cancelled = services.cancel_purchase(purchase, tenant_user, reason="Duplicate")
        assert cancelled.status == Purchase.CANCELLED
        with pytest.raises(InvalidStateError):
            services.receive_purchase(cancelled, tenant_user)

    def test_zero_subtotal_splits_extras_evenly(self, tenant, tenant_user, supplier, warehouse, product):
        purchase = services.create_purchase(
            tenant,
            tenant_user,
            supplier,
            warehouse,
            [
                {
                    "product": product,
                    "quantity": Decimal("4"),
                    "unit_price": Decimal("0"),
                    "selling_price": Decimal("1.00"),
                }
            ],
            other_expenses=Decimal("8.00"),
            receive=True,
        )
        assert purchase.items.get().landed_unit_cost == Decimal("2.00")


@pytest.mark.django_db
class TestSupplierReturns:
    """Test returning received goods to the supplier."""

    @pytest.fixture
    def received(self, tenant, tenant_user, supplier, warehouse, product):
        return services.create_purchase(
            tenant,
            tenant_user,
            supplier,
            warehouse,
            [
                {
                    "product": product,
                    "quantity": Decimal("10"),
                    "unit_price": Decimal("4.00"),
                    "selling_price": Decimal("6.00"),
                }
            ],
            receive=True,
        )

    def test_return_draws_from_purchase_batch(self, received, tenant_user, product, warehouse):
        item = received.items.get()
        purchase_return = services.return_to_supplier(
            received, tenant_user, [{"purchase_item": item, "quantity": Decimal("3")}], reason="Damaged"
        )

        assert purchase_return.total_amount == Decimal("12.00")
        assert fifo.stock_level(product, warehouse) == Decimal("7")
        item.refresh_from_db()
        assert item.returned_quantity == Decimal("3")

    def test_cannot_return_more_than_bought(self, received, tenant_user):
        item = received.items.get()
        with pytest.raises(BadRequest):
            services.return_to_supplier(
                received, tenant_user, [{"purchase_item": item, "quantity": Decimal("11")}]
            )

    def test_cannot_return_units_already_sold(self, received, tenant_user, product, warehouse):
        fifo.consume(product, warehouse, Decimal("9"))
        item = received.items.get()
        with pytest.raises(InsufficientStockError):
            services.return_to_supplier(
                received, tenant_user, [{"purchase_item": item, "quantity": Decimal("2")}]
            )


@pytest.mark.django_db
class TestPurchaseAPI:
    """Test purchase endpoints."""

    def test_create_and_receive_in_one_call(self, authenticated_client, supplier, warehouse, product):
        response = authenticated_client.post(
            reverse("procurement:purchase_list"),
            {
                "supplier": supplier.pk,
                "warehouse": warehouse.pk,
                "items": [
                    {"product": product.pk, "quantity": "6", "unit_price": "3.00", "selling_price": "5.00"}
                ],
                "receive": True,
            },
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["status"] == Purchase.RECEIVED
        assert fifo.stock_level(product, warehouse) == Decimal("6")

    def test_cashier_cannot_purchase(self, staff_client, supplier, warehouse, product):
        response = staff_client.post(
            reverse("procurement:purchase_list"),
            {
                "supplier": supplier.pk,
                "warehouse": warehouse.pk,
                "items": [
                    {"product": product.pk, "quantity": "1", "unit_price": "1.00", "selling_price": "2.00"}
                ],
            },
            format="json",
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN
