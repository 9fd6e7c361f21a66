"""
Tests for the FIFO cost engine.
"""

from decimal import Decimal

import pytest

from apps.core.exceptions import BadRequest, InsufficientStockError, InvalidStateError
from apps.inventory import fifo


@pytest.mark.django_db
class TestConsume:
    """Test oldest-first consumption and its cost."""

    def test_consumes_oldest_batch_first(self, stocked_product, warehouse):
        result = fifo.consume(stocked_product, warehouse, Decimal("3"))

        assert len(result.allocations) == 1
        assert result.allocations[0].batch.unit_cost == Decimal("10.00")
        assert result.total_cost == Decimal("30.00")

    def test_spans_batches(self, stocked_product, warehouse):
        result = fifo.consume(stocked_product, warehouse, Decimal("7"))

        assert [a.quantity for a in result.allocations] == [Decimal("5"), Decimal("2")]
        assert result.total_cost == Decimal("74.00")
        assert result.unit_cost == Decimal("10.57")

        first, second = stocked_product.batches.order_by("received_at")
        assert first.remaining == 0
        assert first.is_depleted
        assert first.depleted_at is not None
        assert second.remaining == Decimal("3")

    def test_insufficient_stock_changes_nothing(self, stocked_product, warehouse):
        with pytest.raises(InsufficientStockError) as excinfo:
            fifo.consume(stocked_product, warehouse, Decimal("11"))

        assert excinfo.value.available == Decimal("10")
        assert fifo.stock_level(stocked_product, warehouse) == Decimal("10")

    def test_other_warehouse_stock_is_ignored(self, stocked_product, second_warehouse):
        with pytest.raises(InsufficientStockError):
            fifo.consume(stocked_product, second_warehouse, Decimal("1"))

    def test_zero_quantity_rejected(self, stocked_product, warehouse):
        with pytest.raises(BadRequest):
            fifo.consume(stocked_product, warehouse, Decimal("0"))

    def test_preview_does_not_modify(self, stocked_product, warehouse):
        result = fifo.preview_cost(stocked_product, warehouse, Decimal("6"))

        assert result.total_cost == Decimal("62.00")
        assert result.head_selling_price == Decimal("15.00")
        assert fifo.stock_level(stocked_product, warehouse) == Decimal("10")


@pytest.mark.django_db
class TestRestore:
    """Test returning allocations to their batches."""

    def test_restore_returns_units_to_same_batches(self, stocked_product, warehouse):
        result = fifo.consume(stocked_product, warehouse, Decimal("7"))

        restored = fifo.restore(result.allocations)

        assert restored == Decimal("74.00")
        assert fifo.stock_level(stocked_product, warehouse) == Decimal("10")
        first = stocked_product.batches.order_by("received_at").first()
        assert not first.is_depleted

    def test_restore_beyond_received_quantity_fails(self, stocked_product, warehouse):
        batch = stocked_product.batches.order_by("received_at").first()
        with pytest.raises(InvalidStateError):
            fifo.restore([fifo.Allocation(batch=batch, quantity=Decimal("1"), unit_cost=batch.unit_cost)])

    def test_draw_from_specific_batch(self, stocked_product, warehouse):
        newest = stocked_product.batches.order_by("-received_at").first()

        allocation = fifo.draw_from_batch(newest, Decimal("2"))

        assert allocation.unit_cost == Decimal("12.00")
        newest.refresh_from_db()
        assert newest.remaining == Decimal("3")


@pytest.mark.django_db
class TestStockValue:
    """Test stock valuation at cost and at selling price."""

    def test_value_at_cost_and_price(self, tenant, stocked_product, warehouse):
        assert fifo.stock_value(tenant) == Decimal("110.00")
        assert fifo.stock_value(tenant, basis="price") == Decimal("150.00")

    def test_unknown_basis(self, tenant):
        with pytest.raises(BadRequest):
            fifo.stock_value(tenant, basis="market")
