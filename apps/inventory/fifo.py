"""
FIFO cost-basis engine.

Every stock decrement in the system (sales, transfers, adjustments) goes
through ``consume``, which walks a product's live batches in a warehouse
oldest-first and returns the exact batch quantities taken. Callers persist
those allocations so that voids and returns can hand the units back to the
same batches with ``restore``.

``consume`` and ``restore`` must run inside ``transaction.atomic``; the batch
rows they touch are locked with ``select_for_update`` so two concurrent sales
cannot draw the same units.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional

from django.db import transaction
from django.db.models import DecimalField, ExpressionWrapper, F, Sum

from apps.core.exceptions import BadRequest, InsufficientStockError, InvalidStateError
from apps.core.utils import money

from .models import ProductBatch

logger = logging.getLogger(__name__)


@dataclass
class Allocation:
    """Quantity drawn from one batch at that batch's unit cost."""

    batch: ProductBatch
    quantity: Decimal
    unit_cost: Decimal

    @property
    def cost(self) -> Decimal:
        return self.quantity * self.unit_cost


@dataclass
class FifoResult:
    allocations: List[Allocation] = field(default_factory=list)

    @property
    def quantity(self) -> Decimal:
        return sum((a.quantity for a in self.allocations), Decimal("0"))

    @property
    def total_cost(self) -> Decimal:
        return money(sum((a.cost for a in self.allocations), Decimal("0")))

    @property
    def unit_cost(self) -> Decimal:
        """Weighted average cost of the units taken."""
        if not self.quantity:
            return Decimal("0.00")
        return money(self.total_cost / self.quantity)

    @property
    def head_selling_price(self) -> Optional[Decimal]:
        """Selling price of the oldest batch touched; the POS default price."""
        return self.allocations[0].batch.selling_price if self.allocations else None


def available_batches(product, warehouse, lock=False):
    """Live batches for ``product`` in ``warehouse`` in FIFO order."""
    queryset = ProductBatch.objects.filter(
        product=product,
        warehouse=warehouse,
        is_depleted=False,
        remaining__gt=0,
    ).order_by("received_at", "id")
    if lock:
        queryset = queryset.select_for_update()
    return queryset


def _validate_quantity(quantity) -> Decimal:
    quantity = Decimal(quantity)
    if quantity <= 0:
        raise BadRequest("Quantity must be greater than zero.", details={"quantity": str(quantity)})
    return quantity


def _walk(batches, quantity) -> List[Allocation]:
    needed = quantity
    allocations = []
    for batch in batches:
        if needed <= 0:
            break
        take = min(needed, batch.remaining)
        allocations.append(Allocation(batch=batch, quantity=take, unit_cost=batch.unit_cost))
        needed -= take
    return allocations


def preview_cost(product, warehouse, quantity) -> FifoResult:
    """
    Compute what ``consume`` would take without changing or locking anything.

    Raises:
        InsufficientStockError: if the warehouse cannot supply ``quantity``
    """
    quantity = _validate_quantity(quantity)
    batches = list(available_batches(product, warehouse))
    available = sum((b.remaining for b in batches), Decimal("0"))
    if available < quantity:
        raise InsufficientStockError(product, warehouse, quantity, available)
    return FifoResult(_walk(batches, quantity))


def consume(product, warehouse, quantity) -> FifoResult:
    """
    Take ``quantity`` units of ``product`` from ``warehouse`` oldest batch first.

    Nothing is modified when stock is insufficient.

    Returns:
        FifoResult: the allocations taken and their total cost

    Raises:
        InsufficientStockError: if the warehouse cannot supply ``quantity``
    """
    quantity = _validate_quantity(quantity)
    with transaction.atomic():
        batches = list(available_batches(product, warehouse, lock=True))
        available = sum((b.remaining for b in batches), Decimal("0"))
        if available < quantity:
            logger.warning(
                f"Insufficient stock for product {product.pk} in warehouse {warehouse.pk}: "
                f"requested {quantity}, available {available}"
            )
            raise InsufficientStockError(product, warehouse, quantity, available)

        allocations = _walk(batches, quantity)
        for allocation in allocations:
            batch = allocation.batch
            batch.remaining -= allocation.quantity
            batch.save(update_fields=["remaining", "is_depleted", "depleted_at", "updated_at"])
            if batch.is_depleted:
                logger.info(f"Batch {batch.batch_number} depleted")

    result = FifoResult(allocations)
    logger.debug(
        f"Consumed {quantity} of product {product.pk} from warehouse {warehouse.pk} "
        f"across {len(allocations)} batches, cost {result.total_cost}"
    )
    return result


def draw_from_batch(batch, quantity) -> Allocation:
    """
    Take ``quantity`` from one specific batch, bypassing FIFO order.

    Used when the units must leave from a known lot, e.g. returning goods
    to the supplier they were bought from.
    """
    quantity = _validate_quantity(quantity)
    with transaction.atomic():
        locked = ProductBatch.objects.select_for_update().select_related(
            "product", "warehouse"
        ).get(pk=batch.pk)
        if locked.remaining < quantity:
            raise InsufficientStockError(
                locked.product, locked.warehouse, quantity, locked.remaining
            )
        locked.remaining -= quantity
        locked.save(update_fields=["remaining", "is_depleted", "depleted_at", "updated_at"])
    return Allocation(batch=locked, quantity=quantity, unit_cost=locked.unit_cost)


def restore(allocations: Iterable) -> Decimal:
    """
    Return allocated quantities to their originating batches.

    ``allocations`` may be ``Allocation`` objects or persisted allocation rows;
    anything with ``batch_id`` (or ``batch``) and ``quantity`` works.

    Returns:
        Decimal: cost of the restored units
    """
    restored_cost = Decimal("0")
    with transaction.atomic():
        for allocation in allocations:
            batch_id = getattr(allocation, "batch_id", None) or allocation.batch.pk
            quantity = Decimal(allocation.quantity)
            if quantity <= 0:
                continue
            batch = ProductBatch.objects.select_for_update().get(pk=batch_id)
            if batch.remaining + quantity > batch.quantity:
                raise InvalidStateError(
                    f"Cannot restore {quantity} to batch {batch.batch_number}: "
                    f"it would exceed the received quantity {batch.quantity}."
                )
            batch.remaining += quantity
            batch.save(update_fields=["remaining", "is_depleted", "depleted_at", "updated_at"])
            restored_cost += quantity * batch.unit_cost
    return money(restored_cost)


def stock_level(product, warehouse=None) -> Decimal:
    queryset = ProductBatch.objects.filter(product=product, is_depleted=False)
    if warehouse is not None:
        queryset = queryset.filter(warehouse=warehouse)
    return queryset.aggregate(total=Sum("remaining"))["total"] or Decimal("0")


def batch_value(basis="cost"):
    """Per-batch value expression: remaining times unit cost or selling price."""
    if basis not in ("cost", "price"):
        raise BadRequest("basis must be 'cost' or 'price'.")
    price_field = "unit_cost" if basis == "cost" else "selling_price"
    return ExpressionWrapper(
        F("remaining") * F(price_field),
        output_field=DecimalField(max_digits=20, decimal_places=5),
    )


def stock_value(tenant, warehouse=None, basis="cost", category=None) -> Decimal:
    """
    Value of remaining stock, at purchase cost (``basis="cost"``) or at
    selling price (``basis="price"``).
    """
    expression = batch_value(basis)
    queryset = ProductBatch.objects.filter(tenant=tenant, is_depleted=False, remaining__gt=0)
    if warehouse is not None:
        queryset = queryset.filter(warehouse=warehouse)
    if category is not None:
        queryset = queryset.filter(product__category=category)
    value = queryset.aggregate(value=Sum(expression))["value"]
    return money(value or 0)
