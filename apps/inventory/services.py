"""
Inventory services: unit seeding, stock intake, adjustments and transfers.

All stock decrements go through ``apps.inventory.fifo``.
"""

import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import BadRequest, Forbidden, InvalidStateError
from apps.core.history import record_history
from apps.core.utils import money

from . import fifo
from .models import (
    ProductBatch,
    StockAdjustment,
    StockTransfer,
    StockTransferAllocation,
    StockTransferItem,
    Unit,
)

logger = logging.getLogger(__name__)


def seed_base_units(tenant, user=None):
    """
    Create the standard base units for a tenant.

    Idempotent: units whose name already exists (case-insensitive) are skipped.

    Returns:
        int: number of units created
    """
    existing = {
        name.lower() for name in Unit.all_objects.filter(tenant=tenant).values_list("name", flat=True)
    }
    created = 0
    for name, short_name in Unit.BASE_UNITS:
        if name.lower() in existing:
            continue
        Unit.objects.create(
            tenant=tenant,
            name=name,
            short_name=short_name,
            unit_type=Unit.BASE,
            created_by=user,
        )
        created += 1

    if created:
        record_history(tenant, user, "UNITS_SEEDED", None, f"Seeded {created} base units")
    logger.info(f"Seeded {created} base units for tenant {tenant.pk}")
    return created


def _check_warehouse(user, warehouse):
    if user is not None and not user.can_access_warehouse(warehouse):
        raise Forbidden(f"You do not have access to warehouse {warehouse}.")


@transaction.atomic
def add_stock(tenant, user, rows, source=ProductBatch.MANUAL):
    """
    Create batches for opening stock or manual intake.

    Args:
        rows: iterable of dicts with product, warehouse, unit_cost,
            selling_price, quantity and optional expiry_date/notes

    Returns:
        list[ProductBatch]
    """
    if not rows:
        raise BadRequest("At least one stock row is required.")

    batches = []
    for row in rows:
        product = row["product"]
        warehouse = row["warehouse"]
        _check_warehouse(user, warehouse)
        quantity = Decimal(row["quantity"])
        if quantity <= 0:
            raise BadRequest("Quantity must be greater than zero.")
        batch = ProductBatch.objects.create(
            tenant=tenant,
            product=product,
            warehouse=warehouse,
            unit_cost=money(row["unit_cost"]),
            selling_price=money(row["selling_price"]),
            quantity=quantity,
            remaining=quantity,
            expiry_date=row.get("expiry_date"),
            notes=row.get("notes", ""),
            source=source,
            created_by=user,
        )
        batches.append(batch)
        record_history(
            tenant,
            user,
            "STOCK_ADDED",
            batch,
            f"Added {quantity} x {product.name} to {warehouse.name}",
            batch_number=batch.batch_number,
        )
    return batches


@transaction.atomic
def adjust_stock(
    tenant, user, product, warehouse, adjustment_type, quantity, reason="", unit_cost=None
):
    """
    Apply a manual stock adjustment.

    ADD creates an ADJUSTMENT batch at ``unit_cost`` (defaults to the cost of
    the product's most recent batch). REMOVE consumes stock FIFO.
    """
    _check_warehouse(user, warehouse)
    quantity = Decimal(quantity)
    if quantity <= 0:
        raise BadRequest("Quantity must be greater than zero.")

    if adjustment_type == StockAdjustment.ADD:
        latest = product.batches.order_by("-received_at", "-id").first()
        if unit_cost is None:
            unit_cost = latest.unit_cost if latest else Decimal("0")
        selling_price = latest.selling_price if latest else money(unit_cost)
        batch = ProductBatch.objects.create(
            tenant=tenant,
            product=product,
            warehouse=warehouse,
            unit_cost=money(unit_cost),
            selling_price=selling_price,
            quantity=quantity,
            remaining=quantity,
            source=ProductBatch.ADJUSTMENT,
            notes=reason,
            created_by=user,
        )
        total_cost = money(quantity * batch.unit_cost)
    elif adjustment_type == StockAdjustment.REMOVE:
        result = fifo.consume(product, warehouse, quantity)
        batch = result.allocations[-1].batch
        unit_cost = result.unit_cost
        total_cost = result.total_cost
    else:
        raise BadRequest("adjustment_type must be ADD or REMOVE.")

    adjustment = StockAdjustment.objects.create(
        tenant=tenant,
        product=product,
        warehouse=warehouse,
        adjustment_type=adjustment_type,
        quantity=quantity,
        unit_cost=unit_cost,
        total_cost=total_cost,
        reason=reason,
        batch=batch,
        created_by=user,
    )
    record_history(
        tenant,
        user,
        "STOCK_ADJUSTED",
        adjustment,
        f"{adjustment.get_adjustment_type_display()}: {quantity} x {product.name} "
        f"in {warehouse.name}",
        reason=reason,
    )
    return adjustment


@transaction.atomic
def create_transfer(tenant, user, from_warehouse, to_warehouse, items, notes=""):
    """
    Create a pending stock transfer.

    Each item is checked against available stock in the source warehouse,
    but nothing is reserved until the transfer is approved.
    """
    if from_warehouse.pk == to_warehouse.pk:
        raise BadRequest("Source and destination warehouses must differ.")
    if not items:
        raise BadRequest("A transfer needs at least one item.")
    _check_warehouse(user, from_warehouse)

    transfer = StockTransfer.objects.create(
        tenant=tenant,
        from_warehouse=from_warehouse,
        to_warehouse=to_warehouse,
        notes=notes,
        requested_by=user,
        created_by=user,
    )
    for item in items:
        fifo.preview_cost(item["product"], from_warehouse, item["quantity"])
        StockTransferItem.objects.create(
            transfer=transfer,
            product=item["product"],
            quantity=Decimal(item["quantity"]),
        )

    record_history(
        tenant,
        user,
        "STOCK_TRANSFER_CREATED",
        transfer,
        f"Transfer {transfer.transfer_number} from {from_warehouse.name} to {to_warehouse.name}",
    )
    return transfer


@transaction.atomic
def approve_transfer(transfer, user, transport=None):
    """
    Dispatch a pending transfer: consume source stock FIFO and, when a
    transport is given, book a shipment with the default ETA.
    """
    transfer = StockTransfer.objects.select_for_update().get(pk=transfer.pk)
    if transfer.status != StockTransfer.PENDING:
        raise InvalidStateError(f"Transfer {transfer.transfer_number} is not pending.")
    _check_warehouse(user, transfer.from_warehouse)

    for item in transfer.items.select_related("product"):
        result = fifo.consume(item.product, transfer.from_warehouse, item.quantity)
        for allocation in result.allocations:
            StockTransferAllocation.objects.create(
                item=item,
                batch=allocation.batch,
                quantity=allocation.quantity,
                unit_cost=allocation.unit_cost,
            )
        item.unit_cost = result.unit_cost
        item.selling_price = result.head_selling_price
        item.save(update_fields=["unit_cost", "selling_price"])

    transfer.mark_in_transit(user)
    transfer.save()

    if transport is not None:
        from apps.transport.services import create_shipment

        create_shipment(
            transfer.tenant,
            user,
            transport=transport,
            origin=transfer.from_warehouse,
            destination=transfer.to_warehouse,
            stock_transfer=transfer,
            estimated_delivery=timezone.now() + timedelta(days=settings.RETAILOPS_TRANSFER_ETA_DAYS),
            notes=f"Stock transfer {transfer.transfer_number}",
        )

    record_history(
        transfer.tenant,
        user,
        "STOCK_TRANSFER_APPROVED",
        transfer,
        f"Transfer {transfer.transfer_number} dispatched",
    )
    logger.info(f"Transfer {transfer.transfer_number} approved by {user}")
    return transfer


@transaction.atomic
def complete_transfer(transfer, user):
    """
    Receive an in-transit transfer.

    Each source allocation becomes a TRANSFER batch in the destination warehouse
    at the cost it left the source with, so the stock value arrives unchanged.
    An open shipment carrying the transfer is delivered with it.
    """
    transfer = StockTransfer.objects.select_for_update().get(pk=transfer.pk)
    if transfer.status != StockTransfer.IN_TRANSIT:
        raise InvalidStateError(f"Transfer {transfer.transfer_number} is not in transit.")

    for item in transfer.items.select_related("product"):
        selling_price = item.selling_price if item.selling_price is not None else item.unit_cost
        for allocation in item.allocations.select_related("batch").order_by("pk"):
            ProductBatch.objects.create(
                tenant=transfer.tenant,
                product=item.product,
                warehouse=transfer.to_warehouse,
                unit_cost=allocation.unit_cost,
                selling_price=selling_price,
                quantity=allocation.quantity,
                remaining=allocation.quantity,
                expiry_date=allocation.batch.expiry_date,
                source=ProductBatch.TRANSFER,
                notes=f"Transfer {transfer.transfer_number} from {allocation.batch.batch_number}",
                created_by=user,
            )

    transfer.mark_completed()
    transfer.save()

    from apps.transport.services import deliver_shipments_for_transfer

    deliver_shipments_for_transfer(transfer, user)
    record_history(
        transfer.tenant,
        user,
        "STOCK_TRANSFER_COMPLETED",
        transfer,
        f"Transfer {transfer.transfer_number} received at {transfer.to_warehouse.name}",
    )
    return transfer


@transaction.atomic
def cancel_transfer(transfer, user, reason=""):
    """Cancel a transfer; stock already taken for an in-transit transfer is put back."""
    transfer = StockTransfer.objects.select_for_update().get(pk=transfer.pk)
    if transfer.status not in (StockTransfer.PENDING, StockTransfer.IN_TRANSIT):
        raise InvalidStateError(f"Transfer {transfer.transfer_number} cannot be cancelled.")

    if transfer.status == StockTransfer.IN_TRANSIT:
        allocations = StockTransferAllocation.objects.filter(item__transfer=transfer)
        fifo.restore(allocations)

        from apps.transport.services import cancel_shipments_for_transfer

        cancel_shipments_for_transfer(transfer, user)

    transfer.mark_cancelled()
    transfer.save()
    record_history(
        transfer.tenant,
        user,
        "STOCK_TRANSFER_CANCELLED",
        transfer,
        f"Transfer {transfer.transfer_number} cancelled",
        reason=reason,
    )
    return transfer
