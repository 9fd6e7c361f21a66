"""
Purchase workflow: ordering, receiving at landed cost, cancelling and
returning goods to the supplier.
"""

import logging
from decimal import Decimal

from django.db import transaction

from apps.core.exceptions import BadRequest, Forbidden, InvalidStateError
from apps.core.history import record_history
from apps.core.utils import money
from apps.inventory import fifo
from apps.inventory.models import ProductBatch

from .models import Purchase, PurchaseItem, PurchaseReturn, PurchaseReturnItem

logger = logging.getLogger(__name__)


def allocate_landed_costs(purchase, items):
    """
    Spread the purchase's extra costs (transport, tax, other) over its lines.

    Each line carries ``line_total / subtotal`` of the extras, so
    ``landed_unit_cost = unit_price + share * extras / quantity``.

    Returns:
        dict: ``{item.pk: landed_unit_cost}``
    """
    extras = purchase.extra_costs
    subtotal = sum((item.line_total for item in items), Decimal("0"))
    landed = {}
    for item in items:
        if subtotal > 0:
            share = item.line_total / subtotal
        else:
            share = Decimal("1") / len(items)
        landed[item.pk] = money(item.unit_price + (share * extras) / item.quantity)
    return landed


@transaction.atomic
def create_purchase(
    tenant,
    user,
    supplier,
    warehouse,
    items,
    transport_cost=Decimal("0.00"),
    tax=Decimal("0.00"),
    other_expenses=Decimal("0.00"),
    purchase_date=None,
    notes="",
    receive=False,
):
    """
    Create a purchase order.

    Args:
        items: iterable of dicts with product, quantity, unit_price,
            selling_price and optional expiry_date
        receive: receive the goods immediately

    Returns:
        Purchase
    """
    if not items:
        raise BadRequest("A purchase needs at least one item.")
    if user is not None and not user.can_access_warehouse(warehouse):
        raise Forbidden(f"You do not have access to warehouse {warehouse}.")

    purchase = Purchase(
        tenant=tenant,
        supplier=supplier,
        warehouse=warehouse,
        transport_cost=money(transport_cost),
        tax=money(tax),
        other_expenses=money(other_expenses),
        notes=notes,
        created_by=user,
    )
    if purchase_date:
        purchase.purchase_date = purchase_date
    purchase.save()

    for item in items:
        quantity = Decimal(item["quantity"])
        if quantity <= 0:
            raise BadRequest("Quantity must be greater than zero.")
        PurchaseItem.objects.create(
            purchase=purchase,
            product=item["product"],
            quantity=quantity,
            unit_price=money(item["unit_price"]),
            selling_price=money(item["selling_price"]),
            expiry_date=item.get("expiry_date"),
        )

    purchase.calculate_totals()
    purchase.save(update_fields=["subtotal", "total", "updated_at"])

    record_history(
        tenant,
        user,
        "PURCHASE_CREATED",
        purchase,
        f"Purchase {purchase.purchase_number} from {supplier.name}",
        total=str(purchase.total),
    )
    logger.info(f"Purchase {purchase.purchase_number} created for tenant {tenant.pk}")

    if receive:
        purchase = receive_purchase(purchase, user)
    return purchase


@transaction.atomic
def receive_purchase(purchase, user):
    """Receive an ordered purchase: one PURCHASE batch per line at landed cost."""
    purchase = Purchase.objects.select_for_update().get(pk=purchase.pk)
    if purchase.status != Purchase.ORDERED:
        raise InvalidStateError(
            f"Purchase {purchase.purchase_number} cannot be received: it is {purchase.status}."
        )

    items = list(purchase.items.select_related("product"))
    landed = allocate_landed_costs(purchase, items)
    for item in items:
        item.landed_unit_cost = landed[item.pk]
        item.save(update_fields=["landed_unit_cost"])
        ProductBatch.objects.create(
            tenant=purchase.tenant,
            product=item.product,
            warehouse=purchase.warehouse,
            unit_cost=item.landed_unit_cost,
            selling_price=item.selling_price,
            quantity=item.quantity,
            remaining=item.quantity,
            expiry_date=item.expiry_date,
            source=ProductBatch.PURCHASE,
            purchase_item=item,
            notes=f"Purchase {purchase.purchase_number}",
            created_by=user,
        )

    purchase.mark_received(user)
    purchase.save()
    record_history(
        purchase.tenant,
        user,
        "PURCHASE_RECEIVED",
        purchase,
        f"Purchase {purchase.purchase_number} received into {purchase.warehouse.name}",
    )
    return purchase


@transaction.atomic
def cancel_purchase(purchase, user, reason=""):
    purchase = Purchase.objects.select_for_update().get(pk=purchase.pk)
    if purchase.status != Purchase.ORDERED:
        raise InvalidStateError(
            f"Only ordered purchases can be cancelled; {purchase.purchase_number} is "
            f"{purchase.status}."
        )
    purchase.mark_cancelled()
    purchase.save()
    record_history(
        purchase.tenant,
        user,
        "PURCHASE_CANCELLED",
        purchase,
        f"Purchase {purchase.purchase_number} cancelled",
        reason=reason,
    )
    return purchase


@transaction.atomic
def return_to_supplier(purchase, user, items, reason="", notes=""):
    """
    Send goods from a received purchase back to its supplier.

    Units leave from the batch that purchase line created, so the quantity
    must still be on hand in that batch.

    Args:
        items: iterable of dicts with purchase_item and quantity

    Raises:
        InsufficientStockError: if the batch no longer holds the quantity
    """
    purchase = Purchase.objects.select_for_update().get(pk=purchase.pk)
    if purchase.status != Purchase.RECEIVED:
        raise InvalidStateError(
            f"Only received purchases can be returned; {purchase.purchase_number} is "
            f"{purchase.status}."
        )
    if not items:
        raise BadRequest("A return needs at least one item.")

    purchase_return = PurchaseReturn.objects.create(
        tenant=purchase.tenant,
        purchase=purchase,
        supplier=purchase.supplier,
        reason=reason,
        notes=notes,
        created_by=user,
    )

    total = Decimal("0.00")
    for row in items:
        item = PurchaseItem.objects.select_for_update().get(pk=row["purchase_item"].pk)
        if item.purchase_id != purchase.pk:
            raise BadRequest(f"Item {item.pk} does not belong to {purchase.purchase_number}.")
        quantity = Decimal(row["quantity"])
        if quantity > item.returnable_quantity:
            raise BadRequest(
                f"Cannot return {quantity} of {item.product.name}; "
                f"only {item.returnable_quantity} can be returned.",
                details={"purchase_item": item.pk, "returnable": str(item.returnable_quantity)},
            )

        batch = item.batches.order_by("id").first()
        if batch is None:
            raise InvalidStateError(f"No stock batch was recorded for item {item.pk}.")
        allocation = fifo.draw_from_batch(batch, quantity)

        unit_cost = item.landed_unit_cost or item.unit_price
        line_total = money(quantity * unit_cost)
        PurchaseReturnItem.objects.create(
            purchase_return=purchase_return,
            purchase_item=item,
            batch=allocation.batch,
            quantity=quantity,
            unit_cost=unit_cost,
            line_total=line_total,
        )
        item.returned_quantity += quantity
        item.save(update_fields=["returned_quantity"])
        total += line_total

    purchase_return.total_amount = total
    purchase_return.save(update_fields=["total_amount"])

    record_history(
        purchase.tenant,
        user,
        "PURCHASE_RETURNED",
        purchase_return,
        f"Return {purchase_return.return_number} to {purchase.supplier.name}",
        purchase=purchase.purchase_number,
        total=str(total),
    )
    logger.info(
        f"Purchase return {purchase_return.return_number} for {purchase.purchase_number}: {total}"
    )
    return purchase_return
