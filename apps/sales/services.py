"""
Sales services: POS checkout, totals preview, voids, returns and the cash drawer.

Stock leaves and comes back only through ``apps.inventory.fifo``; the
allocations it returns are stored per sale line so that voids and returns put
units back into the batches they came from.
"""

import logging
import math
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Q, Sum

from apps.core.exceptions import BadRequest, Forbidden, InvalidStateError
from apps.core.history import record_history
from apps.core.utils import day_bounds, money
from apps.inventory import fifo
from apps.inventory.models import Product

from .models import (
    CashDrawerEvent,
    Customer,
    Sale,
    SaleItem,
    SaleItemAllocation,
    SellReturn,
    SellReturnItem,
)

logger = logging.getLogger(__name__)


def _check_warehouse(user, warehouse):
    if not user.can_access_warehouse(warehouse):
        raise Forbidden(f"You do not have access to warehouse {warehouse}.")


def _compute_totals(lines, discount, tax_rate):
    """
    Sale arithmetic shared by checkout and preview.

    ``lines`` need ``line_total`` and ``cost_of_goods``.
    """
    discount = money(discount)
    tax_rate = Decimal(tax_rate or 0)
    if discount < 0:
        raise BadRequest("Discount cannot be negative.")
    if tax_rate < 0:
        raise BadRequest("Tax rate cannot be negative.")

    subtotal = money(sum((line["line_total"] for line in lines), Decimal("0")))
    if discount > subtotal:
        raise BadRequest(
            "Discount cannot exceed the subtotal.",
            details={"discount": str(discount), "subtotal": str(subtotal)},
        )
    taxable = subtotal - discount
    tax = money(taxable * tax_rate / 100)
    total_cost = money(sum((line["cost_of_goods"] for line in lines), Decimal("0")))
    return {
        "subtotal": subtotal,
        "discount": discount,
        "tax_rate": tax_rate,
        "tax": tax,
        "total": taxable + tax,
        "total_cost": total_cost,
        "profit": taxable - total_cost,
    }


def _cash_settlement(payment_method, total, cash_received):
    if payment_method != Sale.CASH:
        return None, Decimal("0.00")
    if cash_received is None:
        cash_received = total
    cash_received = money(cash_received)
    if cash_received < total:
        raise BadRequest(
            "Cash received is less than the sale total.",
            details={"total": str(total), "cash_received": str(cash_received)},
        )
    return cash_received, cash_received - total


def _line(product, quantity, unit_price, result):
    if unit_price is None:
        unit_price = result.head_selling_price
    unit_price = money(unit_price)
    if unit_price < 0:
        raise BadRequest("Unit price cannot be negative.")
    return {
        "product": product,
        "quantity": quantity,
        "unit_price": unit_price,
        "line_total": money(quantity * unit_price),
        "cost_of_goods": result.total_cost,
        "fifo": result,
    }


def calculate_totals(
    warehouse,
    items,
    discount=Decimal("0.00"),
    tax_rate=Decimal("0"),
    payment_method=Sale.CASH,
    cash_received=None,
):
    """
    Preview a sale without touching stock.

    Returns:
        dict: lines plus subtotal, discount, tax, total, total_cost, profit
        and change for cash payments
    """
    if not items:
        raise BadRequest("A sale needs at least one item.")

    lines = []
    for item in items:
        quantity = Decimal(item["quantity"])
        result = fifo.preview_cost(item["product"], warehouse, quantity)
        lines.append(_line(item["product"], quantity, item.get("unit_price"), result))

    totals = _compute_totals(lines, discount, tax_rate)
    cash, change = _cash_settlement(payment_method, totals["total"], cash_received)
    totals.update(
        {
            "cash_received": cash,
            "change_given": change,
            "lines": [
                {
                    "product_id": line["product"].pk,
                    "product": line["product"].name,
                    "quantity": line["quantity"],
                    "unit_price": line["unit_price"],
                    "line_total": line["line_total"],
                    "cost_of_goods": line["cost_of_goods"],
                }
                for line in lines
            ],
        }
    )
    return totals


def loyalty_points_for(total):
    return int(math.floor(Decimal(total) * settings.RETAILOPS_LOYALTY_POINTS_PER_UNIT))


@transaction.atomic
def create_sale(
    tenant,
    cashier,
    warehouse,
    items,
    customer=None,
    payment_method=Sale.CASH,
    discount=Decimal("0.00"),
    tax_rate=Decimal("0"),
    cash_received=None,
    notes="",
):
    """
    Complete a POS sale.

    Stock is consumed FIFO for every line; the line price defaults to the
    selling price of the oldest batch taken. Nothing is saved if any line
    lacks stock or the payment does not cover the total.

    Args:
        items: iterable of dicts with product, quantity and optional unit_price

    Returns:
        Sale
    """
    _check_warehouse(cashier, warehouse)
    if not items:
        raise BadRequest("A sale needs at least one item.")

    lines = []
    for item in items:
        quantity = Decimal(item["quantity"])
        result = fifo.consume(item["product"], warehouse, quantity)
        lines.append(_line(item["product"], quantity, item.get("unit_price"), result))

    totals = _compute_totals(lines, discount, tax_rate)
    cash, change = _cash_settlement(payment_method, totals["total"], cash_received)
    points = loyalty_points_for(totals["total"]) if customer is not None else 0

    sale = Sale.objects.create(
        tenant=tenant,
        warehouse=warehouse,
        customer=customer,
        cashier=cashier,
        payment_method=payment_method,
        subtotal=totals["subtotal"],
        discount=totals["discount"],
        tax_rate=totals["tax_rate"],
        tax=totals["tax"],
        total=totals["total"],
        cash_received=cash,
        change_given=change,
        total_cost=totals["total_cost"],
        profit=totals["profit"],
        loyalty_points_earned=points,
        notes=notes,
    )

    for line in lines:
        sale_item = SaleItem.objects.create(
            sale=sale,
            product=line["product"],
            quantity=line["quantity"],
            unit_price=line["unit_price"],
            line_total=line["line_total"],
            cost_of_goods=line["cost_of_goods"],
        )
        SaleItemAllocation.objects.bulk_create(
            [
                SaleItemAllocation(
                    sale_item=sale_item,
                    batch=allocation.batch,
                    quantity=allocation.quantity,
                    unit_cost=allocation.unit_cost,
                )
                for allocation in line["fifo"].allocations
            ]
        )

    if customer is not None:
        customer = Customer.objects.select_for_update().get(pk=customer.pk)
        customer.total_spent += sale.total
        customer.total_orders += 1
        customer.loyalty_points += points
        customer.last_purchase_at = sale.sale_date
        if customer.evaluate_tier():
            logger.info(f"Customer {customer.pk} moved to tier {customer.tier}")
        customer.save()

    if payment_method == Sale.CASH:
        CashDrawerEvent.objects.create(
            tenant=tenant,
            warehouse=warehouse,
            user=cashier,
            event_type=CashDrawerEvent.SALE,
            amount=sale.total,
            sale=sale,
        )

    record_history(
        tenant,
        cashier,
        "SALE_CREATED",
        sale,
        f"Sale {sale.sale_number} for {sale.total}",
        total=str(sale.total),
        profit=str(sale.profit),
    )
    return sale


@transaction.atomic
def void_sale(sale, user, reason=""):
    """
    Void a completed sale: all stock returns to its batches and the
    customer's aggregates are reversed.
    """
    sale = Sale.objects.select_for_update().get(pk=sale.pk)
    if sale.status != Sale.COMPLETED:
        raise InvalidStateError(f"Sale {sale.sale_number} is already {sale.status}.")
    if sale.has_returns():
        raise InvalidStateError(
            f"Sale {sale.sale_number} has returns and cannot be voided."
        )

    allocations = list(
        SaleItemAllocation.objects.filter(sale_item__sale=sale, restored_quantity=0)
    )
    fifo.restore(allocations)
    for allocation in allocations:
        allocation.restored_quantity = allocation.quantity
        allocation.save(update_fields=["restored_quantity"])

    if sale.customer_id:
        customer = Customer.objects.select_for_update().get(pk=sale.customer_id)
        customer.total_spent = max(Decimal("0.00"), customer.total_spent - sale.total)
        customer.total_orders = max(0, customer.total_orders - 1)
        customer.loyalty_points = max(0, customer.loyalty_points - sale.loyalty_points_earned)
        customer.evaluate_tier()
        customer.save()

    if sale.payment_method == Sale.CASH:
        CashDrawerEvent.objects.create(
            tenant=sale.tenant,
            warehouse=sale.warehouse,
            user=user,
            event_type=CashDrawerEvent.CASH_OUT,
            amount=sale.total,
            sale=sale,
            note=f"Void {sale.sale_number}",
        )

    sale.mark_voided(user, reason)
    sale.save()
    record_history(
        sale.tenant, user, "SALE_VOIDED", sale, f"Sale {sale.sale_number} voided", reason=reason
    )
    logger.warning(f"Sale {sale.sale_number} voided by {user}: {reason}")
    return sale


def _pending_quantity(sale_item):
    return SellReturnItem.objects.filter(
        sale_item=sale_item, sell_return__status=SellReturn.PENDING
    ).aggregate(total=Sum("quantity"))["total"] or Decimal("0")


def refund_for(sale, unit_price, quantity):
    """Refund for ``quantity`` units, reduced by the sale's discount share."""
    gross = quantity * unit_price
    if sale.discount and sale.subtotal:
        gross = gross * (sale.subtotal - sale.discount) / sale.subtotal
    return money(gross)


@transaction.atomic
def process_return(
    sale, user, items, reason="OTHER", restock=True, notes="", auto_complete=True
):
    """
    Record a customer return against a sale.

    Args:
        items: iterable of dicts with sale_item and quantity
        auto_complete: complete immediately; otherwise the return waits
            for ``complete_return`` or ``reject_return``

    Returns:
        SellReturn
    """
    sale = Sale.objects.select_for_update().get(pk=sale.pk)
    if sale.status != Sale.COMPLETED:
        raise InvalidStateError(f"Sale {sale.sale_number} is {sale.status}; nothing to return.")
    if not items:
        raise BadRequest("A return needs at least one item.")

    sell_return = SellReturn.objects.create(
        tenant=sale.tenant,
        sale=sale,
        customer=sale.customer,
        reason=reason,
        restock=restock,
        notes=notes,
        created_by=user,
    )

    total_refund = Decimal("0.00")
    for row in items:
        sale_item = row["sale_item"]
        if sale_item.sale_id != sale.pk:
            raise BadRequest(f"Item {sale_item.pk} does not belong to sale {sale.sale_number}.")
        quantity = Decimal(row["quantity"])
        if quantity <= 0:
            raise BadRequest("Quantity must be greater than zero.")
        available = sale_item.returnable_quantity - _pending_quantity(sale_item)
        if quantity > available:
            raise BadRequest(
                f"Cannot return {quantity} of {sale_item.product.name}; "
                f"only {available} can be returned.",
                details={"sale_item": sale_item.pk, "returnable": str(available)},
            )
        refund = refund_for(sale, sale_item.unit_price, quantity)
        SellReturnItem.objects.create(
            sell_return=sell_return, sale_item=sale_item, quantity=quantity, refund_amount=refund
        )
        total_refund += refund

    sell_return.refund_amount = total_refund
    sell_return.save(update_fields=["refund_amount"])
    record_history(
        sale.tenant,
        user,
        "SELL_RETURN_CREATED",
        sell_return,
        f"Return {sell_return.return_number} against {sale.sale_number}",
        refund=str(total_refund),
    )

    if auto_complete:
        sell_return = complete_return(sell_return, user)
    return sell_return


def _restock_item(return_item):
    """Put returned units back, newest allocation first; returns the cost restored."""
    remaining = return_item.quantity
    restored_cost = Decimal("0.00")
    allocations = return_item.sale_item.allocations.select_related("batch").order_by("-id")
    for allocation in allocations:
        if remaining <= 0:
            break
        take = min(remaining, allocation.restorable_quantity)
        if take <= 0:
            continue
        restored_cost += fifo.restore(
            [fifo.Allocation(batch=allocation.batch, quantity=take, unit_cost=allocation.unit_cost)]
        )
        allocation.restored_quantity += take
        allocation.save(update_fields=["restored_quantity"])
        remaining -= take
    return money(restored_cost)


@transaction.atomic
def complete_return(sell_return, user):
    """Issue the refund for a pending return and restock if requested."""
    sell_return = SellReturn.objects.select_for_update().get(pk=sell_return.pk)
    if sell_return.status != SellReturn.PENDING:
        raise InvalidStateError(f"Return {sell_return.return_number} is {sell_return.status}.")
    sale = Sale.objects.select_for_update().get(pk=sell_return.sale_id)
    if sale.status != Sale.COMPLETED:
        raise InvalidStateError(f"Sale {sale.sale_number} is {sale.status}.")

    cost_reversed = Decimal("0.00")
    for return_item in sell_return.items.select_related("sale_item__product"):
        sale_item = SaleItem.objects.select_for_update().get(pk=return_item.sale_item_id)
        if return_item.quantity > sale_item.returnable_quantity:
            raise BadRequest(
                f"Cannot return {return_item.quantity} of {sale_item.product.name}; "
                f"only {sale_item.returnable_quantity} can be returned."
            )
        if sell_return.restock:
            return_item.cost_reversed = _restock_item(return_item)
            return_item.save(update_fields=["cost_reversed"])
            cost_reversed += return_item.cost_reversed
        sale_item.returned_quantity += return_item.quantity
        sale_item.save(update_fields=["returned_quantity"])

    sell_return.cost_reversed = cost_reversed
    sell_return.mark_completed(user)
    sell_return.save()

    if sale.is_fully_returned():
        sale.mark_returned()
        sale.save()

    if sale.customer_id:
        customer = Customer.objects.select_for_update().get(pk=sale.customer_id)
        customer.total_spent = max(
            Decimal("0.00"), customer.total_spent - sell_return.refund_amount
        )
        customer.evaluate_tier()
        customer.save()

    if sale.payment_method == Sale.CASH and sell_return.refund_amount > 0:
        CashDrawerEvent.objects.create(
            tenant=sale.tenant,
            warehouse=sale.warehouse,
            user=user,
            event_type=CashDrawerEvent.CASH_OUT,
            amount=sell_return.refund_amount,
            sale=sale,
            sell_return=sell_return,
            note=f"Refund {sell_return.return_number}",
        )

    record_history(
        sale.tenant,
        user,
        "SELL_RETURN_COMPLETED",
        sell_return,
        f"Return {sell_return.return_number} completed, refund {sell_return.refund_amount}",
        restock=sell_return.restock,
        cost_reversed=str(cost_reversed),
    )
    return sell_return


@transaction.atomic
def reject_return(sell_return, user, note=""):
    sell_return = SellReturn.objects.select_for_update().get(pk=sell_return.pk)
    if sell_return.status != SellReturn.PENDING:
        raise InvalidStateError(f"Return {sell_return.return_number} is {sell_return.status}.")
    sell_return.mark_rejected(user)
    if note:
        sell_return.notes = f"{sell_return.notes}\n{note}".strip()
    sell_return.save()
    record_history(
        sell_return.tenant,
        user,
        "SELL_RETURN_REJECTED",
        sell_return,
        f"Return {sell_return.return_number} rejected",
        note=note,
    )
    return sell_return


# Cash drawer

MANUAL_DRAWER_EVENTS = (
    CashDrawerEvent.NO_SALE,
    CashDrawerEvent.CASH_IN,
    CashDrawerEvent.CASH_OUT,
    CashDrawerEvent.COUNT,
)


def record_drawer_event(tenant, user, warehouse, event_type, amount=Decimal("0.00"), note=""):
    """Record a manual till event; sale and refund events are written by the sale services."""
    _check_warehouse(user, warehouse)
    if event_type not in MANUAL_DRAWER_EVENTS:
        raise BadRequest(
            f"event_type must be one of: {', '.join(MANUAL_DRAWER_EVENTS)}",
            details={"event_type": event_type},
        )
    amount = money(amount)
    if amount < 0:
        raise BadRequest("Amount cannot be negative.")
    if event_type in (CashDrawerEvent.CASH_IN, CashDrawerEvent.CASH_OUT) and amount == 0:
        raise BadRequest("Cash in/out needs an amount.")
    if event_type == CashDrawerEvent.NO_SALE:
        amount = Decimal("0.00")

    event = CashDrawerEvent.objects.create(
        tenant=tenant,
        warehouse=warehouse,
        user=user,
        event_type=event_type,
        amount=amount,
        note=note,
    )
    logger.info(f"Drawer {event_type} of {amount} at warehouse {warehouse.pk} by {user}")
    return event


def drawer_summary(tenant, warehouse, day):
    """
    Cash expected in a warehouse's drawer for one day.

    expected = cash_in + cash sales - cash_out - refunds
    """
    start, end = day_bounds(day)
    events = CashDrawerEvent.objects.filter(
        tenant=tenant, warehouse=warehouse, created_at__gte=start, created_at__lt=end
    )

    def _sum(queryset):
        return queryset.aggregate(total=Sum("amount"))["total"] or Decimal("0.00")

    cash_in = _sum(events.filter(event_type=CashDrawerEvent.CASH_IN))
    cash_sales = _sum(events.filter(event_type=CashDrawerEvent.SALE))
    refunds = _sum(events.filter(event_type=CashDrawerEvent.CASH_OUT, sell_return__isnull=False))
    cash_out = _sum(events.filter(event_type=CashDrawerEvent.CASH_OUT, sell_return__isnull=True))
    expected = cash_in + cash_sales - cash_out - refunds

    last_count = events.filter(event_type=CashDrawerEvent.COUNT).order_by("-created_at").first()
    return {
        "warehouse_id": warehouse.pk,
        "date": day.isoformat(),
        "cash_in": cash_in,
        "cash_sales": cash_sales,
        "cash_out": cash_out,
        "refunds": refunds,
        "expected_cash": expected,
        "no_sale_count": events.filter(event_type=CashDrawerEvent.NO_SALE).count(),
        "counted_cash": last_count.amount if last_count else None,
        "variance": (last_count.amount - expected) if last_count else None,
        "event_count": events.count(),
    }


def pos_product_search(tenant, warehouse, query, limit=20, in_stock_only=False):
    """Products matching name, SKU or barcode with their stock and next FIFO price."""
    products = Product.objects.filter(tenant=tenant, is_active=True)
    if query:
        products = products.filter(
            Q(name__icontains=query) | Q(sku__icontains=query) | Q(barcode=query)
        )
    results = []
    for product in products.select_related("unit").order_by("name"):
        stock = product.total_stock(warehouse)
        if in_stock_only and stock <= 0:
            continue
        results.append(
            {
                "id": product.pk,
                "name": product.name,
                "sku": product.sku,
                "barcode": product.barcode,
                "unit": product.unit.short_name if product.unit_id else None,
                "stock": stock,
                "price": product.current_selling_price(warehouse),
            }
        )
        if len(results) >= limit:
            break
    return results
