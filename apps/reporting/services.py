"""
Business reports.

Every report reads the COGS persisted on sale lines and their batch
allocations; nothing here re-walks batches. Reports return plain dicts with
``report_type``, ``generated_at``, ``period``, ``summary`` and an ``items``
table (plus report specific breakdowns), with money as floats.
"""

import calendar
import logging
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal

from django.conf import settings
from django.db.models import Count, DecimalField, ExpressionWrapper, F, Q, Sum
from django.db.models.functions import ExtractHour, TruncMonth
from django.utils import timezone

from apps.accounting.models import Expense, Income
from apps.core.utils import day_bounds, money, percentage, period_bounds
from apps.inventory.models import Product, ProductBatch, StockTransfer, StockTransferAllocation
from apps.inventory.reports import InventoryReportGenerator
from apps.procurement.models import Purchase, PurchaseItem, PurchaseReturn, PurchaseReturnItem
from apps.sales.models import CashDrawerEvent, Sale, SaleItem, SaleItemAllocation, SellReturn

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
SALES_INCOME_CATEGORY = "Sales"


def _product(expression_a, expression_b, decimal_places=5):
    return ExpressionWrapper(
        expression_a * expression_b,
        output_field=DecimalField(max_digits=20, decimal_places=decimal_places),
    )


def _sum(queryset, expression):
    return queryset.aggregate(total=Sum(expression))["total"] or ZERO


def _envelope(report_type, start_date, end_date, warehouse, summary, items, **breakdowns):
    report = {
        "report_type": report_type,
        "generated_at": timezone.now().isoformat(),
        "period": {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        "filters": {"warehouse": warehouse.pk if warehouse is not None else None},
        "summary": summary,
        "items": items,
    }
    report.update(breakdowns)
    return report


def _sales(tenant, start, end, warehouse=None):
    queryset = Sale.objects.filter(
        tenant=tenant, is_voided=False, sale_date__gte=start, sale_date__lt=end
    )
    if warehouse is not None:
        queryset = queryset.filter(warehouse=warehouse)
    return queryset


def _completed_returns(tenant, start, end, warehouse=None):
    queryset = SellReturn.objects.filter(
        tenant=tenant,
        status=SellReturn.COMPLETED,
        processed_at__gte=start,
        processed_at__lt=end,
    )
    if warehouse is not None:
        queryset = queryset.filter(sale__warehouse=warehouse)
    return queryset


def _expenses(tenant, start_date, end_date, warehouse=None):
    queryset = Expense.objects.filter(
        tenant=tenant, expense_date__gte=start_date, expense_date__lte=end_date
    )
    if warehouse is not None:
        queryset = queryset.filter(warehouse=warehouse)
    return queryset


def _sale_items(tenant, start, end, warehouse=None):
    queryset = SaleItem.objects.filter(
        sale__tenant=tenant,
        sale__is_voided=False,
        sale__sale_date__gte=start,
        sale__sale_date__lt=end,
    )
    if warehouse is not None:
        queryset = queryset.filter(sale__warehouse=warehouse)
    return queryset


def _profit_figures(tenant, start_date, end_date, warehouse=None):
    """Decimal totals shared by the P&L, trends and balance sheet."""
    start, end = period_bounds(start_date, end_date)
    sales = _sales(tenant, start, end, warehouse)
    returns = _completed_returns(tenant, start, end, warehouse)

    gross_sales = _sum(sales, F("subtotal") - F("discount"))
    refunds = _sum(returns, "refund_amount")
    cogs = _sum(sales, "total_cost")
    cost_reversed = _sum(returns.filter(restock=True), "cost_reversed")

    total_sales = gross_sales - refunds
    total_cogs = cogs - cost_reversed
    gross_profit = total_sales - total_cogs

    expenses = _expenses(tenant, start_date, end_date, warehouse).filter(status=Expense.PAID)
    total_expenses = _sum(expenses, "amount")
    other_income = Income.objects.filter(
        tenant=tenant,
        status=Income.RECEIVED,
        income_date__gte=start_date,
        income_date__lte=end_date,
    ).exclude(category=SALES_INCOME_CATEGORY)
    total_other_income = _sum(other_income, "amount")
    net_profit = gross_profit - total_expenses + total_other_income

    return {
        "sales": sales,
        "returns": returns,
        "expenses": expenses,
        "other_income": other_income,
        "gross_sales": gross_sales,
        "refunds": refunds,
        "total_sales": total_sales,
        "total_cogs": total_cogs,
        "gross_profit": gross_profit,
        "total_expenses": total_expenses,
        "total_other_income": total_other_income,
        "net_profit": net_profit,
    }


def stock_at(tenant, moment, warehouse=None):
    """
    Stock value at cost and at retail as of ``moment``.

    Each batch received before ``moment`` counts its quantity less what left
    it before then: sale allocations of non-voided sales (net of restored
    units), transfer allocations of dispatched transfers and returns to
    suppliers.
    """
    batches = ProductBatch.objects.filter(tenant=tenant, received_at__lt=moment)
    if warehouse is not None:
        batches = batches.filter(warehouse=warehouse)
    batches = list(batches.values("id", "quantity", "unit_cost", "selling_price"))
    if not batches:
        return {"cost": ZERO, "retail": ZERO}
    batch_ids = [batch["id"] for batch in batches]

    out = defaultdict(Decimal)
    sold = (
        SaleItemAllocation.objects.filter(
            batch_id__in=batch_ids,
            sale_item__sale__is_voided=False,
            sale_item__sale__sale_date__lt=moment,
        )
        .values("batch_id")
        .annotate(units=Sum(F("quantity") - F("restored_quantity")))
    )
    moved = (
        StockTransferAllocation.objects.filter(
            batch_id__in=batch_ids, item__transfer__approved_at__lt=moment
        )
        .exclude(item__transfer__status=StockTransfer.CANCELLED)
        .values("batch_id")
        .annotate(units=Sum("quantity"))
    )
    returned = (
        PurchaseReturnItem.objects.filter(
            batch_id__in=batch_ids, purchase_return__created_at__lt=moment
        )
        .values("batch_id")
        .annotate(units=Sum("quantity"))
    )
    for rows in (sold, moved, returned):
        for row in rows:
            out[row["batch_id"]] += row["units"] or 0

    cost = retail = Decimal("0")
    for batch in batches:
        on_hand = max(batch["quantity"] - out[batch["id"]], Decimal("0"))
        cost += on_hand * batch["unit_cost"]
        retail += on_hand * batch["selling_price"]
    return {"cost": money(cost), "retail": money(retail)}


def profit_and_loss(tenant, start_date, end_date, warehouse=None):
    """
    Profit and loss statement for a period.

    totalSales = sales net of discount - refunds
    totalCOGS = persisted COGS - cost reversed by restocked returns
    netProfit = grossProfit - totalExpenses + totalOtherIncome
    """
    figures = _profit_figures(tenant, start_date, end_date, warehouse)
    start, end = period_bounds(start_date, end_date)

    opening = stock_at(tenant, start, warehouse)
    closing = stock_at(tenant, end, warehouse)

    by_category = (
        _sale_items(tenant, start, end, warehouse)
        .values("product__category__name")
        .annotate(sales=Sum("line_total"), cogs=Sum("cost_of_goods"), units=Sum("quantity"))
        .order_by("-sales")
    )
    items = []
    for row in by_category:
        sales = row["sales"] or ZERO
        cogs = row["cogs"] or ZERO
        items.append(
            {
                "category": row["product__category__name"] or "Uncategorized",
                "quantity": float(row["units"] or 0),
                "sales": float(sales),
                "cogs": float(cogs),
                "profit": float(sales - cogs),
            }
        )

    expenses_by_category = [
        {"category": row["category"], "amount": float(row["total"]), "count": row["count"]}
        for row in figures["expenses"]
        .values("category")
        .annotate(total=Sum("amount"), count=Count("id"))
        .order_by("-total")
    ]
    income_by_category = [
        {"category": row["category"], "amount": float(row["total"]), "count": row["count"]}
        for row in figures["other_income"]
        .values("category")
        .annotate(total=Sum("amount"), count=Count("id"))
        .order_by("-total")
    ]

    total_sales = figures["total_sales"]
    summary = {
        "totalSales": float(total_sales),
        "grossSales": float(figures["gross_sales"]),
        "totalRefunds": float(figures["refunds"]),
        "totalCOGS": float(figures["total_cogs"]),
        "grossProfit": float(figures["gross_profit"]),
        "grossMargin": float(percentage(figures["gross_profit"], total_sales)),
        "totalExpenses": float(figures["total_expenses"]),
        "totalOtherIncome": float(figures["total_other_income"]),
        "netProfit": float(figures["net_profit"]),
        "netMargin": float(percentage(figures["net_profit"], total_sales)),
        "salesCount": figures["sales"].count(),
        "returnsCount": figures["returns"].count(),
        "expensesCount": figures["expenses"].count(),
    }
    inventory = {
        "openingStockCost": float(opening["cost"]),
        "openingStockRetail": float(opening["retail"]),
        "closingStockCost": float(closing["cost"]),
        "closingStockRetail": float(closing["retail"]),
    }
    return _envelope(
        "profit_and_loss",
        start_date,
        end_date,
        warehouse,
        summary,
        items,
        inventory=inventory,
        expenses_by_category=expenses_by_category,
        income_by_category=income_by_category,
    )


def _month_start(day, months_back):
    year, month = day.year, day.month - months_back
    while month <= 0:
        month += 12
        year -= 1
    return date(year, month, 1)


def profit_trends(tenant, months=6, warehouse=None):
    """Revenue, COGS, expenses and net profit for the last ``months`` months, oldest first."""
    months = max(1, min(int(months), 36))
    today = timezone.localdate()
    items = []
    for back in range(months - 1, -1, -1):
        first = _month_start(today, back)
        last = date(first.year, first.month, calendar.monthrange(first.year, first.month)[1])
        figures = _profit_figures(tenant, first, min(last, today), warehouse)
        items.append(
            {
                "month": first.strftime("%Y-%m"),
                "revenue": float(figures["total_sales"]),
                "cogs": float(figures["total_cogs"]),
                "expenses": float(figures["total_expenses"]),
                "net_profit": float(figures["net_profit"]),
            }
        )
    summary = {
        "months": months,
        "revenue": sum(item["revenue"] for item in items),
        "net_profit": sum(item["net_profit"] for item in items),
    }
    return _envelope(
        "profit_trends", _month_start(today, months - 1), today, warehouse, summary, items
    )


def _product_performance(tenant, start, end, warehouse=None):
    """Revenue and allocation-based COGS per product, net of returns."""
    revenue_rows = (
        _sale_items(tenant, start, end, warehouse)
        .values("product_id", "product__name", "product__sku")
        .annotate(
            net_quantity=Sum(F("quantity") - F("returned_quantity")),
            revenue=Sum(_product(F("unit_price"), F("quantity") - F("returned_quantity"))),
        )
    )
    cogs_rows = (
        SaleItemAllocation.objects.filter(
            sale_item__in=_sale_items(tenant, start, end, warehouse)
        )
        .values("sale_item__product_id")
        .annotate(cogs=Sum(_product(F("unit_cost"), F("quantity") - F("restored_quantity"))))
    )
    cogs = {row["sale_item__product_id"]: row["cogs"] or ZERO for row in cogs_rows}

    rows = []
    for row in revenue_rows:
        revenue = money(row["revenue"] or 0)
        product_cogs = money(cogs.get(row["product_id"], ZERO))
        profit = revenue - product_cogs
        rows.append(
            {
                "product_id": row["product_id"],
                "product": row["product__name"],
                "sku": row["product__sku"],
                "quantity": float(row["net_quantity"] or 0),
                "revenue": float(revenue),
                "cogs": float(product_cogs),
                "profit": float(profit),
                "margin": float(percentage(profit, revenue)),
            }
        )
    return rows


def top_profitable_products(tenant, start_date, end_date, limit=10, warehouse=None):
    start, end = period_bounds(start_date, end_date)
    rows = _product_performance(tenant, start, end, warehouse)
    rows.sort(key=lambda row: row["profit"], reverse=True)
    items = rows[: max(1, int(limit))]
    summary = {
        "products": len(items),
        "revenue": sum(row["revenue"] for row in items),
        "profit": sum(row["profit"] for row in items),
    }
    return _envelope("top_profitable_products", start_date, end_date, warehouse, summary, items)


def product_sell_report(tenant, start_date, end_date, warehouse=None):
    start, end = period_bounds(start_date, end_date)
    rows = (
        _sale_items(tenant, start, end, warehouse)
        .values("product_id", "product__name", "product__sku")
        .annotate(sold=Sum("quantity"), revenue=Sum("line_total"), lines=Count("id"))
        .order_by("-revenue")
    )
    items = []
    for row in rows:
        quantity = row["sold"] or Decimal("0")
        revenue = row["revenue"] or ZERO
        items.append(
            {
                "product_id": row["product_id"],
                "product": row["product__name"],
                "sku": row["product__sku"],
                "quantity": float(quantity),
                "revenue": float(revenue),
                "average_price": float(money(revenue / quantity)) if quantity else 0.0,
                "sales_lines": row["lines"],
            }
        )
    summary = {
        "products": len(items),
        "quantity": sum(item["quantity"] for item in items),
        "revenue": sum(item["revenue"] for item in items),
    }
    return _envelope("product_sell", start_date, end_date, warehouse, summary, items)


def _received_purchases(tenant, start, end, warehouse=None):
    queryset = Purchase.objects.filter(
        tenant=tenant, status=Purchase.RECEIVED, received_at__gte=start, received_at__lt=end
    )
    if warehouse is not None:
        queryset = queryset.filter(warehouse=warehouse)
    return queryset


def product_purchase_report(tenant, start_date, end_date, warehouse=None):
    start, end = period_bounds(start_date, end_date)
    rows = (
        PurchaseItem.objects.filter(purchase__in=_received_purchases(tenant, start, end, warehouse))
        .values("product_id", "product__name", "product__sku")
        .annotate(
            cost=Sum(_product(F("landed_unit_cost"), F("quantity"))),
            purchased=Sum("quantity"),
            invoice_value=Sum("line_total"),
        )
        .order_by("-cost")
    )
    items = []
    for row in rows:
        quantity = row["purchased"] or Decimal("0")
        cost = money(row["cost"] or 0)
        items.append(
            {
                "product_id": row["product_id"],
                "product": row["product__name"],
                "sku": row["product__sku"],
                "quantity": float(quantity),
                "cost": float(cost),
                "invoice_value": float(row["invoice_value"] or 0),
                "average_landed_cost": float(money(cost / quantity)) if quantity else 0.0,
            }
        )
    summary = {
        "products": len(items),
        "quantity": sum(item["quantity"] for item in items),
        "cost": sum(item["cost"] for item in items),
    }
    return _envelope("product_purchase", start_date, end_date, warehouse, summary, items)


def purchase_sale_report(tenant, start_date, end_date, warehouse=None):
    start, end = period_bounds(start_date, end_date)
    purchases = _received_purchases(tenant, start, end, warehouse)
    sales = _sales(tenant, start, end, warehouse)

    purchase_returns = PurchaseReturn.objects.filter(
        tenant=tenant, created_at__gte=start, created_at__lt=end
    )
    if warehouse is not None:
        purchase_returns = purchase_returns.filter(purchase__warehouse=warehouse)
    sell_returns = _completed_returns(tenant, start, end, warehouse)

    total_purchases = _sum(purchases, "total")
    total_purchase_returns = _sum(purchase_returns, "total_amount")
    total_sales = _sum(sales, "total")
    total_sell_returns = _sum(sell_returns, "refund_amount")
    net_purchases = total_purchases - total_purchase_returns
    net_sales = total_sales - total_sell_returns

    summary = {
        "purchases": float(total_purchases),
        "purchase_returns": float(total_purchase_returns),
        "net_purchases": float(net_purchases),
        "purchase_count": purchases.count(),
        "sales": float(total_sales),
        "sell_returns": float(total_sell_returns),
        "net_sales": float(net_sales),
        "sale_count": sales.count(),
        "difference": float(net_sales - net_purchases),
    }
    items = [
        {"metric": "Purchases", "amount": summary["purchases"]},
        {"metric": "Purchase returns", "amount": summary["purchase_returns"]},
        {"metric": "Sales", "amount": summary["sales"]},
        {"metric": "Sell returns", "amount": summary["sell_returns"]},
        {"metric": "Net sales - net purchases", "amount": summary["difference"]},
    ]
    return _envelope("purchase_sale", start_date, end_date, warehouse, summary, items)


def trending_products(tenant, days=30, warehouse=None, limit=20):
    """
    Quantity sold in the last ``days`` days against the equal period before.

    Growth above the stable band is ``up``, below its negative is ``down``;
    a product with no sales in the previous period has growth 100 and ``up``.
    """
    days = max(1, int(days))
    band = Decimal(str(settings.RETAILOPS_TRENDING_STABLE_BAND))
    end_date = timezone.localdate()
    start_date = end_date - timedelta(days=days - 1)
    previous_start = start_date - timedelta(days=days)
    previous_end = start_date - timedelta(days=1)

    def _quantities(first, last):
        start, end = period_bounds(first, last)
        rows = (
            _sale_items(tenant, start, end, warehouse)
            .values("product_id", "product__name", "product__sku")
            .annotate(net_quantity=Sum(F("quantity") - F("returned_quantity")))
        )
        return {row["product_id"]: row for row in rows}

    current = _quantities(start_date, end_date)
    previous = _quantities(previous_start, previous_end)

    items = []
    for product_id in set(current) | set(previous):
        row = current.get(product_id) or previous[product_id]
        now_qty = (current.get(product_id) or {}).get("net_quantity") or Decimal("0")
        before_qty = (previous.get(product_id) or {}).get("net_quantity") or Decimal("0")
        if before_qty == 0:
            growth = Decimal("100") if now_qty > 0 else Decimal("0")
        else:
            growth = ((now_qty - before_qty) / before_qty * 100).quantize(Decimal("0.01"))
        if growth > band:
            trend = "up"
        elif growth < -band:
            trend = "down"
        else:
            trend = "stable"
        items.append(
            {
                "product_id": product_id,
                "product": row["product__name"],
                "sku": row["product__sku"],
                "current_quantity": float(now_qty),
                "previous_quantity": float(before_qty),
                "growth": float(growth),
                "trend": trend,
            }
        )
    items.sort(key=lambda item: (item["current_quantity"], item["growth"]), reverse=True)
    items = items[: max(1, int(limit))]

    summary = {
        "days": days,
        "up": sum(1 for item in items if item["trend"] == "up"),
        "down": sum(1 for item in items if item["trend"] == "down"),
        "stable": sum(1 for item in items if item["trend"] == "stable"),
    }
    return _envelope("trending_products", start_date, end_date, warehouse, summary, items)


def expenses_report(tenant, start_date, end_date, warehouse=None):
    expenses = _expenses(tenant, start_date, end_date, warehouse)
    items = [
        {
            "category": row["category"],
            "paid": float(row["paid"] or 0),
            "pending": float(row["pending"] or 0),
            "count": row["count"],
        }
        for row in expenses.values("category")
        .annotate(
            paid=Sum("amount", filter=Q(status=Expense.PAID)),
            pending=Sum("amount", filter=Q(status=Expense.PENDING)),
            count=Count("id"),
        )
        .order_by("category")
    ]
    by_month = [
        {"month": row["month"].strftime("%Y-%m"), "amount": float(row["paid"] or 0)}
        for row in expenses.filter(status=Expense.PAID)
        .annotate(month=TruncMonth("expense_date"))
        .values("month")
        .annotate(paid=Sum("amount"))
        .order_by("month")
    ]
    summary = {
        "total_paid": float(_sum(expenses.filter(status=Expense.PAID), "amount")),
        "total_pending": float(_sum(expenses.filter(status=Expense.PENDING), "amount")),
        "count": expenses.count(),
    }
    return _envelope(
        "expenses", start_date, end_date, warehouse, summary, items, by_month=by_month
    )


def items_report(tenant, start_date, end_date, warehouse=None):
    """Per product: stock on hand, stock value at cost and units sold in the period."""
    start, end = period_bounds(start_date, end_date)
    batches = ProductBatch.objects.filter(tenant=tenant, is_depleted=False, remaining__gt=0)
    if warehouse is not None:
        batches = batches.filter(warehouse=warehouse)
    stock = {
        row["product_id"]: row
        for row in batches.values("product_id")
        .annotate(
            on_hand=Sum("remaining"), value=Sum(_product(F("remaining"), F("unit_cost")))
        )
    }
    sold = {
        row["product_id"]: row
        for row in _sale_items(tenant, start, end, warehouse)
        .values("product_id")
        .annotate(
            net_quantity=Sum(F("quantity") - F("returned_quantity")), revenue=Sum("line_total")
        )
    }

    items = []
    for product in Product.objects.filter(tenant=tenant).select_related("category", "unit"):
        on_hand = stock.get(product.pk, {})
        sales = sold.get(product.pk, {})
        if not on_hand and not sales:
            continue
        items.append(
            {
                "product_id": product.pk,
                "product": product.name,
                "sku": product.sku,
                "category": product.category.name if product.category_id else "",
                "stock": float(on_hand.get("on_hand") or 0),
                "stock_value": float(money(on_hand.get("value") or 0)),
                "units_sold": float(sales.get("net_quantity") or 0),
                "revenue": float(sales.get("revenue") or 0),
            }
        )
    summary = {
        "products": len(items),
        "stock_value": sum(item["stock_value"] for item in items),
        "units_sold": sum(item["units_sold"] for item in items),
    }
    return _envelope("items", start_date, end_date, warehouse, summary, items)


def register_report(tenant, start_date, end_date, warehouse=None):
    """Cash drawer totals per event type and per user."""
    start, end = period_bounds(start_date, end_date)
    events = CashDrawerEvent.objects.filter(tenant=tenant, created_at__gte=start, created_at__lt=end)
    if warehouse is not None:
        events = events.filter(warehouse=warehouse)

    by_type = {
        row["event_type"]: {"amount": float(row["total"] or 0), "count": row["count"]}
        for row in events.values("event_type").annotate(total=Sum("amount"), count=Count("id"))
    }
    users = defaultdict(lambda: {"user": "", "events": 0})
    for row in events.values("user_id", "user__username", "event_type").annotate(
        total=Sum("amount"), count=Count("id")
    ):
        entry = users[row["user_id"]]
        entry["user"] = row["user__username"] or "system"
        entry["events"] += row["count"]
        entry[row["event_type"]] = float(row["total"] or 0)
    items = sorted(users.values(), key=lambda entry: entry["user"])

    cash_in = by_type.get(CashDrawerEvent.CASH_IN, {}).get("amount", 0.0)
    cash_sales = by_type.get(CashDrawerEvent.SALE, {}).get("amount", 0.0)
    cash_out = by_type.get(CashDrawerEvent.CASH_OUT, {}).get("amount", 0.0)
    summary = {
        "events": events.count(),
        "cash_in": cash_in,
        "cash_sales": cash_sales,
        "cash_out": cash_out,
        "net_cash": cash_in + cash_sales - cash_out,
    }
    return _envelope(
        "register", start_date, end_date, warehouse, summary, items, by_event_type=by_type
    )


def sell_return_report(tenant, start_date, end_date, warehouse=None):
    start, end = period_bounds(start_date, end_date)
    returns = SellReturn.objects.filter(tenant=tenant, created_at__gte=start, created_at__lt=end)
    if warehouse is not None:
        returns = returns.filter(sale__warehouse=warehouse)

    items = [
        {
            "reason": row["reason"],
            "count": row["count"],
            "refund_amount": float(row["refund"] or 0),
            "cost_reversed": float(row["cost"] or 0),
        }
        for row in returns.values("reason")
        .annotate(count=Count("id"), refund=Sum("refund_amount"), cost=Sum("cost_reversed"))
        .order_by("reason")
    ]
    by_status = [
        {"status": row["status"], "count": row["count"], "refund_amount": float(row["refund"] or 0)}
        for row in returns.values("status")
        .annotate(count=Count("id"), refund=Sum("refund_amount"))
        .order_by("status")
    ]
    completed = returns.filter(status=SellReturn.COMPLETED)
    summary = {
        "returns": returns.count(),
        "completed_refunds": float(_sum(completed, "refund_amount")),
        "pending": returns.filter(status=SellReturn.PENDING).count(),
    }
    return _envelope(
        "sell_return", start_date, end_date, warehouse, summary, items, by_status=by_status
    )


def purchase_return_report(tenant, start_date, end_date, warehouse=None):
    start, end = period_bounds(start_date, end_date)
    returns = PurchaseReturn.objects.filter(tenant=tenant, created_at__gte=start, created_at__lt=end)
    if warehouse is not None:
        returns = returns.filter(purchase__warehouse=warehouse)

    items = [
        {
            "supplier_id": row["supplier_id"],
            "supplier": row["supplier__name"],
            "returns": row["count"],
            "total_amount": float(row["amount"] or 0),
        }
        for row in returns.values("supplier_id", "supplier__name")
        .annotate(count=Count("id"), amount=Sum("total_amount"))
        .order_by("-amount")
    ]
    summary = {
        "returns": returns.count(),
        "total_amount": float(_sum(returns, "total_amount")),
        "suppliers": len(items),
    }
    return _envelope("purchase_return", start_date, end_date, warehouse, summary, items)


def today_stats(tenant, warehouse=None):
    """
    Dashboard figures for today: sales count, revenue, profit, an hourly
    series over opening hours, low-stock count and the latest sales.
    """
    today = timezone.localdate()
    start, end = day_bounds(today)
    sales = _sales(tenant, start, end, warehouse)
    totals = sales.aggregate(revenue=Sum("total"), profit=Sum("profit"), count=Count("id"))

    first_hour, last_hour = settings.RETAILOPS_DASHBOARD_HOURS
    hourly = {
        row["hour"]: row
        for row in sales.annotate(hour=ExtractHour("sale_date"))
        .values("hour")
        .annotate(revenue=Sum("total"), count=Count("id"))
    }
    series = [
        {
            "hour": f"{hour:02d}:00",
            "revenue": float((hourly.get(hour) or {}).get("revenue") or 0),
            "count": (hourly.get(hour) or {}).get("count") or 0,
        }
        for hour in range(first_hour, last_hour + 1)
    ]

    low_stock = InventoryReportGenerator(tenant).get_low_stock_alert_report(
        warehouse_id=warehouse.pk if warehouse is not None else None
    )
    recent = [
        {
            "id": sale.pk,
            "sale_number": sale.sale_number,
            "total": float(sale.total),
            "customer": sale.customer.name if sale.customer_id else None,
            "sale_date": sale.sale_date.isoformat(),
        }
        for sale in sales.select_related("customer").order_by("-sale_date")[:5]
    ]

    summary = {
        "sales_count": totals["count"] or 0,
        "revenue": float(totals["revenue"] or 0),
        "profit": float(totals["profit"] or 0),
        "low_stock_count": low_stock["summary"]["total_alerts"],
    }
    return _envelope(
        "dashboard", today, today, warehouse, summary, series, recent_sales=recent
    )
