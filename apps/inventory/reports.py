"""
Inventory reporting functionality.

- Stock overview per product and warehouse
- Inventory valuation report (at cost and at retail)
- Low stock alert report
- Expiring batches report
"""

from datetime import timedelta
from decimal import Decimal

from django.db.models import Count, Sum
from django.utils import timezone

from apps.core.utils import money

from . import fifo
from .models import Product, ProductBatch


class InventoryReportGenerator:
    """Generate inventory reports for a tenant from live product batches."""

    def __init__(self, tenant):
        """
        Initialize report generator for a specific tenant.

        Args:
            tenant: The tenant to generate reports for
        """
        self.tenant = tenant

    def _live_batches(self, warehouse_id=None, category_id=None):
        queryset = ProductBatch.objects.filter(
            tenant=self.tenant, is_depleted=False, remaining__gt=0, product__del_flag=False
        )
        if warehouse_id:
            queryset = queryset.filter(warehouse_id=warehouse_id)
        if category_id:
            queryset = queryset.filter(product__category_id=category_id)
        return queryset

    def get_stock_overview(self, warehouse_id=None, category_id=None):
        """
        Remaining quantity, batch count and value per product and warehouse.
        """
        rows = (
            self._live_batches(warehouse_id, category_id)
            .values(
                "product_id",
                "product__name",
                "product__sku",
                "warehouse_id",
                "warehouse__name",
            )
            .annotate(
                cost_value=Sum(fifo.batch_value("cost")),
                retail_value=Sum(fifo.batch_value("price")),
                on_hand=Sum("remaining"),
                batch_count=Count("id"),
            )
            .order_by("product__name", "warehouse__name")
        )
        items = [
            {
                "product_id": row["product_id"],
                "product": row["product__name"],
                "sku": row["product__sku"],
                "warehouse_id": row["warehouse_id"],
                "warehouse": row["warehouse__name"],
                "remaining": float(row["on_hand"]),
                "batch_count": row["batch_count"],
                "cost_value": float(money(row["cost_value"])),
                "retail_value": float(money(row["retail_value"])),
            }
            for row in rows
        ]
        return {
            "report_type": "stock_overview",
            "generated_at": timezone.now().isoformat(),
            "summary": {
                "rows": len(items),
                "total_cost_value": float(sum(Decimal(str(i["cost_value"])) for i in items)),
                "total_retail_value": float(sum(Decimal(str(i["retail_value"])) for i in items)),
            },
            "items": items,
        }

    def get_inventory_valuation_report(self, warehouse_id=None, category_id=None):
        """
        Generate inventory valuation report.

        Shows total inventory value at cost and at selling price, broken down
        by category and warehouse. Totals come from ``fifo.stock_value`` so they
        match the inventory line of the balance sheet.

        Args:
            warehouse_id: Optional warehouse filter
            category_id: Optional category filter

        Returns:
            dict: Report data with summary and details
        """
        warehouse_id = warehouse_id or None
        category_id = category_id or None
        batches = ProductBatch.objects.filter(
            tenant=self.tenant, is_depleted=False, remaining__gt=0
        )
        if warehouse_id:
            batches = batches.filter(warehouse_id=warehouse_id)
        if category_id:
            batches = batches.filter(product__category_id=category_id)

        total_cost_value = fifo.stock_value(
            self.tenant, warehouse_id, basis="cost", category=category_id
        )
        total_selling_value = fifo.stock_value(
            self.tenant, warehouse_id, basis="price", category=category_id
        )
        totals = batches.aggregate(
            products=Count("product", distinct=True), on_hand=Sum("remaining")
        )

        potential_profit = total_selling_value - total_cost_value
        profit_margin = (
            (potential_profit / total_cost_value * 100) if total_cost_value > 0 else Decimal("0.00")
        )

        by_category = [
            {
                "category": row["product__category__name"] or "Uncategorized",
                "products": row["products"],
                "total_quantity": float(row["on_hand"]),
                "cost_value": float(money(row["cost_value"])),
                "selling_value": float(money(row["selling_value"])),
            }
            for row in batches.values("product__category__name")
            .annotate(
                cost_value=Sum(fifo.batch_value("cost")),
                selling_value=Sum(fifo.batch_value("price")),
                products=Count("product", distinct=True),
                on_hand=Sum("remaining"),
            )
            .order_by("product__category__name")
        ]
        by_warehouse = [
            {
                "warehouse": row["warehouse__name"],
                "batch_count": row["batch_count"],
                "total_quantity": float(row["on_hand"]),
                "cost_value": float(money(row["cost_value"])),
                "selling_value": float(money(row["selling_value"])),
            }
            for row in batches.values("warehouse__name")
            .annotate(
                cost_value=Sum(fifo.batch_value("cost")),
                selling_value=Sum(fifo.batch_value("price")),
                batch_count=Count("id"),
                on_hand=Sum("remaining"),
            )
            .order_by("warehouse__name")
        ]

        return {
            "report_type": "inventory_valuation",
            "generated_at": timezone.now().isoformat(),
            "filters": {
                "warehouse_id": warehouse_id,
                "category_id": category_id,
            },
            "summary": {
                "total_products": totals["products"],
                "total_quantity": float(totals["on_hand"] or 0),
                "total_cost_value": float(total_cost_value),
                "total_selling_value": float(total_selling_value),
                "potential_profit": float(money(potential_profit)),
                "profit_margin_percentage": float(money(profit_margin)),
            },
            "by_category": by_category,
            "by_warehouse": by_warehouse,
        }

    def get_low_stock_alert_report(self, warehouse_id=None, category_id=None):
        """
        Products at or below their low-stock threshold, including products
        with no stock at all, sorted by largest shortage first.
        """
        products = Product.objects.filter(tenant=self.tenant, is_active=True).select_related(
            "category"
        )
        if category_id:
            products = products.filter(category_id=category_id)

        stock_by_product = dict(
            self._live_batches(warehouse_id)
            .values("product_id")
            .annotate(total=Sum("remaining"))
            .values_list("product_id", "total")
        )

        items = []
        for product in products:
            stock = stock_by_product.get(product.pk) or Decimal("0")
            threshold = product.low_stock_threshold()
            if stock > threshold:
                continue
            items.append(
                {
                    "product_id": product.pk,
                    "name": product.name,
                    "sku": product.sku,
                    "category": product.category.name if product.category else None,
                    "current_stock": float(stock),
                    "threshold": float(threshold),
                    "shortage": float(threshold - stock),
                    "status": "OUT_OF_STOCK" if stock == 0 else "LOW_STOCK",
                }
            )

        items.sort(key=lambda item: item["shortage"], reverse=True)

        return {
            "report_type": "low_stock_alert",
            "generated_at": timezone.now().isoformat(),
            "filters": {"warehouse_id": warehouse_id, "category_id": category_id},
            "summary": {
                "low_stock_count": sum(1 for i in items if i["status"] == "LOW_STOCK"),
                "out_of_stock_count": sum(1 for i in items if i["status"] == "OUT_OF_STOCK"),
                "total_alerts": len(items),
            },
            "items": items,
        }

    def get_expiring_batches_report(self, days=30, warehouse_id=None):
        """Live batches whose expiry date falls within ``days`` (already expired included)."""
        today = timezone.localdate()
        cutoff = today + timedelta(days=days)
        batches = (
            self._live_batches(warehouse_id)
            .filter(expiry_date__isnull=False, expiry_date__lte=cutoff)
            .select_related("product", "warehouse")
            .order_by("expiry_date")
        )
        items = [
            {
                "batch_number": batch.batch_number,
                "product": batch.product.name,
                "warehouse": batch.warehouse.name,
                "expiry_date": batch.expiry_date.isoformat(),
                "days_left": (batch.expiry_date - today).days,
                "remaining": float(batch.remaining),
                "cost_value": float(money(batch.cost_value)),
                "expired": batch.expiry_date < today,
            }
            for batch in batches
        ]
        return {
            "report_type": "expiring_batches",
            "generated_at": timezone.now().isoformat(),
            "filters": {"days": days, "warehouse_id": warehouse_id},
            "summary": {
                "batch_count": len(items),
                "expired_count": sum(1 for i in items if i["expired"]),
                "value_at_risk": float(sum(Decimal(str(i["cost_value"])) for i in items)),
            },
            "items": items,
        }
