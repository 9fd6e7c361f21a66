"""
Views for inventory management.

- Category, brand, unit and product CRUD with soft delete
- Manual stock intake, stock overview and adjustments
- Barcode lookup
- Stock transfers between warehouses
- Inventory reports
"""

import logging

from django.db.models import Sum
from django.shortcuts import get_object_or_404

from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core.decorators import permission_required
from apps.core.exceptions import BadRequest, Forbidden, NotFound
from apps.core.mixins import (
    ActiveFilterMixin,
    AuditedCreateMixin,
    AuditedUpdateMixin,
    SoftDeleteMixin,
    TenantScopedMixin,
)
from apps.core.models import Warehouse
from apps.core.permissions import HasTenantAccess
from apps.core.utils import is_truthy

from . import fifo, services
from .models import Brand, Category, Product, ProductBatch, StockAdjustment, StockTransfer, Unit
from .reports import InventoryReportGenerator
from .serializers import (
    AddStockSerializer,
    BrandSerializer,
    CategorySerializer,
    ProductBatchSerializer,
    ProductSerializer,
    StockAdjustmentSerializer,
    StockTransferCreateSerializer,
    StockTransferSerializer,
    UnitSerializer,
)

logger = logging.getLogger(__name__)

PRODUCT_READ = {"GET": "viewProduct"}
PRODUCT_WRITE = {
    "GET": "viewProduct",
    "POST": "addProduct",
    "PUT": "editProduct",
    "PATCH": "editProduct",
    "DELETE": "deleteProduct",
}


def _optional_warehouse(request, param="warehouse"):
    warehouse_id = request.query_params.get(param)
    if not warehouse_id:
        return None
    return get_object_or_404(Warehouse, pk=warehouse_id, tenant=request.user.tenant)


# Catalogue


class CategoryListCreateView(TenantScopedMixin, AuditedCreateMixin, generics.ListCreateAPIView):
    model = Category
    serializer_class = CategorySerializer
    required_permissions = PRODUCT_WRITE
    search_fields = ("name",)

    def get_base_queryset(self):
        return Category.objects.select_related("parent")

    def filter_queryset_params(self, queryset):
        parent = self.request.query_params.get("parent")
        if parent == "root":
            queryset = queryset.filter(parent__isnull=True)
        elif parent:
            queryset = queryset.filter(parent_id=parent)
        return queryset


class CategoryDetailView(
    TenantScopedMixin, AuditedUpdateMixin, SoftDeleteMixin, generics.RetrieveUpdateDestroyAPIView
):
    model = Category
    serializer_class = CategorySerializer
    required_permissions = PRODUCT_WRITE


class BrandListCreateView(TenantScopedMixin, AuditedCreateMixin, generics.ListCreateAPIView):
    model = Brand
    serializer_class = BrandSerializer
    required_permissions = PRODUCT_WRITE
    search_fields = ("name",)


class BrandDetailView(
    TenantScopedMixin, AuditedUpdateMixin, SoftDeleteMixin, generics.RetrieveUpdateDestroyAPIView
):
    model = Brand
    serializer_class = BrandSerializer
    required_permissions = PRODUCT_WRITE


class UnitListCreateView(TenantScopedMixin, AuditedCreateMixin, generics.ListCreateAPIView):
    model = Unit
    serializer_class = UnitSerializer
    required_permissions = PRODUCT_WRITE
    search_fields = ("name", "short_name")

    def get_base_queryset(self):
        return Unit.objects.select_related("base_unit")

    def filter_queryset_params(self, queryset):
        unit_type = self.request.query_params.get("unit_type")
        if unit_type:
            queryset = queryset.filter(unit_type=unit_type.upper())
        return queryset


class UnitDetailView(
    TenantScopedMixin, AuditedUpdateMixin, SoftDeleteMixin, generics.RetrieveUpdateDestroyAPIView
):
    model = Unit
    serializer_class = UnitSerializer
    required_permissions = PRODUCT_WRITE


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("addProduct")
def seed_units(request):
    """Create the standard base units for the tenant if they are missing."""
    created = services.seed_base_units(request.user.tenant, request.user)
    return Response({"created": created}, status=status.HTTP_200_OK)


class ProductListCreateView(
    ActiveFilterMixin, TenantScopedMixin, AuditedCreateMixin, generics.ListCreateAPIView
):
    """
    List and create products.

    Supports:
    - ``search`` over name, SKU and barcode
    - ``category``, ``brand`` and ``is_active`` filters
    - ``warehouse``: stock figures for a single warehouse
    - ``low_stock=true``: only products at or below their threshold
    """

    model = Product
    serializer_class = ProductSerializer
    required_permissions = PRODUCT_WRITE
    search_fields = ("name", "sku", "barcode")

    def get_base_queryset(self):
        return Product.objects.select_related("category", "brand", "unit")

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context["warehouse"] = _optional_warehouse(self.request)
        return context

    def filter_queryset_params(self, queryset):
        queryset = super().filter_queryset_params(queryset)
        params = self.request.query_params
        if params.get("category"):
            queryset = queryset.filter(category_id=params["category"])
        if params.get("brand"):
            queryset = queryset.filter(brand_id=params["brand"])
        warehouse = _optional_warehouse(self.request)
        if warehouse is not None:
            queryset = queryset.filter(batches__warehouse=warehouse).distinct()
        if is_truthy(params.get("low_stock")):
            low_ids = [
                product.pk
                for product in queryset
                if product.total_stock(warehouse) <= product.low_stock_threshold()
            ]
            queryset = queryset.filter(pk__in=low_ids)
        return queryset


class ProductDetailView(
    TenantScopedMixin, AuditedUpdateMixin, SoftDeleteMixin, generics.RetrieveUpdateDestroyAPIView
):
    model = Product
    serializer_class = ProductSerializer
    required_permissions = PRODUCT_WRITE

    def get_base_queryset(self):
        return Product.objects.select_related("category", "brand", "unit")


class ProductBatchListView(TenantScopedMixin, generics.ListAPIView):
    """Batches of one product, oldest first; ``?live=true`` hides depleted batches."""

    model = ProductBatch
    serializer_class = ProductBatchSerializer
    required_permissions = PRODUCT_READ

    def get_base_queryset(self):
        return ProductBatch.objects.select_related("product", "warehouse").filter(
            product_id=self.kwargs["pk"]
        )

    def filter_queryset_params(self, queryset):
        params = self.request.query_params
        if is_truthy(params.get("live")):
            queryset = queryset.filter(is_depleted=False)
        if params.get("warehouse"):
            queryset = queryset.filter(warehouse_id=params["warehouse"])
        return queryset.order_by("received_at", "id")


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("viewProduct", "manageOnlyPos")
def lookup_by_barcode(request):
    """
    Look up a product by barcode for quick scanning.

    Query parameters:
    - barcode: The barcode value to search for (required)
    - warehouse: Optional warehouse for stock and price
    """
    barcode_value = request.query_params.get("barcode", "").strip()
    if not barcode_value:
        raise BadRequest("Barcode parameter is required.")

    product = (
        Product.objects.filter(tenant=request.user.tenant, barcode=barcode_value, is_active=True)
        .select_related("category", "brand", "unit")
        .first()
    )
    if product is None:
        raise NotFound(f"No product found with barcode: {barcode_value}")

    context = {"request": request, "warehouse": _optional_warehouse(request)}
    return Response(ProductSerializer(product, context=context).data)


# Stock


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
def stock(request):
    """
    GET: stock overview per product and warehouse.
    POST: add opening or manual stock as new batches.
    """
    if request.method == "GET":
        if not request.user.has_role_permission("viewProduct"):
            raise Forbidden("Your role does not allow this action.")
        warehouse = _optional_warehouse(request)
        generator = InventoryReportGenerator(request.user.tenant)
        report = generator.get_stock_overview(
            warehouse_id=warehouse.pk if warehouse else None,
            category_id=request.query_params.get("category"),
        )
        return Response(report)

    if not request.user.has_role_permission("addProduct"):
        raise Forbidden("Your role does not allow this action.")
    serializer = AddStockSerializer(data=request.data, context={"request": request})
    serializer.is_valid(raise_exception=True)
    batches = services.add_stock(
        request.user.tenant, request.user, serializer.validated_data["rows"]
    )
    return Response(
        {"batches": ProductBatchSerializer(batches, many=True).data},
        status=status.HTTP_201_CREATED,
    )


class StockAdjustmentListCreateView(TenantScopedMixin, generics.ListCreateAPIView):
    model = StockAdjustment
    serializer_class = StockAdjustmentSerializer
    required_permissions = {"GET": "viewProduct", "POST": "editProduct"}
    search_fields = ("product__name", "reason")

    def get_base_queryset(self):
        return StockAdjustment.objects.select_related("product", "warehouse", "batch")

    def filter_queryset_params(self, queryset):
        params = self.request.query_params
        if params.get("product"):
            queryset = queryset.filter(product_id=params["product"])
        if params.get("warehouse"):
            queryset = queryset.filter(warehouse_id=params["warehouse"])
        if params.get("adjustment_type"):
            queryset = queryset.filter(adjustment_type=params["adjustment_type"].upper())
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        adjustment = services.adjust_stock(
            request.user.tenant,
            request.user,
            data["product"],
            data["warehouse"],
            data["adjustment_type"],
            data["quantity"],
            reason=data.get("reason", ""),
            unit_cost=data.get("unit_cost"),
        )
        return Response(self.get_serializer(adjustment).data, status=status.HTTP_201_CREATED)


# Transfers


class StockTransferListCreateView(TenantScopedMixin, generics.ListCreateAPIView):
    """
    List and create stock transfers.

    Supports ``status``, ``from_warehouse`` and ``to_warehouse`` filters.
    """

    model = StockTransfer
    required_permissions = {"GET": "viewProduct", "POST": "editProduct"}
    search_fields = ("transfer_number", "notes")

    def get_base_queryset(self):
        return StockTransfer.objects.select_related(
            "from_warehouse", "to_warehouse", "requested_by", "approved_by"
        ).prefetch_related("items__product")

    def get_serializer_class(self):
        if self.request.method == "POST":
            return StockTransferCreateSerializer
        return StockTransferSerializer

    def filter_queryset_params(self, queryset):
        params = self.request.query_params
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("from_warehouse"):
            queryset = queryset.filter(from_warehouse_id=params["from_warehouse"])
        if params.get("to_warehouse"):
            queryset = queryset.filter(to_warehouse_id=params["to_warehouse"])
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        transfer = services.create_transfer(
            request.user.tenant,
            request.user,
            data["from_warehouse"],
            data["to_warehouse"],
            data["items"],
            notes=data.get("notes", ""),
        )
        return Response(StockTransferSerializer(transfer).data, status=status.HTTP_201_CREATED)


class StockTransferDetailView(TenantScopedMixin, generics.RetrieveAPIView):
    model = StockTransfer
    serializer_class = StockTransferSerializer
    required_permission = "viewProduct"

    def get_base_queryset(self):
        return StockTransfer.objects.select_related(
            "from_warehouse", "to_warehouse", "requested_by", "approved_by"
        ).prefetch_related("items__product")


def _get_transfer(request, pk):
    return get_object_or_404(StockTransfer, pk=pk, tenant=request.user.tenant)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("editProduct")
def approve_transfer(request, pk):
    """
    Dispatch a pending transfer.

    Body: optional ``transport`` id to book a shipment for the move.
    """
    from apps.transport.models import Transport

    transfer = _get_transfer(request, pk)
    transport = None
    transport_id = request.data.get("transport")
    if transport_id:
        transport = get_object_or_404(Transport, pk=transport_id, tenant=request.user.tenant)

    transfer = services.approve_transfer(transfer, request.user, transport=transport)
    return Response(StockTransferSerializer(transfer).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("editProduct")
def complete_transfer(request, pk):
    transfer = services.complete_transfer(_get_transfer(request, pk), request.user)
    return Response(StockTransferSerializer(transfer).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("editProduct")
def cancel_transfer(request, pk):
    transfer = services.cancel_transfer(
        _get_transfer(request, pk), request.user, reason=request.data.get("reason", "")
    )
    return Response(StockTransferSerializer(transfer).data)


# Inventory Reports


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("viewProduct")
def inventory_valuation_report(request):
    """
    Inventory value at cost and at selling price.

    Query parameters:
    - warehouse: Optional warehouse ID filter
    - category: Optional category ID filter
    """
    generator = InventoryReportGenerator(request.user.tenant)
    report_data = generator.get_inventory_valuation_report(
        warehouse_id=request.query_params.get("warehouse"),
        category_id=request.query_params.get("category"),
    )
    return Response(report_data, status=status.HTTP_200_OK)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("viewProduct")
def low_stock_alert_report(request):
    """
    Products at or below their low-stock threshold.

    Query parameters:
    - warehouse: Optional warehouse ID filter
    - category: Optional category ID filter
    """
    generator = InventoryReportGenerator(request.user.tenant)
    report_data = generator.get_low_stock_alert_report(
        warehouse_id=request.query_params.get("warehouse"),
        category_id=request.query_params.get("category"),
    )
    return Response(report_data, status=status.HTTP_200_OK)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("viewProduct")
def expiring_batches_report(request):
    try:
        days = int(request.query_params.get("days", 30))
    except ValueError:
        raise BadRequest("days must be an integer.")
    if days < 0:
        raise BadRequest("days must not be negative.")

    generator = InventoryReportGenerator(request.user.tenant)
    report_data = generator.get_expiring_batches_report(
        days=days, warehouse_id=request.query_params.get("warehouse")
    )
    return Response(report_data, status=status.HTTP_200_OK)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("viewProduct")
def stock_value(request):
    """Remaining stock value at cost and at selling price."""
    warehouse = _optional_warehouse(request)
    tenant = request.user.tenant
    quantity = (
        ProductBatch.objects.filter(tenant=tenant, is_depleted=False)
        .filter(**({"warehouse": warehouse} if warehouse else {}))
        .aggregate(total=Sum("remaining"))["total"]
    )
    return Response(
        {
            "warehouse_id": warehouse.pk if warehouse else None,
            "total_quantity": float(quantity or 0),
            "cost_value": float(fifo.stock_value(tenant, warehouse, basis="cost")),
            "retail_value": float(fifo.stock_value(tenant, warehouse, basis="price")),
        }
    )
