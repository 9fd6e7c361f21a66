"""
Views for POS and sales management.

- POS checkout, totals preview and product search
- Sales list/detail with filters
- Voids, returns and receipts
- Customers
- Cash drawer events and daily summary
"""

import logging

from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone

from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core.decorators import permission_required
from apps.core.exceptions import BadRequest
from apps.core.mixins import (
    AuditedCreateMixin,
    AuditedUpdateMixin,
    SoftDeleteMixin,
    TenantScopedMixin,
)
from apps.core.models import Warehouse
from apps.core.permissions import HasTenantAccess
from apps.core.utils import day_bounds, is_truthy, parse_day, parse_period, period_bounds

from . import services
from .models import CashDrawerEvent, Customer, Sale, SellReturn
from .receipt_service import generate_receipt
from .serializers import (
    CashDrawerEventSerializer,
    CustomerSerializer,
    SaleCreateSerializer,
    SaleDetailSerializer,
    SaleListSerializer,
    SellReturnCreateSerializer,
    SellReturnSerializer,
)

logger = logging.getLogger(__name__)

SALES_PERMISSIONS = {
    "GET": "viewSales",
    "POST": "addSales",
    "PUT": "editSales",
    "PATCH": "editSales",
    "DELETE": "deleteSales",
}


def _scope_to_warehouses(request, queryset, field="warehouse"):
    """Staff limited to some warehouses only see records from those."""
    if request.user.has_full_warehouse_access():
        return queryset
    return queryset.filter(**{f"{field}__in": request.user.accessible_warehouses()})


# POS


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("addSales", "manageOnlyPos")
def pos_checkout(request):
    """
    Complete a sale.

    Request body:
    {
        "warehouse": 1,
        "customer": 3,
        "items": [{"product": 10, "quantity": "2", "unit_price": "5.00"}],
        "payment_method": "cash",
        "discount": "1.00",
        "tax_rate": "8",
        "cash_received": "20.00"
    }
    """
    serializer = SaleCreateSerializer(data=request.data, context={"request": request})
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    sale = services.create_sale(
        request.user.tenant,
        request.user,
        data["warehouse"],
        data["items"],
        customer=data.get("customer"),
        payment_method=data["payment_method"],
        discount=data["discount"],
        tax_rate=data["tax_rate"],
        cash_received=data.get("cash_received"),
        notes=data["notes"],
    )
    return Response(SaleDetailSerializer(sale).data, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("addSales", "manageOnlyPos")
def pos_calculate_totals(request):
    """Preview totals and COGS for a cart without changing stock."""
    serializer = SaleCreateSerializer(data=request.data, context={"request": request})
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    totals = services.calculate_totals(
        data["warehouse"],
        data["items"],
        discount=data["discount"],
        tax_rate=data["tax_rate"],
        payment_method=data["payment_method"],
        cash_received=data.get("cash_received"),
    )
    return Response(totals)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("addSales", "manageOnlyPos")
def pos_product_search(request):
    """
    Search products for the POS.

    Query parameters:
    - warehouse: warehouse to report stock and price for (required)
    - q: name, SKU or barcode
    - in_stock: only products with stock
    """
    warehouse_id = request.query_params.get("warehouse")
    if not warehouse_id:
        raise BadRequest("warehouse parameter is required.")
    warehouse = get_object_or_404(Warehouse, pk=warehouse_id, tenant=request.user.tenant)
    try:
        limit = min(int(request.query_params.get("limit", 20)), 100)
    except ValueError:
        raise BadRequest("limit must be an integer.")

    results = services.pos_product_search(
        request.user.tenant,
        warehouse,
        request.query_params.get("q", "").strip(),
        limit=limit,
        in_stock_only=is_truthy(request.query_params.get("in_stock")),
    )
    return Response({"results": results})


# Sales


class SaleListView(TenantScopedMixin, generics.ListAPIView):
    """
    List sales.

    Supports ``start_date``/``end_date``, ``warehouse``, ``customer``,
    ``payment_method`` and ``status`` filters, and ``search`` on the number.
    """

    model = Sale
    serializer_class = SaleListSerializer
    required_permission = "viewSales"
    search_fields = ("sale_number", "customer__name", "notes")

    def get_base_queryset(self):
        return Sale.objects.select_related("customer", "cashier", "warehouse")

    def filter_queryset_params(self, queryset):
        params = self.request.query_params
        queryset = _scope_to_warehouses(self.request, queryset)
        if params.get("start_date") or params.get("end_date"):
            start, end = period_bounds(*parse_period(params))
            queryset = queryset.filter(sale_date__gte=start, sale_date__lt=end)
        if params.get("warehouse"):
            queryset = queryset.filter(warehouse_id=params["warehouse"])
        if params.get("customer"):
            queryset = queryset.filter(customer_id=params["customer"])
        if params.get("payment_method"):
            queryset = queryset.filter(payment_method=params["payment_method"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        return queryset


class SaleDetailView(TenantScopedMixin, generics.RetrieveAPIView):
    model = Sale
    serializer_class = SaleDetailSerializer
    required_permission = "viewSales"

    def get_base_queryset(self):
        return Sale.objects.select_related(
            "customer", "cashier", "warehouse", "voided_by"
        ).prefetch_related("items__product", "items__allocations__batch")

    def filter_queryset_params(self, queryset):
        return _scope_to_warehouses(self.request, queryset)


def _get_sale(request, pk):
    return get_object_or_404(
        _scope_to_warehouses(request, Sale.objects.filter(tenant=request.user.tenant)), pk=pk
    )


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("deleteSales", "manageSales")
def void_sale(request, pk):
    """Void a completed sale; body: ``{"reason": "..."}``."""
    reason = request.data.get("reason", "").strip()
    if not reason:
        raise BadRequest("A reason is required to void a sale.")
    sale = services.void_sale(_get_sale(request, pk), request.user, reason)
    return Response(SaleDetailSerializer(sale).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("editSales", "manageSales")
def return_sale(request, pk):
    """
    Return items from a sale.

    Request body:
    {
        "items": [{"sale_item": 7, "quantity": "1"}],
        "reason": "DEFECTIVE",
        "restock": true,
        "auto_complete": true
    }
    """
    sale = _get_sale(request, pk)
    serializer = SellReturnCreateSerializer(data=request.data, context={"request": request})
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    sell_return = services.process_return(
        sale,
        request.user,
        data["items"],
        reason=data["reason"],
        restock=data["restock"],
        notes=data["notes"],
        auto_complete=data["auto_complete"],
    )
    return Response(SellReturnSerializer(sell_return).data, status=status.HTTP_201_CREATED)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("viewSales", "manageOnlyPos")
def sale_receipt(request, pk):
    """
    Receipt PDF for a sale.

    Query parameters:
    - layout: ``standard`` (A4, default) or ``thermal`` (80mm)
    """
    sale = _get_sale(request, pk)
    format_type = request.query_params.get("layout", "standard")
    if format_type not in ("standard", "thermal"):
        raise BadRequest("layout must be 'standard' or 'thermal'.")
    pdf = generate_receipt(sale, format_type)
    response = HttpResponse(pdf, content_type="application/pdf")
    response["Content-Disposition"] = f'inline; filename="receipt_{sale.sale_number}.pdf"'
    return response


# Returns


class SellReturnListView(TenantScopedMixin, generics.ListAPIView):
    model = SellReturn
    serializer_class = SellReturnSerializer
    required_permission = "viewSales"
    search_fields = ("return_number", "sale__sale_number", "customer__name")

    def get_base_queryset(self):
        return SellReturn.objects.select_related(
            "sale", "customer", "processed_by"
        ).prefetch_related("items__sale_item__product")

    def filter_queryset_params(self, queryset):
        params = self.request.query_params
        queryset = _scope_to_warehouses(self.request, queryset, field="sale__warehouse")
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("reason"):
            queryset = queryset.filter(reason=params["reason"])
        return queryset


def _get_return(request, pk):
    return get_object_or_404(SellReturn, pk=pk, tenant=request.user.tenant)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("editSales", "manageSales")
def complete_return(request, pk):
    sell_return = services.complete_return(_get_return(request, pk), request.user)
    return Response(SellReturnSerializer(sell_return).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("editSales", "manageSales")
def reject_return(request, pk):
    sell_return = services.reject_return(
        _get_return(request, pk), request.user, note=request.data.get("note", "")
    )
    return Response(SellReturnSerializer(sell_return).data)


# Customers


class CustomerListCreateView(TenantScopedMixin, AuditedCreateMixin, generics.ListCreateAPIView):
    model = Customer
    serializer_class = CustomerSerializer
    required_permissions = {"GET": "viewSales", "POST": "addSales"}
    search_fields = ("name", "email", "phone")

    def filter_queryset_params(self, queryset):
        tier = self.request.query_params.get("tier")
        if tier:
            queryset = queryset.filter(tier=tier.upper())
        return queryset


class CustomerDetailView(
    TenantScopedMixin, AuditedUpdateMixin, SoftDeleteMixin, generics.RetrieveUpdateDestroyAPIView
):
    model = Customer
    serializer_class = CustomerSerializer
    required_permissions = SALES_PERMISSIONS


# Cash drawer


class CashDrawerEventListView(TenantScopedMixin, generics.ListAPIView):
    """
    List drawer events.

    Supports ``warehouse``, ``event_type`` and ``date`` filters.
    """

    model = CashDrawerEvent
    serializer_class = CashDrawerEventSerializer
    required_permission = "viewSales"

    def get_base_queryset(self):
        return CashDrawerEvent.objects.select_related("user", "sale", "warehouse")

    def filter_queryset_params(self, queryset):
        params = self.request.query_params
        queryset = _scope_to_warehouses(self.request, queryset)
        if params.get("warehouse"):
            queryset = queryset.filter(warehouse_id=params["warehouse"])
        if params.get("event_type"):
            queryset = queryset.filter(event_type=params["event_type"])
        if params.get("date"):
            start, end = day_bounds(parse_day(params, "date"))
            queryset = queryset.filter(created_at__gte=start, created_at__lt=end)
        return queryset


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("addSales", "manageOnlyPos")
def record_drawer_event(request):
    """Record a no_sale, cash_in, cash_out or count event on a drawer."""
    serializer = CashDrawerEventSerializer(data=request.data, context={"request": request})
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    event = services.record_drawer_event(
        request.user.tenant,
        request.user,
        data["warehouse"],
        data["event_type"],
        amount=data["amount"],
        note=data.get("note", ""),
    )
    return Response(CashDrawerEventSerializer(event).data, status=status.HTTP_201_CREATED)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("viewSales", "manageOnlyPos")
def drawer_summary(request):
    """
    Expected cash for a warehouse drawer on one day.

    Query parameters:
    - warehouse: required
    - date: YYYY-MM-DD, defaults to today
    """
    warehouse_id = request.query_params.get("warehouse")
    if not warehouse_id:
        raise BadRequest("warehouse parameter is required.")
    warehouse = get_object_or_404(Warehouse, pk=warehouse_id, tenant=request.user.tenant)
    day = parse_day(request.query_params, "date", timezone.localdate())
    return Response(services.drawer_summary(request.user.tenant, warehouse, day))
