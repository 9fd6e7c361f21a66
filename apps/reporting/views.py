"""
Report endpoints.

Each report answers JSON by default; ``?format=csv|xlsx|pdf`` downloads the
same report as a file. Periods come from ``start_date``/``end_date`` and an
optional ``warehouse`` narrows the figures to one location.
"""

from django.shortcuts import get_object_or_404

from rest_framework import permissions
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core.decorators import permission_required
from apps.core.exceptions import BadRequest, Forbidden
from apps.core.models import Warehouse
from apps.core.permissions import HasTenantAccess
from apps.core.utils import parse_period

from . import services
from .exports import export_response


def _int_param(request, name, default, minimum=1, maximum=365):
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise BadRequest(f"{name} must be an integer.", details={name: raw})
    if not minimum <= value <= maximum:
        raise BadRequest(f"{name} must be between {minimum} and {maximum}.", details={name: raw})
    return value


def _warehouse(request):
    """
    The ``warehouse`` filter, checked against the user's access. Staff
    limited to a single warehouse get it implicitly.
    """
    user = request.user
    warehouse_id = request.query_params.get("warehouse")
    if warehouse_id:
        warehouse = get_object_or_404(Warehouse, pk=warehouse_id, tenant=user.tenant)
        if not user.can_access_warehouse(warehouse):
            raise Forbidden("You do not have access to this warehouse.")
        return warehouse
    if user.has_full_warehouse_access():
        return None
    accessible = list(user.accessible_warehouses())
    if len(accessible) == 1:
        return accessible[0]
    raise BadRequest("warehouse is required for staff with limited warehouse access.")


def _respond(request, report):
    export_format = request.query_params.get("format")
    if export_format:
        return export_response(request.user.tenant, report, export_format.lower())
    return Response(report)


def _period_report(request, builder, **kwargs):
    start_date, end_date = parse_period(request.query_params)
    report = builder(
        request.user.tenant, start_date, end_date, warehouse=_warehouse(request), **kwargs
    )
    return _respond(request, report)


# Profit


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("profitLostReport")
def profit_and_loss(request):
    return _period_report(request, services.profit_and_loss)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("profitLostReport")
def profit_trends(request):
    """Monthly revenue and profit for the last ``?months=`` months (default 6)."""
    months = _int_param(request, "months", 6, maximum=36)
    report = services.profit_trends(request.user.tenant, months, warehouse=_warehouse(request))
    return _respond(request, report)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("profitLostReport", "salesReport")
def top_profitable_products(request):
    limit = _int_param(request, "limit", 10, maximum=100)
    return _period_report(request, services.top_profitable_products, limit=limit)


# Sales and purchases


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("salesReport")
def product_sell_report(request):
    return _period_report(request, services.product_sell_report)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("purchaseReport")
def product_purchase_report(request):
    return _period_report(request, services.product_purchase_report)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("salesReport", "purchaseReport")
def purchase_sale_report(request):
    return _period_report(request, services.purchase_sale_report)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("salesReport")
def trending_products(request):
    """Sales momentum over the last ``?days=`` days against the period before."""
    days = _int_param(request, "days", 30)
    limit = _int_param(request, "limit", 20, maximum=100)
    report = services.trending_products(
        request.user.tenant, days, warehouse=_warehouse(request), limit=limit
    )
    return _respond(request, report)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("salesReport")
def items_report(request):
    return _period_report(request, services.items_report)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("salesReport")
def register_report(request):
    return _period_report(request, services.register_report)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("salesReport")
def sell_return_report(request):
    return _period_report(request, services.sell_return_report)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("purchaseReport")
def purchase_return_report(request):
    return _period_report(request, services.purchase_return_report)


# Expenses


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("expensesReport")
def expenses_report(request):
    return _period_report(request, services.expenses_report)


# Dashboard


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("dashboard")
def dashboard(request):
    """Today's sales, hourly series, low-stock count and latest sales."""
    report = services.today_stats(request.user.tenant, warehouse=_warehouse(request))
    return _respond(request, report)
