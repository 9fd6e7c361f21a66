"""
API views for suppliers, purchases and purchase returns.
"""

from django.shortcuts import get_object_or_404

from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core.decorators import permission_required
from apps.core.exceptions import InvalidStateError
from apps.core.mixins import (
    ActiveFilterMixin,
    AuditedCreateMixin,
    AuditedUpdateMixin,
    SoftDeleteMixin,
    TenantScopedMixin,
)
from apps.core.permissions import HasTenantAccess
from apps.core.utils import parse_period

from . import services
from .models import Purchase, PurchaseReturn, Supplier
from .serializers import (
    PurchaseCreateSerializer,
    PurchaseReturnCreateSerializer,
    PurchaseReturnSerializer,
    PurchaseSerializer,
    SupplierDetailSerializer,
    SupplierSerializer,
)

PURCHASE_PERMISSIONS = {
    "GET": "viewPurchase",
    "POST": "addPurchase",
    "PUT": "editPurchase",
    "PATCH": "editPurchase",
    "DELETE": "deletePurchase",
}


# Suppliers


class SupplierListCreateView(
    ActiveFilterMixin, TenantScopedMixin, AuditedCreateMixin, generics.ListCreateAPIView
):
    model = Supplier
    serializer_class = SupplierSerializer
    required_permissions = PURCHASE_PERMISSIONS
    search_fields = ("name", "contact_person", "email", "phone")


class SupplierDetailView(
    TenantScopedMixin, AuditedUpdateMixin, SoftDeleteMixin, generics.RetrieveUpdateDestroyAPIView
):
    """Supplier detail including purchase statistics."""

    model = Supplier
    serializer_class = SupplierDetailSerializer
    required_permissions = PURCHASE_PERMISSIONS


# Purchases


class PurchaseListCreateView(TenantScopedMixin, generics.ListCreateAPIView):
    """
    List and create purchases.

    Supports ``status``, ``supplier``, ``warehouse`` and a
    ``start_date``/``end_date`` range on the purchase date.
    """

    model = Purchase
    required_permissions = PURCHASE_PERMISSIONS
    search_fields = ("purchase_number", "supplier__name", "notes")

    def get_base_queryset(self):
        return Purchase.objects.select_related(
            "supplier", "warehouse", "received_by"
        ).prefetch_related("items__product")

    def get_serializer_class(self):
        if self.request.method == "POST":
            return PurchaseCreateSerializer
        return PurchaseSerializer

    def filter_queryset_params(self, queryset):
        params = self.request.query_params
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("supplier"):
            queryset = queryset.filter(supplier_id=params["supplier"])
        if params.get("warehouse"):
            queryset = queryset.filter(warehouse_id=params["warehouse"])
        if params.get("start_date") or params.get("end_date"):
            start, end = parse_period(params)
            queryset = queryset.filter(purchase_date__range=(start, end))
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        purchase = services.create_purchase(
            request.user.tenant,
            request.user,
            data["supplier"],
            data["warehouse"],
            data["items"],
            transport_cost=data["transport_cost"],
            tax=data["tax"],
            other_expenses=data["other_expenses"],
            purchase_date=data.get("purchase_date"),
            notes=data["notes"],
            receive=data["receive"],
        )
        return Response(PurchaseSerializer(purchase).data, status=status.HTTP_201_CREATED)


class PurchaseDetailView(TenantScopedMixin, SoftDeleteMixin, generics.RetrieveDestroyAPIView):
    model = Purchase
    serializer_class = PurchaseSerializer
    required_permissions = PURCHASE_PERMISSIONS

    def get_base_queryset(self):
        return Purchase.objects.select_related(
            "supplier", "warehouse", "received_by"
        ).prefetch_related("items__product")

    def perform_destroy(self, instance):
        if instance.status == Purchase.RECEIVED:
            raise InvalidStateError("Received purchases cannot be deleted; return the goods instead.")
        super().perform_destroy(instance)


def _get_purchase(request, pk):
    return get_object_or_404(Purchase, pk=pk, tenant=request.user.tenant)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("editPurchase", "managePurchase")
def receive_purchase(request, pk):
    purchase = services.receive_purchase(_get_purchase(request, pk), request.user)
    return Response(PurchaseSerializer(purchase).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("editPurchase", "managePurchase")
def cancel_purchase(request, pk):
    purchase = services.cancel_purchase(
        _get_purchase(request, pk), request.user, reason=request.data.get("reason", "")
    )
    return Response(PurchaseSerializer(purchase).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("editPurchase", "managePurchase")
def return_purchase(request, pk):
    """
    Return goods from a received purchase to its supplier.

    Body: ``{"items": [{"purchase_item": id, "quantity": n}], "reason": ""}``
    """
    purchase = _get_purchase(request, pk)
    serializer = PurchaseReturnCreateSerializer(data=request.data, context={"request": request})
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    purchase_return = services.return_to_supplier(
        purchase, request.user, data["items"], reason=data["reason"], notes=data["notes"]
    )
    return Response(PurchaseReturnSerializer(purchase_return).data, status=status.HTTP_201_CREATED)


class PurchaseReturnListView(TenantScopedMixin, generics.ListAPIView):
    model = PurchaseReturn
    serializer_class = PurchaseReturnSerializer
    required_permission = "viewPurchase"
    search_fields = ("return_number", "reason", "supplier__name")

    def get_base_queryset(self):
        return PurchaseReturn.objects.select_related("purchase", "supplier").prefetch_related(
            "items__purchase_item__product", "items__batch"
        )

    def filter_queryset_params(self, queryset):
        params = self.request.query_params
        if params.get("supplier"):
            queryset = queryset.filter(supplier_id=params["supplier"])
        if params.get("purchase"):
            queryset = queryset.filter(purchase_id=params["purchase"])
        return queryset
