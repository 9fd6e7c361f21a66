"""
API views for transports, shipments and shipment tracking.
"""

from django.shortcuts import get_object_or_404

from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core.decorators import permission_required
from apps.core.mixins import AuditedCreateMixin, AuditedUpdateMixin, TenantScopedMixin
from apps.core.permissions import HasTenantAccess

from . import services
from .models import Shipment, Transport
from .serializers import (
    ShipmentSerializer,
    ShipmentTrackingUpdateSerializer,
    TrackingEventSerializer,
    TransportSerializer,
)

TRANSPORT_PERMISSIONS = {
    "GET": "viewProduct",
    "POST": "manageProduct",
    "PUT": "manageProduct",
    "PATCH": "manageProduct",
    "DELETE": "manageProduct",
}


class TransportListCreateView(TenantScopedMixin, AuditedCreateMixin, generics.ListCreateAPIView):
    model = Transport
    serializer_class = TransportSerializer
    required_permissions = TRANSPORT_PERMISSIONS
    search_fields = ("name", "registration_number", "driver_name")

    def filter_queryset_params(self, queryset):
        params = self.request.query_params
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("vehicle_type"):
            queryset = queryset.filter(vehicle_type=params["vehicle_type"])
        return queryset


class TransportDetailView(
    TenantScopedMixin, AuditedUpdateMixin, generics.RetrieveUpdateDestroyAPIView
):
    model = Transport
    serializer_class = TransportSerializer
    required_permissions = TRANSPORT_PERMISSIONS

    def perform_destroy(self, instance):
        services.delete_transport(instance, self.request.user)


class ShipmentListCreateView(TenantScopedMixin, generics.ListCreateAPIView):
    """
    List shipments or book a new one.

    Supports ``status``, ``transport`` and ``warehouse`` (origin or
    destination) filters.
    """

    model = Shipment
    serializer_class = ShipmentSerializer
    required_permissions = TRANSPORT_PERMISSIONS
    search_fields = ("tracking_number", "notes")

    def get_base_queryset(self):
        return Shipment.objects.select_related(
            "transport", "origin", "destination", "stock_transfer"
        ).prefetch_related("updates")

    def filter_queryset_params(self, queryset):
        params = self.request.query_params
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("transport"):
            queryset = queryset.filter(transport_id=params["transport"])
        if params.get("warehouse"):
            warehouse_id = params["warehouse"]
            queryset = queryset.filter(origin_id=warehouse_id) | queryset.filter(
                destination_id=warehouse_id
            )
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        shipment = services.create_shipment(
            request.user.tenant,
            request.user,
            transport=data.get("transport"),
            origin=data.get("origin"),
            destination=data.get("destination"),
            stock_transfer=data.get("stock_transfer"),
            estimated_delivery=data.get("estimated_delivery"),
            notes=data.get("notes", ""),
        )
        return Response(self.get_serializer(shipment).data, status=status.HTTP_201_CREATED)


class ShipmentDetailView(TenantScopedMixin, generics.RetrieveAPIView):
    model = Shipment
    serializer_class = ShipmentSerializer
    required_permission = "viewProduct"

    def get_base_queryset(self):
        return Shipment.objects.select_related(
            "transport", "origin", "destination", "stock_transfer"
        ).prefetch_related("updates")


def _get_shipment(request, pk):
    return get_object_or_404(Shipment, pk=pk, tenant=request.user.tenant)


def _event_data(request):
    serializer = TrackingEventSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("manageProduct")
def dispatch_shipment(request, pk):
    data = _event_data(request)
    shipment = services.dispatch_shipment(
        _get_shipment(request, pk), request.user, location=data["location"], note=data["note"]
    )
    return Response(ShipmentSerializer(shipment).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("manageProduct")
def add_tracking_update(request, pk):
    """Append a checkpoint (``location`` and/or ``note``) to an in-transit shipment."""
    data = _event_data(request)
    update = services.add_tracking_update(
        _get_shipment(request, pk), request.user, location=data["location"], note=data["note"]
    )
    return Response(ShipmentTrackingUpdateSerializer(update).data, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("manageProduct")
def deliver_shipment(request, pk):
    """Mark delivered; a linked in-transit stock transfer is received at its destination."""
    data = _event_data(request)
    shipment = services.deliver_shipment(
        _get_shipment(request, pk), request.user, location=data["location"], note=data["note"]
    )
    return Response(ShipmentSerializer(shipment).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("manageProduct")
def cancel_shipment(request, pk):
    shipment = services.cancel_shipment(
        _get_shipment(request, pk), request.user, reason=request.data.get("reason", "")
    )
    return Response(ShipmentSerializer(shipment).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
def track_shipment(request, tracking_number):
    """Status and timeline for a tracking number."""
    shipment = services.track_shipment(request.user.tenant, tracking_number)
    return Response(ShipmentSerializer(shipment).data)
