"""
Serializers for transports and shipments.
"""

from rest_framework import serializers

from apps.core.models import Warehouse
from apps.core.serializers import TenantPrimaryKeyRelatedField
from apps.inventory.models import StockTransfer

from .models import Shipment, ShipmentTrackingUpdate, Transport


class TransportSerializer(serializers.ModelSerializer):
    class Meta:
        model = Transport
        fields = [
            "id",
            "name",
            "vehicle_type",
            "registration_number",
            "driver_name",
            "driver_phone",
            "capacity",
            "status",
            "notes",
            "mod_flag",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "mod_flag", "created_at", "updated_at"]

    def validate_status(self, value):
        # in_use is owned by the shipment workflow
        current = self.instance.status if self.instance else None
        if value == Transport.IN_USE and current != Transport.IN_USE:
            raise serializers.ValidationError("A transport is put in use by booking a shipment.")
        if current == Transport.IN_USE and value != Transport.IN_USE:
            raise serializers.ValidationError(
                "This transport is carrying a shipment; deliver or cancel it first."
            )
        return value


class ShipmentTrackingUpdateSerializer(serializers.ModelSerializer):
    created_by_name = serializers.CharField(
        source="created_by.username", read_only=True, default=None
    )

    class Meta:
        model = ShipmentTrackingUpdate
        fields = ["id", "status", "location", "note", "created_by_name", "created_at"]
        read_only_fields = fields


class ShipmentSerializer(serializers.ModelSerializer):
    transport = TenantPrimaryKeyRelatedField(
        queryset=Transport.objects.all(), required=False, allow_null=True
    )
    origin = TenantPrimaryKeyRelatedField(
        queryset=Warehouse.objects.all(), required=False, allow_null=True
    )
    destination = TenantPrimaryKeyRelatedField(
        queryset=Warehouse.objects.all(), required=False, allow_null=True
    )
    stock_transfer = TenantPrimaryKeyRelatedField(
        queryset=StockTransfer.objects.all(), required=False, allow_null=True
    )
    transport_name = serializers.CharField(source="transport.name", read_only=True, default=None)
    origin_name = serializers.CharField(source="origin.name", read_only=True, default=None)
    destination_name = serializers.CharField(
        source="destination.name", read_only=True, default=None
    )
    transfer_number = serializers.CharField(
        source="stock_transfer.transfer_number", read_only=True, default=None
    )
    updates = ShipmentTrackingUpdateSerializer(many=True, read_only=True)

    class Meta:
        model = Shipment
        fields = [
            "id",
            "tracking_number",
            "status",
            "transport",
            "transport_name",
            "origin",
            "origin_name",
            "destination",
            "destination_name",
            "stock_transfer",
            "transfer_number",
            "estimated_delivery",
            "actual_pickup",
            "actual_delivery",
            "notes",
            "updates",
            "created_at",
        ]
        read_only_fields = [
            "id",
            "tracking_number",
            "status",
            "actual_pickup",
            "actual_delivery",
            "created_at",
        ]


class TrackingEventSerializer(serializers.Serializer):
    location = serializers.CharField(required=False, allow_blank=True, default="")
    note = serializers.CharField(required=False, allow_blank=True, default="")
