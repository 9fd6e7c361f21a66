"""
Django admin configuration for transport models.
"""

from django.contrib import admin

from .models import Shipment, ShipmentTrackingUpdate, Transport


@admin.register(Transport)
class TransportAdmin(admin.ModelAdmin):
    list_display = ["name", "tenant", "vehicle_type", "registration_number", "status", "del_flag"]
    list_filter = ["vehicle_type", "status", "del_flag"]
    search_fields = ["name", "registration_number", "driver_name"]

    def get_queryset(self, request):
        return Transport.all_objects.select_related("tenant")


class ShipmentTrackingUpdateInline(admin.TabularInline):
    model = ShipmentTrackingUpdate
    extra = 0
    readonly_fields = ["status", "location", "note", "created_by", "created_at"]
    can_delete = False


@admin.register(Shipment)
class ShipmentAdmin(admin.ModelAdmin):
    list_display = [
        "tracking_number",
        "tenant",
        "transport",
        "origin",
        "destination",
        "status",
        "estimated_delivery",
    ]
    list_filter = ["status"]
    search_fields = ["tracking_number"]
    readonly_fields = ["tracking_number", "actual_pickup", "actual_delivery", "created_at"]
    inlines = [ShipmentTrackingUpdateInline]
