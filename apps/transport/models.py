"""
Transport models: vehicles, shipments and their tracking timeline.
"""

import secrets
import string

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from apps.core.models import SoftDeleteModel, Tenant, Warehouse


class Transport(SoftDeleteModel):
    """
    A vehicle that can carry shipments between locations.
    """

    TRUCK = "truck"
    VAN = "van"
    CAR = "car"
    MOTORCYCLE = "motorcycle"
    OTHER = "other"

    VEHICLE_TYPE_CHOICES = [
        (TRUCK, "Truck"),
        (VAN, "Van"),
        (CAR, "Car"),
        (MOTORCYCLE, "Motorcycle"),
        (OTHER, "Other"),
    ]

    AVAILABLE = "available"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"

    STATUS_CHOICES = [
        (AVAILABLE, "Available"),
        (IN_USE, "In Use"),
        (MAINTENANCE, "Maintenance"),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="transports")
    name = models.CharField(max_length=255)
    vehicle_type = models.CharField(max_length=20, choices=VEHICLE_TYPE_CHOICES, default=TRUCK)
    registration_number = models.CharField(max_length=50, blank=True)
    driver_name = models.CharField(max_length=255, blank=True)
    driver_phone = models.CharField(max_length=20, blank=True)
    capacity = models.CharField(max_length=100, blank=True, help_text="e.g. 2 tons")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=AVAILABLE)
    notes = models.TextField(blank=True)

    class Meta:
        db_table = "transports"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["tenant", "status"], name="transport_tenant_status_idx"),
        ]

    def __str__(self):
        if self.registration_number:
            return f"{self.name} ({self.registration_number})"
        return self.name

    @property
    def is_available(self):
        return self.status == self.AVAILABLE


def generate_tracking_number():
    """SHP-YYYYMMDD-XXXXXX with a random uppercase alphanumeric suffix."""
    alphabet = string.ascii_uppercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(6))
    return f"SHP-{timezone.localdate().strftime('%Y%m%d')}-{suffix}"


class Shipment(models.Model):
    """
    A movement of goods, optionally carried by a transport and optionally
    tied to a stock transfer between warehouses.
    """

    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (IN_TRANSIT, "In Transit"),
        (DELIVERED, "Delivered"),
        (CANCELLED, "Cancelled"),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="shipments")
    tracking_number = models.CharField(max_length=30, unique=True)
    transport = models.ForeignKey(
        Transport,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="shipments",
    )
    origin = models.ForeignKey(
        Warehouse,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="outgoing_shipments",
    )
    destination = models.ForeignKey(
        Warehouse,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="incoming_shipments",
    )
    stock_transfer = models.OneToOneField(
        "inventory.StockTransfer",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="shipment",
    )

    status = FSMField(default=PENDING, choices=STATUS_CHOICES, protected=False)
    estimated_delivery = models.DateTimeField(null=True, blank=True)
    actual_pickup = models.DateTimeField(null=True, blank=True)
    actual_delivery = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_shipments",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "shipments"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["tenant", "status"], name="shipment_tenant_status_idx"),
        ]

    def __str__(self):
        return self.tracking_number

    def save(self, *args, **kwargs):
        if not self.tracking_number:
            self.tracking_number = generate_tracking_number()
            while Shipment.objects.filter(tracking_number=self.tracking_number).exists():
                self.tracking_number = generate_tracking_number()
        super().save(*args, **kwargs)

    @transition(field=status, source=PENDING, target=IN_TRANSIT)
    def mark_in_transit(self):
        self.actual_pickup = timezone.now()

    @transition(field=status, source=IN_TRANSIT, target=DELIVERED)
    def mark_delivered(self):
        self.actual_delivery = timezone.now()

    @transition(field=status, source=[PENDING, IN_TRANSIT], target=CANCELLED)
    def mark_cancelled(self):
        pass


class ShipmentTrackingUpdate(models.Model):
    """One entry in a shipment's tracking timeline."""

    shipment = models.ForeignKey(Shipment, on_delete=models.CASCADE, related_name="updates")
    status = models.CharField(max_length=20, choices=Shipment.STATUS_CHOICES)
    location = models.CharField(max_length=255, blank=True)
    note = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "shipment_tracking_updates"
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.shipment.tracking_number}: {self.status}"
