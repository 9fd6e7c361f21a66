"""
Shipment workflow: booking a transport, dispatch, delivery and cancellation.

Every transition appends a ``ShipmentTrackingUpdate`` so the tracking lookup
can show the full timeline.
"""

import logging

from django.db import transaction

from apps.core.exceptions import BadRequest, Conflict, InvalidStateError, NotFound
from apps.core.history import record_history, soft_delete_instance
from apps.inventory import services as inventory_services
from apps.inventory.models import StockTransfer

from .models import Shipment, ShipmentTrackingUpdate, Transport

logger = logging.getLogger(__name__)


def _add_update(shipment, user, location="", note=""):
    return ShipmentTrackingUpdate.objects.create(
        shipment=shipment,
        status=shipment.status,
        location=location,
        note=note,
        created_by=user,
    )


def _set_transport_status(transport, status):
    if transport is None:
        return
    transport.status = status
    transport.save(update_fields=["status", "updated_at"])


@transaction.atomic
def create_shipment(
    tenant,
    user,
    transport=None,
    origin=None,
    destination=None,
    stock_transfer=None,
    estimated_delivery=None,
    notes="",
):
    """
    Book a shipment.

    The transport, when given, must be available and is marked in use until
    the shipment is delivered or cancelled.
    """
    if origin is not None and destination is not None and origin.pk == destination.pk:
        raise BadRequest("Origin and destination must be different.")

    if transport is not None:
        transport = Transport.objects.select_for_update().get(pk=transport.pk)
        if transport.tenant_id != tenant.pk:
            raise NotFound("Transport not found.")
        if not transport.is_available:
            logger.warning(f"Transport {transport.pk} is {transport.status}; shipment refused")
            raise Conflict(
                f"Transport {transport} is not available.",
                details={"transport": transport.pk, "status": transport.status},
            )

    if stock_transfer is not None and Shipment.objects.filter(stock_transfer=stock_transfer).exists():
        raise Conflict(f"Transfer {stock_transfer.transfer_number} already has a shipment.")

    shipment = Shipment.objects.create(
        tenant=tenant,
        transport=transport,
        origin=origin,
        destination=destination,
        stock_transfer=stock_transfer,
        estimated_delivery=estimated_delivery,
        notes=notes,
        created_by=user,
    )
    _set_transport_status(transport, Transport.IN_USE)
    _add_update(
        shipment,
        user,
        location=origin.name if origin is not None else "",
        note="Shipment created",
    )
    record_history(
        tenant,
        user,
        "SHIPMENT_CREATED",
        shipment,
        f"Shipment {shipment.tracking_number} booked",
        transport=transport.pk if transport is not None else None,
    )
    return shipment


def _locked(shipment):
    return Shipment.objects.select_for_update().select_related(
        "transport", "stock_transfer", "origin", "destination"
    ).get(pk=shipment.pk)


@transaction.atomic
def dispatch_shipment(shipment, user, location="", note=""):
    shipment = _locked(shipment)
    if shipment.status != Shipment.PENDING:
        raise InvalidStateError(f"Shipment {shipment.tracking_number} is not pending.")
    shipment.mark_in_transit()
    shipment.save()
    _add_update(
        shipment,
        user,
        location=location or (shipment.origin.name if shipment.origin else ""),
        note=note or "Picked up",
    )
    record_history(
        shipment.tenant,
        user,
        "SHIPMENT_DISPATCHED",
        shipment,
        f"Shipment {shipment.tracking_number} in transit",
    )
    return shipment


@transaction.atomic
def add_tracking_update(shipment, user, location="", note=""):
    """Record a checkpoint on an in-transit shipment without changing its status."""
    if shipment.status != Shipment.IN_TRANSIT:
        raise InvalidStateError(f"Shipment {shipment.tracking_number} is not in transit.")
    if not (location or note):
        raise BadRequest("A location or note is required.")
    return _add_update(shipment, user, location=location, note=note)


@transaction.atomic
def deliver_shipment(shipment, user, location="", note=""):
    """
    Mark a shipment delivered and free its transport. A linked stock
    transfer that is still in transit is received at its destination.
    """
    shipment = _locked(shipment)
    if shipment.status != Shipment.IN_TRANSIT:
        raise InvalidStateError(f"Shipment {shipment.tracking_number} is not in transit.")
    shipment.mark_delivered()
    shipment.save()
    _set_transport_status(shipment.transport, Transport.AVAILABLE)

    transfer = shipment.stock_transfer
    if transfer is not None and transfer.status == StockTransfer.IN_TRANSIT:
        inventory_services.complete_transfer(transfer, user)

    _add_update(
        shipment,
        user,
        location=location or (shipment.destination.name if shipment.destination else ""),
        note=note or "Delivered",
    )
    record_history(
        shipment.tenant,
        user,
        "SHIPMENT_DELIVERED",
        shipment,
        f"Shipment {shipment.tracking_number} delivered",
    )
    logger.info(f"Shipment {shipment.tracking_number} delivered by {user}")
    return shipment


@transaction.atomic
def cancel_shipment(shipment, user, reason=""):
    shipment = _locked(shipment)
    if shipment.status not in (Shipment.PENDING, Shipment.IN_TRANSIT):
        raise InvalidStateError(f"Shipment {shipment.tracking_number} cannot be cancelled.")
    shipment.mark_cancelled()
    shipment.save()
    _set_transport_status(shipment.transport, Transport.AVAILABLE)
    _add_update(shipment, user, note=reason or "Cancelled")
    record_history(
        shipment.tenant,
        user,
        "SHIPMENT_CANCELLED",
        shipment,
        f"Shipment {shipment.tracking_number} cancelled",
        reason=reason,
    )
    return shipment


def cancel_shipments_for_transfer(transfer, user):
    """Cancel the open shipment of a transfer that is itself being cancelled."""
    open_shipments = Shipment.objects.filter(
        stock_transfer=transfer, status__in=[Shipment.PENDING, Shipment.IN_TRANSIT]
    )
    for shipment in open_shipments:
        cancel_shipment(shipment, user, reason=f"Transfer {transfer.transfer_number} cancelled")


def deliver_shipments_for_transfer(transfer, user):
    """Close the open shipment of a transfer that was received directly."""
    open_shipments = list(
        Shipment.objects.filter(
            stock_transfer=transfer, status__in=[Shipment.PENDING, Shipment.IN_TRANSIT]
        )
    )
    for shipment in open_shipments:
        if shipment.status == Shipment.PENDING:
            shipment = dispatch_shipment(shipment, user)
        deliver_shipment(
            shipment, user, note=f"Received with transfer {transfer.transfer_number}"
        )


def track_shipment(tenant, tracking_number):
    """Shipment with its tracking timeline, looked up within the tenant."""
    shipment = (
        Shipment.objects.select_related("transport", "origin", "destination", "stock_transfer")
        .prefetch_related("updates")
        .filter(tenant=tenant, tracking_number=tracking_number.strip().upper())
        .first()
    )
    if shipment is None:
        raise NotFound(f"No shipment with tracking number {tracking_number}.")
    return shipment


@transaction.atomic
def delete_transport(transport, user):
    """Soft-delete a transport unless it is carrying a shipment."""
    transport = Transport.objects.select_for_update().get(pk=transport.pk)
    carrying = Shipment.objects.filter(
        transport=transport, status__in=[Shipment.PENDING, Shipment.IN_TRANSIT]
    ).exists()
    if transport.status == Transport.IN_USE or carrying:
        raise Conflict(
            f"Transport {transport} is in use and cannot be deleted.",
            details={"transport": transport.pk},
        )
    return soft_delete_instance(transport, user)
