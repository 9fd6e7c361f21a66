"""
Tests for transports, shipments and tracking.
"""

from decimal import Decimal

from django.urls import reverse

import pytest
from rest_framework import status

from apps.core.exceptions import BadRequest, Conflict, InvalidStateError, NotFound
from apps.inventory import fifo
from apps.inventory import services as inventory_services
from apps.inventory.models import StockTransfer
from apps.transport import services
from apps.transport.models import Shipment, Transport


@pytest.fixture
def truck(tenant):
    return Transport.objects.create(
        tenant=tenant, name="Box Truck", registration_number="KA-01-1234", driver_name="Sam"
    )


@pytest.mark.django_db
class TestShipmentWorkflow:
    """Test the shipment lifecycle and the transport it occupies."""

    def test_booking_marks_transport_in_use(self, tenant, tenant_user, truck, warehouse, second_warehouse):
        shipment = services.create_shipment(
            tenant, tenant_user, transport=truck, origin=warehouse, destination=second_warehouse
        )

        assert shipment.status == Shipment.PENDING
        assert shipment.tracking_number.startswith("SHP-")
        truck.refresh_from_db()
        assert truck.status == Transport.IN_USE
        assert shipment.updates.count() == 1

    def test_busy_transport_is_refused(self, tenant, tenant_user, truck):
        services.create_shipment(tenant, tenant_user, transport=truck)
        with pytest.raises(Conflict):
            services.create_shipment(tenant, tenant_user, transport=truck)

    def test_same_origin_and_destination(self, tenant, tenant_user, warehouse):
        with pytest.raises(BadRequest):
            services.create_shipment(tenant, tenant_user, origin=warehouse, destination=warehouse)

    def test_dispatch_then_deliver_frees_transport(self, tenant, tenant_user, truck):
        shipment = services.create_shipment(tenant, tenant_user, transport=truck)

        shipment = services.dispatch_shipment(shipment, tenant_user, location="Dock 2")
        assert shipment.status == Shipment.IN_TRANSIT
        assert shipment.actual_pickup is not None

        services.add_tracking_update(shipment, tenant_user, location="Highway 7")
        shipment = services.deliver_shipment(shipment, tenant_user)

        assert shipment.status == Shipment.DELIVERED
        assert shipment.updates.count() == 4
        truck.refresh_from_db()
        assert truck.is_available

    def test_cannot_deliver_pending(self, tenant, tenant_user):
        shipment = services.create_shipment(tenant, tenant_user)
        with pytest.raises(InvalidStateError):
            services.deliver_shipment(shipment, tenant_user)

    def test_cancel_frees_transport(self, tenant, tenant_user, truck):
        shipment = services.create_shipment(tenant, tenant_user, transport=truck)
        shipment = services.cancel_shipment(shipment, tenant_user, reason="Breakdown")

        assert shipment.status == Shipment.CANCELLED
        truck.refresh_from_db()
        assert truck.is_available
        with pytest.raises(InvalidStateError):
            services.cancel_shipment(shipment, tenant_user)

    def test_track_is_tenant_scoped(self, tenant, other_tenant, tenant_user):
        shipment = services.create_shipment(tenant, tenant_user)

        assert services.track_shipment(tenant, shipment.tracking_number.lower()) == shipment
        with pytest.raises(NotFound):
            services.track_shipment(other_tenant, shipment.tracking_number)

    def test_in_use_transport_cannot_be_deleted(self, tenant, tenant_user, truck):
        services.create_shipment(tenant, tenant_user, transport=truck)
        with pytest.raises(Conflict):
            services.delete_transport(truck, tenant_user)

        truck.refresh_from_db()
        assert truck.status == Transport.IN_USE
        assert Transport.objects.filter(pk=truck.pk).exists()

    def test_freed_transport_can_be_deleted(self, tenant, tenant_user, truck):
        shipment = services.create_shipment(tenant, tenant_user, transport=truck)
        services.cancel_shipment(shipment, tenant_user)

        services.delete_transport(truck, tenant_user)

        assert not Transport.objects.filter(pk=truck.pk).exists()


@pytest.mark.django_db
class TestTransferShipments:
    """Test shipments that carry stock transfers."""

    @pytest.fixture
    def transfer(self, tenant, tenant_user, stocked_product, warehouse, second_warehouse):
        return inventory_services.create_transfer(
            tenant,
            tenant_user,
            warehouse,
            second_warehouse,
            [{"product": stocked_product, "quantity": Decimal("4")}],
        )

    def test_approve_with_transport_books_shipment(self, transfer, tenant_user, truck):
        transfer = inventory_services.approve_transfer(transfer, tenant_user, transport=truck)

        shipment = Shipment.objects.get(stock_transfer=transfer)
        assert shipment.transport == truck
        assert shipment.origin == transfer.from_warehouse
        assert shipment.estimated_delivery is not None

    def test_delivery_receives_transfer(
        self, transfer, tenant_user, truck, stocked_product, second_warehouse
    ):
        transfer = inventory_services.approve_transfer(transfer, tenant_user, transport=truck)
        shipment = Shipment.objects.get(stock_transfer=transfer)
        shipment = services.dispatch_shipment(shipment, tenant_user)

        services.deliver_shipment(shipment, tenant_user)

        transfer.refresh_from_db()
        assert transfer.status == StockTransfer.COMPLETED
        assert fifo.stock_level(stocked_product, second_warehouse) == Decimal("4")

    def test_direct_receipt_delivers_booked_shipment(
        self, transfer, tenant_user, truck, stocked_product, second_warehouse
    ):
        transfer = inventory_services.approve_transfer(transfer, tenant_user, transport=truck)

        inventory_services.complete_transfer(transfer, tenant_user)

        shipment = Shipment.objects.get(stock_transfer=transfer)
        assert shipment.status == Shipment.DELIVERED
        assert shipment.actual_pickup is not None
        truck.refresh_from_db()
        assert truck.is_available
        assert fifo.stock_level(stocked_product, second_warehouse) == Decimal("4")

    def test_cancelling_transfer_cancels_shipment(self, transfer, tenant_user, truck):
        transfer = inventory_services.approve_transfer(transfer, tenant_user, transport=truck)

        inventory_services.cancel_transfer(transfer, tenant_user, reason="Not needed")

        shipment = Shipment.objects.get(stock_transfer=transfer)
        assert shipment.status == Shipment.CANCELLED
        truck.refresh_from_db()
        assert truck.is_available


@pytest.mark.django_db
class TestTransportAPI:
    """Test transport and shipment endpoints."""

    def test_create_transport(self, authenticated_client):
        response = authenticated_client.post(
            reverse("transport:transport_list"),
            {"name": "Courier Van", "vehicle_type": Transport.VAN},
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["status"] == Transport.AVAILABLE

    def test_shipment_lifecycle(self, authenticated_client, truck, warehouse, second_warehouse):
        created = authenticated_client.post(
            reverse("transport:shipment_list"),
            {"transport": truck.pk, "origin": warehouse.pk, "destination": second_warehouse.pk},
            format="json",
        )
        assert created.status_code == status.HTTP_201_CREATED
        pk = created.data["id"]

        dispatched = authenticated_client.post(
            reverse("transport:shipment_dispatch", kwargs={"pk": pk}), {}, format="json"
        )
        assert dispatched.data["status"] == Shipment.IN_TRANSIT

        delivered = authenticated_client.post(
            reverse("transport:shipment_deliver", kwargs={"pk": pk}), {}, format="json"
        )
        assert delivered.data["status"] == Shipment.DELIVERED

        tracked = authenticated_client.get(
            reverse(
                "transport:shipment_track",
                kwargs={"tracking_number": created.data["tracking_number"]},
            )
        )
        assert tracked.status_code == status.HTTP_200_OK
        assert len(tracked.data["updates"]) == 3

    def test_deliver_pending_is_conflict(self, authenticated_client, tenant, tenant_user):
        shipment = services.create_shipment(tenant, tenant_user)
        response = authenticated_client.post(
            reverse("transport:shipment_deliver", kwargs={"pk": shipment.pk}), {}, format="json"
        )
        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error"]["code"] == "INVALID_STATE"

    def test_delete_busy_transport(self, authenticated_client, tenant, tenant_user, truck):
        services.create_shipment(tenant, tenant_user, transport=truck)
        response = authenticated_client.delete(
            reverse("transport:transport_detail", kwargs={"pk": truck.pk})
        )
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_cashier_cannot_book(self, staff_client):
        response = staff_client.post(reverse("transport:shipment_list"), {}, format="json")
        assert response.status_code == status.HTTP_403_FORBIDDEN
