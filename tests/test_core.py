"""
Tests for tenancy, roles, warehouse access, history and trash.
"""

from datetime import date
from decimal import Decimal

from django.http import HttpResponse
from django.urls import reverse

import pytest
from rest_framework import status
from rest_framework.test import APIClient

from apps.core.exceptions import BadRequest
from apps.core.history import record_history
from apps.core.middleware import TenantContextMiddleware
from apps.core.models import History, Role, Tenant, User, Warehouse
from apps.core.utils import generate_daily_number, money, parse_period, percentage
from apps.inventory.models import Product


@pytest.mark.django_db
class TestRolePermissions:
    """Test role flags and how users inherit them."""

    def test_owner_holds_every_flag(self, tenant_user):
        assert tenant_user.has_role_permission("deleteHr")
        assert tenant_user.has_full_warehouse_access()

    def test_staff_gets_only_role_flags(self, staff_user):
        assert staff_user.has_role_permission("manageOnlyPos")
        assert not staff_user.has_role_permission("addProduct")

    def test_manage_access_grants_everything(self, tenant):
        role = Role.objects.create(tenant=tenant, name="Admin", permissions={"manageAccess": True})
        assert role.has_permission("balanceSheet")
        assert role.granted_flags() == Role.PERMISSION_FLAGS

    def test_staff_without_role_has_no_flags(self, tenant):
        user = User.objects.create_user(username="norole", password="x", tenant=tenant)
        assert not user.has_role_permission("dashboard")

    def test_role_must_belong_to_user_tenant(self, other_tenant, cashier_role):
        with pytest.raises(ValueError):
            User.objects.create_user(
                username="intruder", password="x", tenant=other_tenant, role=cashier_role
            )

    def test_unknown_flag_rejected_by_api(self, authenticated_client):
        response = authenticated_client.post(
            reverse("core:role_list"),
            {"name": "Odd", "permissions": {"flyPlanes": True}},
            format="json",
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.django_db
class TestWarehouseAccess:
    """Test warehouse restriction for staff."""

    def test_staff_sees_assigned_warehouses_only(self, staff_user, warehouse, second_warehouse):
        assert list(staff_user.accessible_warehouses()) == [warehouse]
        assert staff_user.can_access_warehouse(warehouse)
        assert not staff_user.can_access_warehouse(second_warehouse)

    def test_owner_sees_all_warehouses(self, tenant_user, warehouse, second_warehouse):
        assert set(tenant_user.accessible_warehouses()) == {warehouse, second_warehouse}

    def test_other_tenant_warehouse_is_never_accessible(self, tenant_user, other_tenant):
        foreign = Warehouse.objects.create(tenant=other_tenant, name="Elsewhere")
        assert not tenant_user.can_access_warehouse(foreign)

    def test_warehouse_list_is_tenant_scoped(self, authenticated_client, warehouse, other_tenant):
        Warehouse.objects.create(tenant=other_tenant, name="Elsewhere")
        response = authenticated_client.get(reverse("core:warehouse_list"))
        assert response.status_code == status.HTTP_200_OK
        names = [row["name"] for row in response.data["results"]]
        assert names == ["Main Store"]


@pytest.mark.django_db
class TestHistoryAndTrash:
    """Test audit entries and soft-delete restore."""

    def test_record_history(self, tenant, tenant_user, product):
        entry = record_history(tenant, tenant_user, "PRODUCT_PRICED", product, "Repriced", old="1")
        assert entry.entity_type == "PRODUCT"
        assert entry.entity_id == str(product.pk)
        assert entry.metadata == {"old": "1"}

    def test_delete_product_soft_deletes(self, authenticated_client, product):
        response = authenticated_client.delete(
            reverse("inventory:product_detail", kwargs={"pk": product.pk})
        )
        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not Product.objects.filter(pk=product.pk).exists()
        assert Product.all_objects.get(pk=product.pk).del_flag
        assert History.objects.filter(action_type="PRODUCT_DELETED").exists()

    def test_trash_lists_and_restores(self, authenticated_client, tenant_user, product):
        product.soft_delete(tenant_user)

        listing = authenticated_client.get(reverse("core:trash_list"), {"entity": "products"})
        assert listing.status_code == status.HTTP_200_OK
        assert [row["id"] for row in listing.data["products"]] == [product.pk]

        response = authenticated_client.post(
            reverse("core:trash_restore", kwargs={"entity": "products", "pk": product.pk})
        )
        assert response.status_code == status.HTTP_200_OK
        assert Product.objects.filter(pk=product.pk).exists()

    def test_unknown_trash_entity(self, authenticated_client):
        response = authenticated_client.get(reverse("core:trash_list"), {"entity": "planets"})
        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestUtils:
    """Test numbering and money helpers."""

    def test_daily_numbers_increment(self, tenant, warehouse, product, make_batch):
        first = make_batch(product, warehouse, "1", "1.00", "2.00")
        second = make_batch(product, warehouse, "1", "1.00", "2.00")
        assert first.batch_number.endswith("-0001")
        assert second.batch_number.endswith("-0002")
        assert generate_daily_number(type(first), tenant, "batch_number", "BATCH").endswith("-0003")

    def test_percentage_of_zero(self):
        assert percentage(Decimal("5"), Decimal("0")) == Decimal("0.00")
        assert percentage(Decimal("1"), Decimal("3")) == Decimal("33.33")

    def test_money_rounds_half_up(self):
        assert money(Decimal("2.345")) == Decimal("2.35")

    def test_parse_period_rejects_reversed_range(self):
        with pytest.raises(BadRequest):
            parse_period({"start_date": "2024-02-10", "end_date": "2024-02-01"})

    def test_parse_period_reads_dates(self):
        start, end = parse_period({"start_date": "2024-02-01", "end_date": "2024-02-10"})
        assert (start, end) == (date(2024, 2, 1), date(2024, 2, 10))


@pytest.mark.django_db
class TestTenantContextMiddleware:
    """Test tenant resolution and status checks on each request."""

    @pytest.fixture
    def middleware(self):
        return TenantContextMiddleware(lambda request: HttpResponse())

    def _request(self, rf, user, path="/api/me/"):
        request = rf.get(path)
        request.user = User.objects.get(pk=user.pk)
        return request

    def test_active_tenant_attached(self, rf, middleware, tenant, tenant_user):
        request = self._request(rf, tenant_user)
        assert middleware.process_request(request) is None
        assert request.tenant == tenant

    def test_suspended_tenant_rejected(self, rf, middleware, tenant, tenant_user):
        tenant.suspend()

        response = middleware.process_request(self._request(rf, tenant_user))

        assert response.status_code == 403
        assert b"TENANT_SUSPENDED" in response.content

    def test_pending_deletion_rejected(self, rf, middleware, tenant, tenant_user):
        Tenant.objects.filter(pk=tenant.pk).update(status=Tenant.PENDING_DELETION)

        response = middleware.process_request(self._request(rf, tenant_user))

        assert response.status_code == 403
        assert b"TENANT_PENDING_DELETION" in response.content

    def test_health_path_is_exempt(self, rf, middleware, tenant, tenant_user):
        tenant.suspend()
        request = self._request(rf, tenant_user, path="/health/")
        assert middleware.process_request(request) is None

    def test_api_refuses_suspended_tenant(self, authenticated_client, tenant):
        tenant.suspend()
        response = authenticated_client.get(reverse("core:warehouse_list"))
        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestRoleAndStaffDeletion:
    """Test the guards on deleting roles and staff accounts."""

    def test_assigned_role_cannot_be_deleted(self, authenticated_client, cashier_role, staff_user):
        response = authenticated_client.delete(
            reverse("core:role_detail", kwargs={"pk": cashier_role.pk})
        )
        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error"]["details"] == {"staff_count": 1}
        assert Role.objects.filter(pk=cashier_role.pk).exists()

    def test_unassigned_role_is_deleted(self, authenticated_client, tenant):
        role = Role.objects.create(tenant=tenant, name="Seasonal", permissions={"viewSales": True})
        response = authenticated_client.delete(reverse("core:role_detail", kwargs={"pk": role.pk}))
        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert History.objects.filter(action_type="ROLE_DELETED").exists()

    @pytest.fixture
    def manager(self, tenant):
        role = Role.objects.create(tenant=tenant, name="Manager", permissions={"deleteUser": True})
        return User.objects.create_user(username="manager", password="x", tenant=tenant, role=role)

    def _client(self, user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    def test_user_cannot_delete_themself(self, manager):
        response = self._client(manager).delete(
            reverse("core:staff_detail", kwargs={"pk": manager.pk})
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        manager.refresh_from_db()
        assert manager.is_active

    def test_owner_cannot_be_deleted(self, manager, tenant_user):
        response = self._client(manager).delete(
            reverse("core:staff_detail", kwargs={"pk": tenant_user.pk})
        )
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_staff_deletion_deactivates(self, manager, staff_user):
        response = self._client(manager).delete(
            reverse("core:staff_detail", kwargs={"pk": staff_user.pk})
        )
        assert response.status_code == status.HTTP_204_NO_CONTENT
        staff_user.refresh_from_db()
        assert not staff_user.is_active
