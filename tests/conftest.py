"""
Pytest configuration and fixtures for the RetailOps platform.
"""

from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

import pytest


@pytest.fixture
def api_client():
    """
    Fixture for Django REST framework API client.
    """
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def tenant():
    """
    Fixture for creating a test tenant.
    """
    from apps.core.models import Tenant

    return Tenant.objects.create(company_name="Test Retail Shop", slug="test-shop", status="ACTIVE")


@pytest.fixture
def other_tenant():
    from apps.core.models import Tenant

    return Tenant.objects.create(company_name="Other Shop", slug="other-shop", status="ACTIVE")


@pytest.fixture
def tenant_user(tenant, django_user_model):
    """
    Fixture for creating the business owner; owners hold every permission flag.
    """
    return django_user_model.objects.create_user(
        username="owner",
        email="owner@example.com",
        password="testpass123",
        tenant=tenant,
        user_type="TENANT_OWNER",
    )


@pytest.fixture
def authenticated_client(api_client, tenant_user):
    """
    Fixture for an API client authenticated as the business owner.
    """
    api_client.force_authenticate(user=tenant_user)
    return api_client


@pytest.fixture
def warehouse(tenant):
    from apps.core.models import Warehouse

    return Warehouse.objects.create(tenant=tenant, name="Main Store", code="MAIN")


@pytest.fixture
def second_warehouse(tenant):
    from apps.core.models import Warehouse

    return Warehouse.objects.create(tenant=tenant, name="Back Store", code="BACK")


@pytest.fixture
def cashier_role(tenant):
    from apps.core.models import Role

    return Role.objects.create(
        tenant=tenant,
        name="Cashier",
        permissions={"manageOnlyPos": True, "viewSales": True, "viewProduct": True},
    )


@pytest.fixture
def staff_user(tenant, cashier_role, warehouse, django_user_model):
    """
    Fixture for a cashier limited to the main warehouse.
    """
    user = django_user_model.objects.create_user(
        username="cashier",
        email="cashier@example.com",
        password="testpass123",
        tenant=tenant,
        user_type="TENANT_STAFF",
        role=cashier_role,
    )
    user.warehouses.add(warehouse)
    return user


@pytest.fixture
def staff_client(staff_user):
    from rest_framework.test import APIClient

    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client


@pytest.fixture
def category(tenant):
    from apps.inventory.models import Category

    return Category.objects.create(tenant=tenant, name="Beverages")


@pytest.fixture
def unit(tenant):
    from apps.inventory.models import Unit

    return Unit.objects.create(tenant=tenant, name="Piece", short_name="pc")


@pytest.fixture
def product(tenant, category, unit):
    from apps.inventory.models import Product

    return Product.objects.create(
        tenant=tenant,
        name="Cola 500ml",
        sku="COLA-500",
        barcode="4000000000017",
        category=category,
        unit=unit,
        alert_quantity=Decimal("5"),
    )


@pytest.fixture
def second_product(tenant, category, unit):
    from apps.inventory.models import Product

    return Product.objects.create(
        tenant=tenant, name="Water 1L", sku="WATER-1L", category=category, unit=unit
    )


@pytest.fixture
def make_batch(tenant):
    """
    Factory for stock batches. Later calls get later ``received_at`` unless
    one is given, so FIFO order follows call order.
    """
    from apps.inventory.models import ProductBatch

    counter = {"n": 0}

    def _make(product, warehouse, quantity, unit_cost, selling_price, received_at=None):
        counter["n"] += 1
        if received_at is None:
            received_at = timezone.now() - timedelta(days=30) + timedelta(minutes=counter["n"])
        return ProductBatch.objects.create(
            tenant=tenant,
            product=product,
            warehouse=warehouse,
            unit_cost=Decimal(unit_cost),
            selling_price=Decimal(selling_price),
            quantity=Decimal(quantity),
            remaining=Decimal(quantity),
            received_at=received_at,
        )

    return _make


@pytest.fixture
def stocked_product(product, warehouse, make_batch):
    """
    Cola with two batches in the main warehouse: 5 @ 10.00 then 5 @ 12.00,
    both selling at 15.00.
    """
    make_batch(product, warehouse, "5", "10.00", "15.00")
    make_batch(product, warehouse, "5", "12.00", "15.00")
    return product


@pytest.fixture
def customer(tenant):
    from apps.sales.models import Customer

    return Customer.objects.create(tenant=tenant, name="Jane Buyer", phone="555-0101")


@pytest.fixture
def supplier(tenant):
    from apps.procurement.models import Supplier

    return Supplier.objects.create(tenant=tenant, name="Acme Wholesale", contact_person="Bob")


@pytest.fixture
def cash_account(tenant):
    from apps.accounting.models import Account

    return Account.objects.create(
        tenant=tenant, name="Till", account_type="cash", opening_balance=Decimal("1000.00")
    )
