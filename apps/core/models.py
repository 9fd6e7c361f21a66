"""
Core models for the RetailOps platform.

Tenancy, staff users, permission roles, warehouses and the audit history
shared by every other app.
"""

import uuid

from django.conf import settings
from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models
from django.utils import timezone
from django.utils.text import slugify


class Tenant(models.Model):
    """
    Core tenant model for multi-tenancy.

    Each tenant represents a retail business using the platform. Every
    business record carries a tenant foreign key and all queries are
    scoped to the requesting user's tenant.
    """

    # Status choices
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    PENDING_DELETION = "PENDING_DELETION"

    STATUS_CHOICES = [
        (ACTIVE, "Active"),
        (SUSPENDED, "Suspended"),
        (PENDING_DELETION, "Pending Deletion"),
    ]

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the tenant",
    )

    company_name = models.CharField(max_length=255, help_text="Name of the business")

    slug = models.SlugField(
        unique=True, max_length=255, help_text="URL-friendly identifier for the tenant"
    )

    currency = models.CharField(max_length=3, default="USD", help_text="ISO currency code")

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=ACTIVE,
        help_text="Current operational status of the tenant",
    )

    suspended_at = models.DateTimeField(
        null=True, blank=True, help_text="Timestamp when the tenant was suspended"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "tenants"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="tenant_status_idx"),
        ]
        verbose_name = "Tenant"
        verbose_name_plural = "Tenants"

    def __str__(self):
        return f"{self.company_name} ({self.status})"

    def save(self, *args, **kwargs):
        """
        Override save to auto-generate slug from company_name if not provided.
        """
        if not self.slug:
            self.slug = slugify(self.company_name)
            # Ensure uniqueness by appending part of a UUID if slug already exists
            if Tenant.objects.filter(slug=self.slug).exists():
                self.slug = f"{self.slug}-{str(uuid.uuid4())[:8]}"
        super().save(*args, **kwargs)

    def is_active(self):
        """Check if tenant is in active status."""
        return self.status == self.ACTIVE

    def is_suspended(self):
        """Check if tenant is suspended."""
        return self.status == self.SUSPENDED

    def suspend(self):
        """
        Suspend the tenant account.

        Disables access for all tenant users while retaining all data.
        """
        self.status = self.SUSPENDED
        self.suspended_at = timezone.now()
        self.save(update_fields=["status", "suspended_at", "updated_at"])

    def activate(self):
        """Reactivate a suspended tenant."""
        self.status = self.ACTIVE
        self.suspended_at = None
        self.save(update_fields=["status", "suspended_at", "updated_at"])


class ActiveManager(models.Manager):
    """Default manager hiding soft-deleted rows."""

    def get_queryset(self):
        return super().get_queryset().filter(del_flag=False)


class SoftDeleteModel(models.Model):
    """
    Abstract base for records that are soft-deleted instead of removed.

    ``del_flag`` hides the row from ``objects``; ``all_objects`` still sees it
    so the trash view can list and restore it. ``mod_flag`` marks a record
    edited after creation.
    """

    del_flag = models.BooleanField(default=False, db_index=True)
    mod_flag = models.BooleanField(default=False)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    modified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ActiveManager()
    all_objects = models.Manager()

    class Meta:
        abstract = True

    def soft_delete(self, user=None):
        self.del_flag = True
        self.modified_by = user
        self.save(update_fields=["del_flag", "modified_by", "updated_at"])

    def restore(self, user=None):
        self.del_flag = False
        self.modified_by = user
        self.save(update_fields=["del_flag", "modified_by", "updated_at"])

    def mark_modified(self, user=None):
        """Flag the record as edited; the caller saves."""
        self.mod_flag = True
        self.modified_by = user


class Role(models.Model):
    """
    A named bundle of boolean permission flags assigned to staff.

    ``permissions`` maps flag names from ``PERMISSION_FLAGS`` to booleans.
    Holding ``manageAccess`` grants every flag.
    """

    DASHBOARD = "dashboard"
    MANAGE_ONLY_POS = "manageOnlyPos"
    MANAGE_ACCESS = "manageAccess"

    PERMISSION_FLAGS = [
        DASHBOARD,
        # Products
        "viewProduct",
        "addProduct",
        "editProduct",
        "deleteProduct",
        "manageProduct",
        # Sales
        "viewSales",
        "addSales",
        "editSales",
        "deleteSales",
        "manageSales",
        # Purchase
        "viewPurchase",
        "addPurchase",
        "editPurchase",
        "deletePurchase",
        "managePurchase",
        # Expenses
        "viewExpenses",
        "addExpenses",
        "editExpenses",
        "deleteExpenses",
        "manageExpenses",
        # Accounts
        "viewListAccount",
        "addListAccount",
        "editListAccount",
        "deleteListAccount",
        # Reports
        "balanceSheet",
        "profitLostReport",
        "salesReport",
        "purchaseReport",
        "expensesReport",
        # HR
        "viewHr",
        "addHr",
        "editHr",
        "deleteHr",
        "manageHr",
        # Roles
        "viewRole",
        "addRole",
        "editRole",
        "deleteRole",
        "manageRole",
        # Users
        "viewUser",
        "addUser",
        "editUser",
        "deleteUser",
        "manageUser",
        # POS and admin
        MANAGE_ONLY_POS,
        MANAGE_ACCESS,
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="roles")
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    permissions = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "roles"
        ordering = ["name"]
        unique_together = [["tenant", "name"]]

    def __str__(self):
        return self.name

    def has_permission(self, flag):
        """Return True if the role grants ``flag`` directly or through manageAccess."""
        perms = self.permissions or {}
        return bool(perms.get(flag)) or bool(perms.get(self.MANAGE_ACCESS))

    def granted_flags(self):
        if self.has_permission(self.MANAGE_ACCESS):
            return list(self.PERMISSION_FLAGS)
        return [flag for flag in self.PERMISSION_FLAGS if (self.permissions or {}).get(flag)]


class Warehouse(SoftDeleteModel):
    """
    A stock-holding location (shop floor, store room, distribution center).
    """

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="warehouses")
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=30, blank=True)
    location = models.TextField(blank=True)
    capacity = models.PositiveIntegerField(null=True, blank=True, help_text="Capacity in units")
    manager = models.ForeignKey(
        "User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="managed_warehouses",
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "warehouses"
        ordering = ["name"]
        unique_together = [["tenant", "name"]]
        indexes = [
            models.Index(fields=["tenant", "is_active"], name="warehouse_tenant_active_idx"),
        ]

    def __str__(self):
        return self.name


class TenantUserManager(UserManager):
    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault("user_type", "PLATFORM_ADMIN")
        return super().create_superuser(username, email, password, **extra_fields)


class User(AbstractUser):
    """
    Staff user bound to a tenant.

    ``user_type`` distinguishes platform administrators and tenant owners from
    regular staff. Regular staff get their capabilities from ``role`` and may
    only work in their assigned ``warehouses``.
    """

    PLATFORM_ADMIN = "PLATFORM_ADMIN"
    TENANT_OWNER = "TENANT_OWNER"
    TENANT_STAFF = "TENANT_STAFF"

    USER_TYPE_CHOICES = [
        (PLATFORM_ADMIN, "Platform Administrator"),
        (TENANT_OWNER, "Business Owner"),
        (TENANT_STAFF, "Staff"),
    ]

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="users",
        help_text="Tenant that this user belongs to (null for platform admins)",
    )

    user_type = models.CharField(max_length=30, choices=USER_TYPE_CHOICES, default=TENANT_STAFF)

    role = models.ForeignKey(
        Role,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="users",
    )

    warehouses = models.ManyToManyField(Warehouse, blank=True, related_name="staff")

    phone = models.CharField(max_length=20, blank=True)

    objects = TenantUserManager()

    class Meta:
        db_table = "users"
        ordering = ["username"]
        verbose_name = "User"
        verbose_name_plural = "Users"
        indexes = [
            models.Index(fields=["tenant", "user_type"], name="user_tenant_type_idx"),
        ]

    def __str__(self):
        if self.tenant:
            return f"{self.username} ({self.tenant.company_name})"
        return self.username

    def is_platform_admin(self):
        return self.user_type == self.PLATFORM_ADMIN

    def is_tenant_owner(self):
        return self.user_type == self.TENANT_OWNER

    def has_role_permission(self, flag):
        """Owners hold every flag; staff hold what their role grants."""
        if self.is_tenant_owner():
            return True
        return self.role is not None and self.role.has_permission(flag)

    def has_full_warehouse_access(self):
        return self.is_tenant_owner() or self.has_role_permission(Role.MANAGE_ACCESS)

    def accessible_warehouses(self):
        if self.tenant_id is None:
            return Warehouse.objects.none()
        queryset = Warehouse.objects.filter(tenant_id=self.tenant_id, is_active=True)
        if self.has_full_warehouse_access():
            return queryset
        return queryset.filter(staff=self)

    def can_access_warehouse(self, warehouse):
        if warehouse is None or warehouse.tenant_id != self.tenant_id:
            return False
        if self.has_full_warehouse_access():
            return True
        return self.warehouses.filter(pk=warehouse.pk).exists()

    def save(self, *args, **kwargs):
        if self.user_type == self.PLATFORM_ADMIN:
            self.tenant = None
        elif not self.tenant_id:
            raise ValueError(f"Users of type {self.user_type} must have a tenant assigned")
        if self.role_id and self.role.tenant_id != self.tenant_id:
            raise ValueError("Role must belong to the same tenant as the user")
        super().save(*args, **kwargs)


class History(models.Model):
    """
    Append-only audit trail of business actions (create, update, delete,
    restore, state transitions) within a tenant.
    """

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="history")
    action_type = models.CharField(max_length=60, db_index=True, help_text="e.g. PRODUCT_CREATED")
    entity_type = models.CharField(max_length=60, db_index=True)
    entity_id = models.CharField(max_length=64, blank=True)
    message = models.TextField()
    actor = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="history_entries"
    )
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = "history"
        ordering = ["-created_at", "-id"]
        verbose_name_plural = "History"
        indexes = [
            models.Index(fields=["tenant", "entity_type", "entity_id"], name="history_entity_idx"),
        ]

    def __str__(self):
        return f"{self.action_type}: {self.message}"
