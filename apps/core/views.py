"""
API views for staff, roles, warehouses, history and the trash.
"""

import logging

from django.contrib.auth import get_user_model
from django.db.models.deletion import ProtectedError
from django.utils.dateparse import parse_date

from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView

from apps.core.decorators import permission_required
from apps.core.exceptions import BadRequest, Conflict, NotFound
from apps.core.history import record_history, restore_instance, trashable_models
from apps.core.mixins import (
    ActiveFilterMixin,
    AuditedCreateMixin,
    AuditedUpdateMixin,
    SoftDeleteMixin,
    TenantScopedMixin,
)
from apps.core.models import History, Role, Warehouse
from apps.core.permissions import HasTenantAccess
from apps.core.serializers import (
    CustomTokenObtainPairSerializer,
    HistorySerializer,
    RoleSerializer,
    StaffCreateSerializer,
    StaffSerializer,
    WarehouseSerializer,
)

logger = logging.getLogger(__name__)
User = get_user_model()


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


@api_view(["GET"])
@permission_classes([permissions.AllowAny])
def health_check(request):
    return Response({"status": "ok"})


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated])
def current_user(request):
    """Profile of the authenticated user including effective permission flags."""
    return Response(StaffSerializer(request.user, context={"request": request}).data)


# Roles


class RoleListCreateView(TenantScopedMixin, generics.ListCreateAPIView):
    model = Role
    serializer_class = RoleSerializer
    required_permissions = {"GET": "viewRole", "POST": "addRole"}
    search_fields = ("name",)

    def perform_create(self, serializer):
        user = self.request.user
        role = serializer.save(tenant=user.tenant)
        record_history(user.tenant, user, "ROLE_CREATED", role, f"Created role {role.name}")


class RoleDetailView(TenantScopedMixin, generics.RetrieveUpdateDestroyAPIView):
    model = Role
    serializer_class = RoleSerializer
    required_permissions = {
        "GET": "viewRole",
        "PUT": "editRole",
        "PATCH": "editRole",
        "DELETE": "deleteRole",
    }

    def perform_update(self, serializer):
        user = self.request.user
        role = serializer.save()
        record_history(user.tenant, user, "ROLE_UPDATED", role, f"Updated role {role.name}")

    def perform_destroy(self, instance):
        user = self.request.user
        if instance.users.exists():
            raise Conflict(
                "Role is assigned to staff and cannot be deleted.",
                details={"staff_count": instance.users.count()},
            )
        record_history(user.tenant, user, "ROLE_DELETED", instance, f"Deleted role {instance.name}")
        try:
            instance.delete()
        except ProtectedError as e:
            raise Conflict("Role is still referenced and cannot be deleted.") from e


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
def permission_flags(request):
    """List every permission flag a role may grant."""
    return Response({"flags": Role.PERMISSION_FLAGS})


# Staff


class StaffListCreateView(TenantScopedMixin, generics.ListCreateAPIView):
    model = User
    required_permissions = {"GET": "viewUser", "POST": "addUser"}
    search_fields = ("username", "email", "first_name", "last_name", "phone")

    def get_base_queryset(self):
        return User.objects.select_related("role").prefetch_related("warehouses")

    def get_serializer_class(self):
        if self.request.method == "POST":
            return StaffCreateSerializer
        return StaffSerializer

    def filter_queryset_params(self, queryset):
        role_id = self.request.query_params.get("role")
        if role_id:
            queryset = queryset.filter(role_id=role_id)
        return queryset

    def perform_create(self, serializer):
        user = self.request.user
        staff = serializer.save(tenant=user.tenant)
        record_history(user.tenant, user, "STAFF_CREATED", staff, f"Created staff {staff.username}")


class StaffDetailView(TenantScopedMixin, generics.RetrieveUpdateDestroyAPIView):
    model = User
    serializer_class = StaffSerializer
    required_permissions = {
        "GET": "viewUser",
        "PUT": "editUser",
        "PATCH": "editUser",
        "DELETE": "deleteUser",
    }

    def perform_update(self, serializer):
        user = self.request.user
        staff = serializer.save()
        record_history(user.tenant, user, "STAFF_UPDATED", staff, f"Updated staff {staff.username}")

    def perform_destroy(self, instance):
        user = self.request.user
        if instance.pk == user.pk:
            raise BadRequest("You cannot delete your own account.")
        if instance.is_tenant_owner():
            raise Conflict("The business owner account cannot be deleted.")
        # Staff are deactivated, not removed, so their history stays attributable
        instance.is_active = False
        instance.save(update_fields=["is_active"])
        record_history(
            user.tenant, user, "STAFF_DELETED", instance, f"Deactivated staff {instance.username}"
        )


# Warehouses


class WarehouseListCreateView(
    ActiveFilterMixin, TenantScopedMixin, AuditedCreateMixin, generics.ListCreateAPIView
):
    model = Warehouse
    serializer_class = WarehouseSerializer
    required_permissions = {"POST": "manageAccess"}
    search_fields = ("name", "code", "location")


class WarehouseDetailView(
    TenantScopedMixin, AuditedUpdateMixin, SoftDeleteMixin, generics.RetrieveUpdateDestroyAPIView
):
    model = Warehouse
    serializer_class = WarehouseSerializer
    required_permissions = {"PUT": "manageAccess", "PATCH": "manageAccess", "DELETE": "manageAccess"}


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
def accessible_warehouses(request):
    """Warehouses the current user may operate in."""
    warehouses = request.user.accessible_warehouses()
    serializer = WarehouseSerializer(warehouses, many=True, context={"request": request})
    return Response(
        {
            "full_access": request.user.has_full_warehouse_access(),
            "warehouses": serializer.data,
        }
    )


# History


class HistoryListView(TenantScopedMixin, generics.ListAPIView):
    model = History
    serializer_class = HistorySerializer
    required_permission = "manageAccess"
    search_fields = ("message",)

    def get_base_queryset(self):
        return History.objects.select_related("actor")

    def filter_queryset_params(self, queryset):
        params = self.request.query_params
        if params.get("action_type"):
            queryset = queryset.filter(action_type=params["action_type"])
        if params.get("entity_type"):
            queryset = queryset.filter(entity_type=params["entity_type"])
        if params.get("entity_id"):
            queryset = queryset.filter(entity_id=params["entity_id"])
        start = parse_date(params.get("start_date") or "")
        end = parse_date(params.get("end_date") or "")
        if start:
            queryset = queryset.filter(created_at__date__gte=start)
        if end:
            queryset = queryset.filter(created_at__date__lte=end)
        return queryset


# Trash


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("manageAccess")
def trash_list(request):
    """
    List soft-deleted records grouped by entity.

    Optional ``?entity=products`` narrows the listing to one entity.
    """
    models_by_name = trashable_models()
    wanted = request.query_params.get("entity")
    if wanted and wanted not in models_by_name:
        raise NotFound(f"Unknown entity: {wanted}")

    result = {}
    for name, model in models_by_name.items():
        if wanted and name != wanted:
            continue
        rows = model.all_objects.filter(tenant=request.user.tenant, del_flag=True).order_by(
            "-updated_at"
        )
        result[name] = [
            {
                "id": row.pk,
                "label": str(row),
                "deleted_at": row.updated_at,
                "deleted_by": row.modified_by.username if row.modified_by_id else None,
            }
            for row in rows
        ]
    return Response(result)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("manageAccess")
def trash_restore(request, entity, pk):
    models_by_name = trashable_models()
    model = models_by_name.get(entity)
    if model is None:
        raise NotFound(f"Unknown entity: {entity}")
    try:
        instance = model.all_objects.get(pk=pk, tenant=request.user.tenant, del_flag=True)
    except model.DoesNotExist:
        raise NotFound("Deleted record not found.")

    restore_instance(instance, request.user)
    return Response({"detail": f"{instance} restored.", "id": instance.pk}, status=status.HTTP_200_OK)
