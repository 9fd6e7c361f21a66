"""
Mixins for tenant-scoped API views.

Every business list/detail endpoint is built from DRF generic views plus
these mixins, which scope querysets to the user's tenant, stamp
``created_by``/``modified_by``, soft-delete on DELETE and write history.
"""

from django.db.models import Q

from rest_framework import permissions

from apps.core.history import entity_label, record_history, soft_delete_instance
from apps.core.permissions import HasRolePermission, HasTenantAccess
from apps.core.utils import is_truthy


class TenantScopedMixin:
    """
    Restrict a generic view to the requesting user's tenant.

    Set ``model`` on the view; ``get_base_queryset`` may be overridden to add
    ``select_related`` or extra filters.
    """

    model = None
    permission_classes = [permissions.IsAuthenticated, HasTenantAccess, HasRolePermission]
    search_fields = ()

    def get_base_queryset(self):
        return self.model.objects.all()

    def get_queryset(self):
        queryset = self.get_base_queryset().filter(tenant=self.request.user.tenant)
        search = self.request.query_params.get("search")
        if search and self.search_fields:
            condition = Q()
            for field in self.search_fields:
                condition |= Q(**{f"{field}__icontains": search})
            queryset = queryset.filter(condition)
        return self.filter_queryset_params(queryset)

    def filter_queryset_params(self, queryset):
        """Hook for query-parameter filters."""
        return queryset


class AuditedCreateMixin:
    """Attach tenant and creator on create and record ``<ENTITY>_CREATED``."""

    def perform_create(self, serializer):
        user = self.request.user
        extra = {"tenant": user.tenant}
        if hasattr(serializer.Meta.model, "created_by"):
            extra["created_by"] = user
        instance = serializer.save(**extra)
        record_history(
            user.tenant, user, f"{entity_label(instance)}_CREATED", instance, f"Created {instance}"
        )


class AuditedUpdateMixin:
    """Set ``mod_flag``/``modified_by`` on update and record ``<ENTITY>_UPDATED``."""

    def perform_update(self, serializer):
        user = self.request.user
        extra = {}
        if hasattr(serializer.Meta.model, "mod_flag"):
            extra = {"mod_flag": True, "modified_by": user}
        instance = serializer.save(**extra)
        record_history(
            user.tenant,
            user,
            f"{entity_label(instance)}_UPDATED",
            instance,
            f"Updated {instance}",
            fields=sorted(serializer.validated_data.keys()),
        )


class SoftDeleteMixin:
    """DELETE marks the record with ``del_flag`` instead of removing it."""

    def perform_destroy(self, instance):
        soft_delete_instance(instance, self.request.user)


class ActiveFilterMixin:
    """Support ``?is_active=true|false`` on models with an ``is_active`` field."""

    def filter_queryset_params(self, queryset):
        queryset = super().filter_queryset_params(queryset)
        is_active = self.request.query_params.get("is_active")
        if is_active is not None:
            queryset = queryset.filter(is_active=is_truthy(is_active))
        return queryset
