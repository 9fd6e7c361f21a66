"""
Permission classes for tenant-based and role-based access control.
"""

from rest_framework import permissions


class HasTenantAccess(permissions.BasePermission):
    """
    Permission class to ensure users can only access resources from their own tenant.
    """

    message = "Access denied. User must belong to an active tenant."

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated and user.tenant_id):
            return False
        return user.tenant.is_active()

    def has_object_permission(self, request, view, obj):
        # Check if the object belongs to the user's tenant
        if hasattr(obj, "tenant_id"):
            return obj.tenant_id == request.user.tenant_id
        return True


class HasRolePermission(permissions.BasePermission):
    """
    Checks the role flag a view declares.

    Views set ``required_permission`` to one flag, or
    ``required_permissions`` to a mapping of HTTP method to flag, e.g.
    ``{"GET": "viewProduct", "POST": "addProduct"}``. Views that declare
    neither are allowed.
    """

    message = "Your role does not allow this action."

    def has_permission(self, request, view):
        flag = self.required_flag(request, view)
        if flag is None:
            return True
        return request.user.is_authenticated and request.user.has_role_permission(flag)

    @staticmethod
    def required_flag(request, view):
        per_method = getattr(view, "required_permissions", None)
        if per_method:
            return per_method.get(request.method, per_method.get("*"))
        return getattr(view, "required_permission", None)


class IsTenantOwner(permissions.BasePermission):
    message = "Only the business owner can perform this action."

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.is_tenant_owner()
