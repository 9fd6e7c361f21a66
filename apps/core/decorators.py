"""
Decorators for role-based authorization of function-based API views.
"""

from functools import wraps

from rest_framework import status
from rest_framework.response import Response


def permission_required(*flags):
    """
    Require the user to hold at least one of the given role flags.

    Usage:
        @api_view(["POST"])
        @permission_classes([IsAuthenticated, HasTenantAccess])
        @permission_required("addSales", "manageOnlyPos")
        def create_sale(request):
            ...
    """

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            user = request.user

            if not user or not user.is_authenticated:
                return Response(
                    {"error": {"code": "UNAUTHORIZED", "message": "Authentication required.", "details": {}}},
                    status=status.HTTP_401_UNAUTHORIZED,
                )

            if not any(user.has_role_permission(flag) for flag in flags):
                return Response(
                    {
                        "error": {
                            "code": "FORBIDDEN",
                            "message": "Your role does not allow this action.",
                            "details": {"required": list(flags)},
                        }
                    },
                    status=status.HTTP_403_FORBIDDEN,
                )

            return view_func(request, *args, **kwargs)

        return wrapper

    return decorator
