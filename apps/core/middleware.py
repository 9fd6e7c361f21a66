"""
Tenant context middleware for multi-tenant data isolation.

Attaches the authenticated user's tenant to the request and rejects requests
for suspended or pending-deletion tenants.
"""

import logging
from typing import Optional

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.utils.deprecation import MiddlewareMixin

from apps.core.models import Tenant

logger = logging.getLogger(__name__)


class TenantContextMiddleware(MiddlewareMixin):
    """
    Middleware to set ``request.tenant`` for each request.

    Session-authenticated users are resolved here. Requests authenticated by
    JWT are resolved by DRF after this middleware runs, so API views read the
    tenant from ``request.user`` and ``HasTenantAccess`` re-checks its status.
    """

    # Paths that don't require tenant context
    EXEMPT_PATHS = [
        "/admin/",
        "/api/auth/",
        "/health/",
        "/static/",
        "/media/",
    ]

    def process_request(self, request: HttpRequest) -> Optional[HttpResponse]:
        request.tenant = None

        if self._is_exempt_path(request.path):
            return None

        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return None

        if user.is_platform_admin():
            return None

        tenant = user.tenant
        if tenant is None:
            logger.warning(f"No tenant context for authenticated user: {user.username}")
            return JsonResponse(
                {"error": {"code": "FORBIDDEN", "message": "Tenant context not found.", "details": {}}},
                status=403,
            )

        if tenant.status == Tenant.SUSPENDED:
            logger.warning(f"Access attempt to suspended tenant: {tenant.pk}")
            return JsonResponse(
                {
                    "error": {
                        "code": "TENANT_SUSPENDED",
                        "message": "Your account has been suspended. Please contact support.",
                        "details": {"tenant_status": "suspended"},
                    }
                },
                status=403,
            )

        if tenant.status == Tenant.PENDING_DELETION:
            logger.warning(f"Access attempt to tenant pending deletion: {tenant.pk}")
            return JsonResponse(
                {
                    "error": {
                        "code": "TENANT_PENDING_DELETION",
                        "message": "Your account is scheduled for deletion.",
                        "details": {"tenant_status": "pending_deletion"},
                    }
                },
                status=403,
            )

        request.tenant = tenant
        return None

    def _is_exempt_path(self, path: str) -> bool:
        return any(path.startswith(exempt) for exempt in self.EXEMPT_PATHS)
