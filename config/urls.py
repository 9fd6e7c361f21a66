"""
URL configuration for the RetailOps platform.
"""

from django.contrib import admin
from django.urls import include, path

from rest_framework_simplejwt.views import TokenRefreshView

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("", include("apps.core.urls")),
    path("", include("apps.inventory.urls")),
    path("", include("apps.procurement.urls")),
    path("", include("apps.sales.urls")),
    path("", include("apps.transport.urls")),
    path("", include("apps.hr.urls")),
    path("", include("apps.accounting.urls")),
    path("", include("apps.reporting.urls")),
]
