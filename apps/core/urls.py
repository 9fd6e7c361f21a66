"""
URL configuration for core app.
"""

from django.urls import path

from . import views

app_name = "core"

urlpatterns = [
    path("health/", views.health_check, name="health_check"),
    path("api/auth/login/", views.CustomTokenObtainPairView.as_view(), name="login"),
    path("api/me/", views.current_user, name="current_user"),
    # Roles
    path("api/roles/", views.RoleListCreateView.as_view(), name="role_list"),
    path("api/roles/<int:pk>/", views.RoleDetailView.as_view(), name="role_detail"),
    path("api/roles/flags/", views.permission_flags, name="permission_flags"),
    # Staff
    path("api/staff/", views.StaffListCreateView.as_view(), name="staff_list"),
    path("api/staff/<int:pk>/", views.StaffDetailView.as_view(), name="staff_detail"),
    # Warehouses
    path("api/warehouses/", views.WarehouseListCreateView.as_view(), name="warehouse_list"),
    path(
        "api/warehouses/accessible/",
        views.accessible_warehouses,
        name="accessible_warehouses",
    ),
    path(
        "api/warehouses/<int:pk>/", views.WarehouseDetailView.as_view(), name="warehouse_detail"
    ),
    # History and trash
    path("api/history/", views.HistoryListView.as_view(), name="history_list"),
    path("api/trash/", views.trash_list, name="trash_list"),
    path(
        "api/trash/<slug:entity>/<int:pk>/restore/",
        views.trash_restore,
        name="trash_restore",
    ),
]
