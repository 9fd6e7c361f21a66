"""
URL configuration for transport app.
"""

from django.urls import path

from . import views

app_name = "transport"

urlpatterns = [
    path("api/transports/", views.TransportListCreateView.as_view(), name="transport_list"),
    path(
        "api/transports/<int:pk>/",
        views.TransportDetailView.as_view(),
        name="transport_detail",
    ),
    path("api/shipments/", views.ShipmentListCreateView.as_view(), name="shipment_list"),
    path(
        "api/shipments/track/<str:tracking_number>/",
        views.track_shipment,
        name="shipment_track",
    ),
    path("api/shipments/<int:pk>/", views.ShipmentDetailView.as_view(), name="shipment_detail"),
    path("api/shipments/<int:pk>/dispatch/", views.dispatch_shipment, name="shipment_dispatch"),
    path("api/shipments/<int:pk>/updates/", views.add_tracking_update, name="shipment_update"),
    path("api/shipments/<int:pk>/deliver/", views.deliver_shipment, name="shipment_deliver"),
    path("api/shipments/<int:pk>/cancel/", views.cancel_shipment, name="shipment_cancel"),
]
