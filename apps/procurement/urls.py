"""
URL configuration for procurement app.
"""

from django.urls import path

from . import views

app_name = "procurement"

urlpatterns = [
    # Suppliers
    path("api/suppliers/", views.SupplierListCreateView.as_view(), name="supplier_list"),
    path("api/suppliers/<int:pk>/", views.SupplierDetailView.as_view(), name="supplier_detail"),
    # Purchases
    path("api/purchases/", views.PurchaseListCreateView.as_view(), name="purchase_list"),
    path("api/purchases/returns/", views.PurchaseReturnListView.as_view(), name="return_list"),
    path("api/purchases/<int:pk>/", views.PurchaseDetailView.as_view(), name="purchase_detail"),
    path("api/purchases/<int:pk>/receive/", views.receive_purchase, name="purchase_receive"),
    path("api/purchases/<int:pk>/cancel/", views.cancel_purchase, name="purchase_cancel"),
    path("api/purchases/<int:pk>/return/", views.return_purchase, name="purchase_return"),
]
