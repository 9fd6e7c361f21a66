"""
URL configuration for sales app.
"""

from django.urls import path

from . import views

app_name = "sales"

urlpatterns = [
    # POS
    path("api/pos/checkout/", views.pos_checkout, name="pos_checkout"),
    path("api/pos/calculate-totals/", views.pos_calculate_totals, name="pos_calculate_totals"),
    path("api/pos/products/search/", views.pos_product_search, name="pos_product_search"),
    # Sales
    path("api/sales/", views.SaleListView.as_view(), name="sale_list"),
    path("api/sales/returns/", views.SellReturnListView.as_view(), name="return_list"),
    path(
        "api/sales/returns/<int:pk>/complete/",
        views.complete_return,
        name="return_complete",
    ),
    path("api/sales/returns/<int:pk>/reject/", views.reject_return, name="return_reject"),
    path("api/sales/<int:pk>/", views.SaleDetailView.as_view(), name="sale_detail"),
    path("api/sales/<int:pk>/void/", views.void_sale, name="sale_void"),
    path("api/sales/<int:pk>/return/", views.return_sale, name="sale_return"),
    path("api/sales/<int:pk>/receipt/", views.sale_receipt, name="sale_receipt"),
    # Customers
    path("api/customers/", views.CustomerListCreateView.as_view(), name="customer_list"),
    path(
        "api/customers/<int:pk>/",
        views.CustomerDetailView.as_view(),
        name="customer_detail",
    ),
    # Cash drawer
    path("api/drawer/events/", views.CashDrawerEventListView.as_view(), name="drawer_events"),
    path("api/drawer/events/record/", views.record_drawer_event, name="drawer_record"),
    path("api/drawer/summary/", views.drawer_summary, name="drawer_summary"),
]
