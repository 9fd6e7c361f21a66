"""
URL configuration for inventory app.
"""

from django.urls import path

from . import views

app_name = "inventory"

urlpatterns = [
    # Catalogue
    path("api/inventory/categories/", views.CategoryListCreateView.as_view(), name="category_list"),
    path(
        "api/inventory/categories/<int:pk>/",
        views.CategoryDetailView.as_view(),
        name="category_detail",
    ),
    path("api/inventory/brands/", views.BrandListCreateView.as_view(), name="brand_list"),
    path("api/inventory/brands/<int:pk>/", views.BrandDetailView.as_view(), name="brand_detail"),
    path("api/inventory/units/", views.UnitListCreateView.as_view(), name="unit_list"),
    path("api/inventory/units/seed/", views.seed_units, name="unit_seed"),
    path("api/inventory/units/<int:pk>/", views.UnitDetailView.as_view(), name="unit_detail"),
    path("api/inventory/products/", views.ProductListCreateView.as_view(), name="product_list"),
    path("api/inventory/products/lookup/", views.lookup_by_barcode, name="product_lookup"),
    path(
        "api/inventory/products/<int:pk>/",
        views.ProductDetailView.as_view(),
        name="product_detail",
    ),
    path(
        "api/inventory/products/<int:pk>/batches/",
        views.ProductBatchListView.as_view(),
        name="product_batches",
    ),
    # Stock
    path("api/inventory/stock/", views.stock, name="stock"),
    path("api/inventory/stock/value/", views.stock_value, name="stock_value"),
    path(
        "api/inventory/adjustments/",
        views.StockAdjustmentListCreateView.as_view(),
        name="adjustment_list",
    ),
    # Transfers
    path(
        "api/inventory/transfers/",
        views.StockTransferListCreateView.as_view(),
        name="transfer_list",
    ),
    path(
        "api/inventory/transfers/<int:pk>/",
        views.StockTransferDetailView.as_view(),
        name="transfer_detail",
    ),
    path(
        "api/inventory/transfers/<int:pk>/approve/",
        views.approve_transfer,
        name="transfer_approve",
    ),
    path(
        "api/inventory/transfers/<int:pk>/complete/",
        views.complete_transfer,
        name="transfer_complete",
    ),
    path(
        "api/inventory/transfers/<int:pk>/cancel/",
        views.cancel_transfer,
        name="transfer_cancel",
    ),
    # Reports
    path(
        "api/inventory/reports/valuation/",
        views.inventory_valuation_report,
        name="valuation_report",
    ),
    path(
        "api/inventory/reports/low-stock/",
        views.low_stock_alert_report,
        name="low_stock_report",
    ),
    path(
        "api/inventory/reports/expiring/",
        views.expiring_batches_report,
        name="expiring_report",
    ),
]
