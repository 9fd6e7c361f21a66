"""
URL patterns for the reporting app.
"""

from django.urls import path

from . import views

app_name = "reporting"

urlpatterns = [
    path("api/dashboard/", views.dashboard, name="dashboard"),
    # Profit
    path("api/reports/profit-loss/", views.profit_and_loss, name="profit_and_loss"),
    path("api/reports/profit-trends/", views.profit_trends, name="profit_trends"),
    path(
        "api/reports/top-profitable-products/",
        views.top_profitable_products,
        name="top_profitable_products",
    ),
    # Sales and purchases
    path("api/reports/product-sell/", views.product_sell_report, name="product_sell"),
    path("api/reports/product-purchase/", views.product_purchase_report, name="product_purchase"),
    path("api/reports/purchase-sale/", views.purchase_sale_report, name="purchase_sale"),
    path("api/reports/trending-products/", views.trending_products, name="trending_products"),
    path("api/reports/items/", views.items_report, name="items"),
    path("api/reports/register/", views.register_report, name="register"),
    path("api/reports/sell-returns/", views.sell_return_report, name="sell_returns"),
    path("api/reports/purchase-returns/", views.purchase_return_report, name="purchase_returns"),
    # Expenses
    path("api/reports/expenses/", views.expenses_report, name="expenses"),
]
