"""
Celery tasks for inventory monitoring.
"""

import logging

from celery import shared_task

from apps.core.models import Tenant

from .reports import InventoryReportGenerator

logger = logging.getLogger(__name__)


@shared_task(
    name="apps.inventory.tasks.scan_low_stock",
    bind=True,
    max_retries=3,
    default_retry_delay=300,  # 5 minutes
)
def scan_low_stock(self, tenant_id=None):
    """
    Check every active tenant (or one tenant) for low stock.

    Logs one warning per tenant with alerts.

    Returns:
        dict: tenant id -> number of products needing attention
    """
    try:
        tenants = Tenant.objects.filter(status=Tenant.ACTIVE)
        if tenant_id:
            tenants = tenants.filter(pk=tenant_id)

        results = {}
        for tenant in tenants:
            report = InventoryReportGenerator(tenant).get_low_stock_alert_report()
            total = report["summary"]["total_alerts"]
            results[str(tenant.pk)] = total
            if total:
                names = ", ".join(item["name"] for item in report["items"][:10])
                logger.warning(
                    f"Low stock for {tenant.company_name}: "
                    f"{report['summary']['low_stock_count']} low, "
                    f"{report['summary']['out_of_stock_count']} out of stock ({names})"
                )

        logger.info(f"Low stock scan finished for {len(results)} tenants")
        return results

    except Exception as e:
        logger.exception(f"Error scanning low stock: {e}")
        raise self.retry(exc=e)
