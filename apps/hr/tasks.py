"""
Celery tasks for payroll.
"""

import logging

from django.utils import timezone

from celery import shared_task

from apps.core.models import Tenant

from .services import generate_monthly_payroll

logger = logging.getLogger(__name__)


@shared_task(
    name="apps.hr.tasks.generate_payroll_for_all_tenants",
    bind=True,
    max_retries=3,
    default_retry_delay=600,  # 10 minutes
)
def generate_payroll_for_all_tenants(self, month=None, year=None):
    """
    Queue the month's salary payments for every active tenant.

    Returns:
        dict: tenant id -> {"created": n, "skipped": n}
    """
    today = timezone.localdate()
    month = month or today.month
    year = year or today.year

    try:
        results = {}
        for tenant in Tenant.objects.filter(status=Tenant.ACTIVE):
            results[str(tenant.pk)] = generate_monthly_payroll(tenant, month, year)

        logger.info(f"Payroll {year}-{month:02d} generated for {len(results)} tenants")
        return results

    except Exception as e:
        logger.exception(f"Error generating payroll: {e}")
        raise self.retry(exc=e)
