"""
Celery configuration for the RetailOps platform.
"""

import os

from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.development")

app = Celery("retailops")

# namespace='CELERY' means all celery-related configuration keys
# should have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django apps.
app.autodiscover_tasks()

# Celery Beat Schedule for periodic tasks
app.conf.beat_schedule = {
    # Low stock scan every morning at 6:00 AM
    "scan-low-stock": {
        "task": "apps.inventory.tasks.scan_low_stock",
        "schedule": crontab(hour=6, minute=0),
        "options": {"queue": "inventory"},
    },
    # Generate pending salary payments on the 1st of each month
    "generate-monthly-payroll": {
        "task": "apps.hr.tasks.generate_payroll_for_all_tenants",
        "schedule": crontab(hour=1, minute=0, day_of_month=1),
        "options": {"queue": "hr"},
    },
}

app.conf.task_routes = {
    "apps.inventory.tasks.*": {"queue": "inventory"},
    "apps.hr.tasks.*": {"queue": "hr"},
}


@app.task(bind=True, ignore_result=True)
def debug_task(self):
    """Debug task to test Celery configuration."""
    print(f"Request: {self.request!r}")
