"""
Transport app configuration.
"""

from django.apps import AppConfig


class TransportConfig(AppConfig):
    """Configuration for the transport app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.transport"
    verbose_name = "Transport"
