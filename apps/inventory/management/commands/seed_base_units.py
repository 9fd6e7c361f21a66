"""
Management command to seed the standard base units (Piece, Liter, Kilogram, ...)
for one tenant or every active tenant.

Usage:
    python manage.py seed_base_units
    python manage.py seed_base_units --tenant <slug>
"""

from django.core.management.base import BaseCommand, CommandError

from apps.core.models import Tenant
from apps.inventory.services import seed_base_units


class Command(BaseCommand):
    help = "Create the standard base units of measure for tenants"

    def add_arguments(self, parser):
        parser.add_argument("--tenant", help="Tenant slug; all active tenants when omitted")

    def handle(self, *args, **options):
        tenants = Tenant.objects.filter(status=Tenant.ACTIVE)
        if options["tenant"]:
            tenants = tenants.filter(slug=options["tenant"])
            if not tenants.exists():
                raise CommandError(f"No active tenant with slug {options['tenant']!r}")

        for tenant in tenants:
            created = seed_base_units(tenant)
            if created:
                self.stdout.write(
                    self.style.SUCCESS(f"✓ Created {created} units for {tenant.company_name}")
                )
            else:
                self.stdout.write(self.style.WARNING(f"Units already seeded for {tenant.company_name}"))
