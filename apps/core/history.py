"""
Audit history and soft-delete helpers.

Every create/update/delete/restore and workflow transition performed through
the services is written to the ``History`` table so owners can review who
changed what.
"""

import logging

from django.db import transaction

logger = logging.getLogger(__name__)


def entity_label(instance):
    """Upper snake-case entity name used in action types, e.g. ``STOCK_TRANSFER``."""
    name = instance.__class__.__name__
    label = "".join(f"_{c}" if c.isupper() and i else c for i, c in enumerate(name))
    return label.upper()


def record_history(tenant, actor, action_type, entity=None, message="", **metadata):
    """
    Write an audit entry.

    Args:
        tenant: Tenant the action belongs to
        actor: User who performed the action (may be None for system tasks)
        action_type: e.g. ``PRODUCT_CREATED``
        entity: Model instance the action applies to (optional)
        message: Human readable description
        **metadata: Extra JSON-serializable context

    Returns:
        History: The created entry
    """
    from apps.core.models import History

    entry = History.objects.create(
        tenant=tenant,
        actor=actor if actor is not None and actor.is_authenticated else None,
        action_type=action_type,
        entity_type=entity_label(entity) if entity is not None else "",
        entity_id=str(entity.pk) if entity is not None else "",
        message=message or action_type.replace("_", " ").capitalize(),
        metadata=metadata,
    )
    logger.info(
        f"{action_type} tenant={getattr(tenant, 'pk', tenant)} "
        f"actor={getattr(actor, 'username', None)} entity={entry.entity_type}:{entry.entity_id}"
    )
    return entry


@transaction.atomic
def soft_delete_instance(instance, user, message=None):
    """Soft-delete ``instance`` and log ``<ENTITY>_DELETED``."""
    instance.soft_delete(user)
    record_history(
        instance.tenant,
        user,
        f"{entity_label(instance)}_DELETED",
        instance,
        message or f"Deleted {instance}",
    )
    return instance


@transaction.atomic
def restore_instance(instance, user, message=None):
    """Undo a soft delete and log ``<ENTITY>_RESTORED``."""
    instance.restore(user)
    record_history(
        instance.tenant,
        user,
        f"{entity_label(instance)}_RESTORED",
        instance,
        message or f"Restored {instance}",
    )
    return instance


def trashable_models():
    """
    Soft-deletable models exposed through the trash endpoints, keyed by
    their URL name.
    """
    from apps.accounting.models import Account, Expense, Income
    from apps.core.models import Warehouse
    from apps.hr.models import Department, SalaryStructure
    from apps.inventory.models import Brand, Category, Product, Unit
    from apps.procurement.models import Supplier
    from apps.sales.models import Customer
    from apps.transport.models import Transport

    return {
        "products": Product,
        "categories": Category,
        "brands": Brand,
        "units": Unit,
        "warehouses": Warehouse,
        "customers": Customer,
        "suppliers": Supplier,
        "transports": Transport,
        "departments": Department,
        "salary-structures": SalaryStructure,
        "accounts": Account,
        "expenses": Expense,
        "incomes": Income,
    }
