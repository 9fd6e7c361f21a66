"""
HR services: payroll generation, salary payment and request reviews.
"""

import logging

from django.contrib.auth import get_user_model
from django.db import transaction

from apps.accounting import services as accounting_services
from apps.accounting.models import Expense
from apps.core.exceptions import BadRequest, InvalidStateError
from apps.core.history import record_history

from .models import EmployeeProfile, SalaryPayment

logger = logging.getLogger(__name__)

User = get_user_model()

SALARY_EXPENSE_CATEGORY = "Salary"


@transaction.atomic
def generate_monthly_payroll(tenant, month, year, user=None):
    """
    Create a pending salary payment for every active employee with an active
    salary structure, skipping those already paid or queued for the month.

    Returns:
        dict: ``{"created": n, "skipped": n}``
    """
    if not 1 <= int(month) <= 12:
        raise BadRequest("month must be between 1 and 12.")

    profiles = EmployeeProfile.objects.filter(
        tenant=tenant,
        user__is_active=True,
        salary_structure__isnull=False,
        salary_structure__is_active=True,
        salary_structure__del_flag=False,
    ).select_related("user", "salary_structure")

    created = skipped = 0
    for profile in profiles:
        structure = profile.salary_structure
        _, was_created = SalaryPayment.objects.get_or_create(
            employee=profile.user,
            pay_month=month,
            pay_year=year,
            defaults={
                "tenant": tenant,
                "salary_structure": structure,
                "basic_salary": structure.basic_salary,
                "total_allowances": structure.allowance_total(),
                "total_deductions": structure.deduction_total(),
                "gross_salary": structure.gross(),
                "net_salary": structure.net(),
            },
        )
        if was_created:
            created += 1
        else:
            skipped += 1

    record_history(
        tenant,
        user,
        "PAYROLL_GENERATED",
        None,
        f"Payroll for {year}-{int(month):02d}: {created} created, {skipped} skipped",
        month=month,
        year=year,
    )
    return {"created": created, "skipped": skipped}


@transaction.atomic
def pay_salary(payment, user, account=None, payment_method="cash", bonus=None):
    """
    Pay a pending salary: records a "Salary" expense for net pay plus bonus,
    deducted from ``account`` when one is given.
    """
    payment = SalaryPayment.objects.select_for_update().select_related("employee").get(
        pk=payment.pk
    )
    if payment.status != SalaryPayment.PENDING:
        raise InvalidStateError(
            f"Salary for {payment.employee.username} {payment.pay_year}-{payment.pay_month:02d} "
            f"is already {payment.status}."
        )
    if bonus is not None:
        payment.bonus = bonus

    expense = accounting_services.record_expense(
        payment.tenant,
        user,
        SALARY_EXPENSE_CATEGORY,
        payment.amount_due,
        account=account,
        status=Expense.PAID,
        description=(
            f"Salary {payment.pay_year}-{payment.pay_month:02d} for "
            f"{payment.employee.get_full_name() or payment.employee.username}"
        ),
    )
    payment.mark_paid(user, account=account, payment_method=payment_method)
    payment.expense = expense
    payment.save()

    record_history(
        payment.tenant,
        user,
        "SALARY_PAID",
        payment,
        f"Paid {payment.amount_due} to {payment.employee.username}",
        expense=expense.reference,
    )
    logger.info(f"Salary payment {payment.pk} paid by {user} ({payment.amount_due})")
    return payment


@transaction.atomic
def review_request(request_obj, user, approve, note=""):
    """Approve or reject a pending salary or leave request."""
    request_obj = type(request_obj).objects.select_for_update().get(pk=request_obj.pk)
    if request_obj.status != request_obj.PENDING:
        raise InvalidStateError(f"This request has already been {request_obj.status}.")

    if approve:
        request_obj.approve(user, note)
    else:
        request_obj.reject(user, note)
    request_obj.save()

    record_history(
        request_obj.tenant,
        user,
        f"{type(request_obj).__name__.upper()}_{request_obj.status.upper()}",
        request_obj,
        f"{request_obj} {request_obj.status}",
    )
    return request_obj


@transaction.atomic
def assign_employee(employee, user, **fields):
    """
    Create or update the employee profile of a staff user (department,
    salary_structure, designation, joining_date).
    """
    if employee.tenant_id is None:
        raise BadRequest("Platform users cannot have an employee profile.")
    for related in ("department", "salary_structure"):
        value = fields.get(related)
        if value is not None and value.tenant_id != employee.tenant_id:
            raise BadRequest(f"{related.replace('_', ' ').capitalize()} belongs to another business.")

    profile, _ = EmployeeProfile.objects.get_or_create(
        user=employee, defaults={"tenant": employee.tenant}
    )
    for field, value in fields.items():
        setattr(profile, field, value)
    profile.save()

    record_history(
        employee.tenant,
        user,
        "EMPLOYEE_PROFILE_UPDATED",
        profile,
        f"Updated HR details for {employee.username}",
        fields=sorted(fields.keys()),
    )
    return profile
