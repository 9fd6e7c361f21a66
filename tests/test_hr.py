"""
Tests for salary structures, payroll and staff requests.
"""

from decimal import Decimal

from django.urls import reverse

import pytest
from rest_framework import status

from apps.accounting.models import Expense
from apps.core.exceptions import BadRequest, InvalidStateError
from apps.hr import services
from apps.hr.models import (
    Department,
    EmployeeProfile,
    LeaveRequest,
    SalaryPayment,
    SalaryRequest,
    SalaryStructure,
)
from apps.hr.tasks import generate_payroll_for_all_tenants


@pytest.fixture
def structure(tenant):
    return SalaryStructure.objects.create(
        tenant=tenant,
        name="Cashier",
        basic_salary=Decimal("1000.00"),
        allowances=[{"name": "Housing", "type": "percentage", "value": 10}],
        deductions=[{"name": "Tax", "type": "fixed", "value": 50}],
    )


@pytest.fixture
def employee(staff_user, structure):
    EmployeeProfile.objects.create(
        tenant=staff_user.tenant, user=staff_user, salary_structure=structure, designation="Cashier"
    )
    return staff_user


@pytest.mark.django_db
class TestSalaryStructure:
    """Test salary component arithmetic."""

    def test_totals(self, structure):
        assert structure.allowance_total() == Decimal("100.00")
        assert structure.deduction_total() == Decimal("50.00")
        assert structure.gross() == Decimal("1100.00")
        assert structure.net() == Decimal("1050.00")


@pytest.mark.django_db
class TestPayroll:
    """Test payroll generation and payment."""

    def test_generate_is_idempotent(self, tenant, employee):
        assert services.generate_monthly_payroll(tenant, 3, 2024) == {"created": 1, "skipped": 0}
        assert services.generate_monthly_payroll(tenant, 3, 2024) == {"created": 0, "skipped": 1}

        payment = SalaryPayment.objects.get(employee=employee)
        assert payment.net_salary == Decimal("1050.00")
        assert payment.status == SalaryPayment.PENDING

    def test_invalid_month(self, tenant):
        with pytest.raises(BadRequest):
            services.generate_monthly_payroll(tenant, 13, 2024)

    def test_pay_books_salary_expense(self, tenant, tenant_user, employee, cash_account):
        services.generate_monthly_payroll(tenant, 3, 2024)
        payment = SalaryPayment.objects.get(employee=employee)

        payment = services.pay_salary(
            payment, tenant_user, account=cash_account, bonus=Decimal("50.00")
        )

        assert payment.status == SalaryPayment.PAID
        assert payment.expense.category == "Salary"
        assert payment.expense.amount == Decimal("1100.00")
        assert payment.expense.status == Expense.PAID
        cash_account.refresh_from_db()
        assert cash_account.balance == Decimal("-100.00")

    def test_cannot_pay_twice(self, tenant, tenant_user, employee):
        services.generate_monthly_payroll(tenant, 3, 2024)
        payment = SalaryPayment.objects.get(employee=employee)
        services.pay_salary(payment, tenant_user)
        with pytest.raises(InvalidStateError):
            services.pay_salary(payment, tenant_user)

    def test_pay_records_payment_method(self, tenant, tenant_user, employee):
        services.generate_monthly_payroll(tenant, 3, 2024)
        payment = SalaryPayment.objects.get(employee=employee)

        payment = services.pay_salary(payment, tenant_user, payment_method="bank")

        payment.refresh_from_db()
        assert payment.status == SalaryPayment.PAID
        assert payment.payment_method == "bank"

    def test_zero_salary_cannot_be_paid(self, tenant, tenant_user, staff_user):
        unpaid = SalaryStructure.objects.create(
            tenant=tenant, name="Volunteer", basic_salary=Decimal("0.00")
        )
        EmployeeProfile.objects.create(tenant=tenant, user=staff_user, salary_structure=unpaid)
        services.generate_monthly_payroll(tenant, 3, 2024)
        payment = SalaryPayment.objects.get(employee=staff_user)

        with pytest.raises(BadRequest):
            services.pay_salary(payment, tenant_user)

        payment.refresh_from_db()
        assert payment.status == SalaryPayment.PENDING
        assert not Expense.objects.exists()

    def test_pay_via_api(self, authenticated_client, tenant, employee, cash_account):
        services.generate_monthly_payroll(tenant, 3, 2024)
        payment = SalaryPayment.objects.get(employee=employee)

        response = authenticated_client.post(
            reverse("hr:payroll_pay", kwargs={"pk": payment.pk}),
            {"account": cash_account.pk, "payment_method": "mobile"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == SalaryPayment.PAID
        assert response.data["expense_reference"].startswith("EXP-")
        payment.refresh_from_db()
        assert payment.payment_method == "mobile"
        assert payment.account == cash_account

    def test_task_runs_for_active_tenants(self, tenant, employee):
        results = generate_payroll_for_all_tenants.apply(kwargs={"month": 4, "year": 2024}).get()
        assert results[str(tenant.pk)] == {"created": 1, "skipped": 0}


@pytest.mark.django_db
class TestEmployees:
    """Test employee profile assignment."""

    def test_assign_rejects_foreign_department(self, tenant_user, staff_user, other_tenant):
        foreign = Department.objects.create(tenant=other_tenant, name="Elsewhere")
        with pytest.raises(BadRequest):
            services.assign_employee(staff_user, tenant_user, department=foreign)

    def test_assign_via_api(self, authenticated_client, tenant, staff_user, structure):
        department = Department.objects.create(tenant=tenant, name="Front")
        response = authenticated_client.put(
            reverse("hr:employee_profile", kwargs={"user_id": staff_user.pk}),
            {"department": department.pk, "salary_structure": structure.pk, "designation": "Lead"},
            format="json",
        )
        assert response.status_code == status.HTTP_200_OK
        profile = EmployeeProfile.objects.get(user=staff_user)
        assert profile.department == department
        assert profile.designation == "Lead"


@pytest.mark.django_db
class TestRequests:
    """Test salary and leave requests."""

    def test_staff_files_own_request(self, staff_client, staff_user):
        response = staff_client.post(
            reverse("hr:salary_request_list"),
            {"amount": "200.00", "reason": "Advance"},
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert SalaryRequest.objects.get().employee == staff_user

    def test_staff_cannot_file_for_others(self, staff_client, tenant_user):
        response = staff_client.post(
            reverse("hr:salary_request_list"),
            {"employee": tenant_user.pk, "amount": "200.00"},
            format="json",
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_leave_end_before_start(self, staff_client):
        response = staff_client.post(
            reverse("hr:leave_request_list"),
            {"leave_type": "sick", "start_date": "2024-05-10", "end_date": "2024-05-08"},
            format="json",
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_owner_approves_once(self, authenticated_client, tenant, staff_user):
        leave = LeaveRequest.objects.create(
            tenant=tenant,
            employee=staff_user,
            start_date="2024-05-10",
            end_date="2024-05-12",
        )
        url = reverse("hr:leave_request_approve", kwargs={"pk": leave.pk})

        response = authenticated_client.post(url, {"note": "Enjoy"}, format="json")
        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == LeaveRequest.APPROVED

        again = authenticated_client.post(url, {}, format="json")
        assert again.status_code == status.HTTP_409_CONFLICT

    def test_cashier_cannot_review(self, staff_client, tenant, staff_user):
        request_obj = SalaryRequest.objects.create(
            tenant=tenant, employee=staff_user, amount=Decimal("10")
        )
        response = staff_client.post(
            reverse("hr:salary_request_reject", kwargs={"pk": request_obj.pk}), {}, format="json"
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN
