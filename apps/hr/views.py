"""
API views for HR: departments, salary structures, employee profiles,
payroll, salary and leave requests, and awards.
"""

from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404

from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core.decorators import permission_required
from apps.core.exceptions import Forbidden
from apps.core.mixins import (
    ActiveFilterMixin,
    AuditedCreateMixin,
    AuditedUpdateMixin,
    SoftDeleteMixin,
    TenantScopedMixin,
)
from apps.core.permissions import HasTenantAccess

from . import services
from .models import (
    Award,
    Department,
    EmployeeProfile,
    LeaveRequest,
    SalaryPayment,
    SalaryRequest,
    SalaryStructure,
)
from .serializers import (
    AwardSerializer,
    DepartmentSerializer,
    EmployeeProfileSerializer,
    LeaveRequestSerializer,
    PayrollGenerateSerializer,
    ReviewSerializer,
    SalaryPaymentSerializer,
    SalaryPaySerializer,
    SalaryRequestSerializer,
    SalaryStructureSerializer,
)

User = get_user_model()

HR_PERMISSIONS = {
    "GET": "viewHr",
    "POST": "addHr",
    "PUT": "editHr",
    "PATCH": "editHr",
    "DELETE": "deleteHr",
}


# Departments and salary structures


class DepartmentListCreateView(TenantScopedMixin, AuditedCreateMixin, generics.ListCreateAPIView):
    model = Department
    serializer_class = DepartmentSerializer
    required_permissions = HR_PERMISSIONS
    search_fields = ("name",)


class DepartmentDetailView(
    TenantScopedMixin, AuditedUpdateMixin, SoftDeleteMixin, generics.RetrieveUpdateDestroyAPIView
):
    model = Department
    serializer_class = DepartmentSerializer
    required_permissions = HR_PERMISSIONS


class SalaryStructureListCreateView(
    ActiveFilterMixin, TenantScopedMixin, AuditedCreateMixin, generics.ListCreateAPIView
):
    model = SalaryStructure
    serializer_class = SalaryStructureSerializer
    required_permissions = HR_PERMISSIONS
    search_fields = ("name",)


class SalaryStructureDetailView(
    TenantScopedMixin, AuditedUpdateMixin, SoftDeleteMixin, generics.RetrieveUpdateDestroyAPIView
):
    model = SalaryStructure
    serializer_class = SalaryStructureSerializer
    required_permissions = HR_PERMISSIONS


# Employees


class EmployeeProfileListView(TenantScopedMixin, generics.ListAPIView):
    model = EmployeeProfile
    serializer_class = EmployeeProfileSerializer
    required_permission = "viewHr"
    search_fields = ("user__username", "user__first_name", "user__last_name", "designation")

    def get_base_queryset(self):
        return EmployeeProfile.objects.select_related("user", "department", "salary_structure")

    def filter_queryset_params(self, queryset):
        department = self.request.query_params.get("department")
        if department:
            queryset = queryset.filter(department_id=department)
        return queryset


@api_view(["GET", "PUT"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("viewHr")
def employee_profile(request, user_id):
    """
    HR details of one staff member.

    PUT assigns department, salary structure, designation and joining date.
    """
    employee = get_object_or_404(User, pk=user_id, tenant=request.user.tenant)

    if request.method == "GET":
        profile = get_object_or_404(EmployeeProfile, user=employee)
        return Response(EmployeeProfileSerializer(profile).data)

    if not request.user.has_role_permission("editHr"):
        raise Forbidden("Your role does not allow this action.", details={"required": ["editHr"]})
    serializer = EmployeeProfileSerializer(data=request.data, context={"request": request}, partial=True)
    serializer.is_valid(raise_exception=True)
    profile = services.assign_employee(employee, request.user, **serializer.validated_data)
    return Response(EmployeeProfileSerializer(profile).data)


# Payroll


class SalaryPaymentListView(TenantScopedMixin, generics.ListAPIView):
    """
    Salary payments, filterable by ``month``, ``year``, ``status`` and ``employee``.
    """

    model = SalaryPayment
    serializer_class = SalaryPaymentSerializer
    required_permission = "viewHr"

    def get_base_queryset(self):
        return SalaryPayment.objects.select_related("employee", "expense")

    def filter_queryset_params(self, queryset):
        params = self.request.query_params
        if params.get("month"):
            queryset = queryset.filter(pay_month=params["month"])
        if params.get("year"):
            queryset = queryset.filter(pay_year=params["year"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("employee"):
            queryset = queryset.filter(employee_id=params["employee"])
        return queryset


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("manageHr")
def generate_payroll(request):
    """Queue pending salary payments for ``{"month": m, "year": y}``."""
    serializer = PayrollGenerateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    result = services.generate_monthly_payroll(
        request.user.tenant,
        serializer.validated_data["month"],
        serializer.validated_data["year"],
        request.user,
    )
    return Response(result, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("manageHr")
def pay_salary(request, pk):
    payment = get_object_or_404(SalaryPayment, pk=pk, tenant=request.user.tenant)
    serializer = SalaryPaySerializer(data=request.data, context={"request": request})
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    payment = services.pay_salary(
        payment,
        request.user,
        account=data.get("account"),
        payment_method=data["payment_method"],
        bonus=data.get("bonus"),
    )
    return Response(SalaryPaymentSerializer(payment).data)


# Salary and leave requests


class _RequestListCreateView(TenantScopedMixin, generics.ListCreateAPIView):
    """
    HR staff see every request; other staff see and file only their own.
    """

    required_permission = None

    def _is_hr(self):
        return self.request.user.has_role_permission("viewHr")

    def filter_queryset_params(self, queryset):
        params = self.request.query_params
        if not self._is_hr():
            queryset = queryset.filter(employee=self.request.user)
        elif params.get("employee"):
            queryset = queryset.filter(employee_id=params["employee"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        return queryset

    def perform_create(self, serializer):
        employee = serializer.validated_data.get("employee") or self.request.user
        if employee != self.request.user and not self.request.user.has_role_permission("addHr"):
            raise Forbidden("You can only file requests for yourself.")
        serializer.save(tenant=self.request.user.tenant, employee=employee)


class SalaryRequestListCreateView(_RequestListCreateView):
    model = SalaryRequest
    serializer_class = SalaryRequestSerializer


class LeaveRequestListCreateView(_RequestListCreateView):
    model = LeaveRequest
    serializer_class = LeaveRequestSerializer

    def filter_queryset_params(self, queryset):
        queryset = super().filter_queryset_params(queryset)
        leave_type = self.request.query_params.get("leave_type")
        if leave_type:
            queryset = queryset.filter(leave_type=leave_type)
        return queryset


def _review(request, model, serializer_class, pk, approve):
    request_obj = get_object_or_404(model, pk=pk, tenant=request.user.tenant)
    review = ReviewSerializer(data=request.data)
    review.is_valid(raise_exception=True)
    request_obj = services.review_request(
        request_obj, request.user, approve, note=review.validated_data["note"]
    )
    return Response(serializer_class(request_obj).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("editHr", "manageHr")
def approve_salary_request(request, pk):
    return _review(request, SalaryRequest, SalaryRequestSerializer, pk, approve=True)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("editHr", "manageHr")
def reject_salary_request(request, pk):
    return _review(request, SalaryRequest, SalaryRequestSerializer, pk, approve=False)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("editHr", "manageHr")
def approve_leave_request(request, pk):
    return _review(request, LeaveRequest, LeaveRequestSerializer, pk, approve=True)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasTenantAccess])
@permission_required("editHr", "manageHr")
def reject_leave_request(request, pk):
    return _review(request, LeaveRequest, LeaveRequestSerializer, pk, approve=False)


# Awards


class AwardListCreateView(TenantScopedMixin, AuditedCreateMixin, generics.ListCreateAPIView):
    model = Award
    serializer_class = AwardSerializer
    required_permissions = HR_PERMISSIONS
    search_fields = ("title", "employee__username")

    def get_base_queryset(self):
        return Award.objects.select_related("employee")


class AwardDetailView(TenantScopedMixin, AuditedUpdateMixin, generics.RetrieveUpdateDestroyAPIView):
    model = Award
    serializer_class = AwardSerializer
    required_permissions = HR_PERMISSIONS
