"""
URL configuration for HR app.
"""

from django.urls import path

from . import views

app_name = "hr"

urlpatterns = [
    path("api/hr/departments/", views.DepartmentListCreateView.as_view(), name="department_list"),
    path(
        "api/hr/departments/<int:pk>/",
        views.DepartmentDetailView.as_view(),
        name="department_detail",
    ),
    path(
        "api/hr/salary-structures/",
        views.SalaryStructureListCreateView.as_view(),
        name="structure_list",
    ),
    path(
        "api/hr/salary-structures/<int:pk>/",
        views.SalaryStructureDetailView.as_view(),
        name="structure_detail",
    ),
    path("api/hr/employees/", views.EmployeeProfileListView.as_view(), name="employee_list"),
    path(
        "api/hr/employees/<int:user_id>/profile/",
        views.employee_profile,
        name="employee_profile",
    ),
    # Payroll
    path("api/hr/payroll/", views.SalaryPaymentListView.as_view(), name="payroll_list"),
    path("api/hr/payroll/generate/", views.generate_payroll, name="payroll_generate"),
    path("api/hr/payroll/<int:pk>/pay/", views.pay_salary, name="payroll_pay"),
    # Requests
    path(
        "api/hr/salary-requests/",
        views.SalaryRequestListCreateView.as_view(),
        name="salary_request_list",
    ),
    path(
        "api/hr/salary-requests/<int:pk>/approve/",
        views.approve_salary_request,
        name="salary_request_approve",
    ),
    path(
        "api/hr/salary-requests/<int:pk>/reject/",
        views.reject_salary_request,
        name="salary_request_reject",
    ),
    path(
        "api/hr/leave-requests/",
        views.LeaveRequestListCreateView.as_view(),
        name="leave_request_list",
    ),
    path(
        "api/hr/leave-requests/<int:pk>/approve/",
        views.approve_leave_request,
        name="leave_request_approve",
    ),
    path(
        "api/hr/leave-requests/<int:pk>/reject/",
        views.reject_leave_request,
        name="leave_request_reject",
    ),
    # Awards
    path("api/hr/awards/", views.AwardListCreateView.as_view(), name="award_list"),
    path("api/hr/awards/<int:pk>/", views.AwardDetailView.as_view(), name="award_detail"),
]
