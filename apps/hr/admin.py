"""
Django admin configuration for HR models.
"""

from django.contrib import admin

from .models import (
    Award,
    Department,
    EmployeeProfile,
    LeaveRequest,
    SalaryPayment,
    SalaryRequest,
    SalaryStructure,
)


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ["name", "tenant", "head", "del_flag"]
    search_fields = ["name"]


@admin.register(SalaryStructure)
class SalaryStructureAdmin(admin.ModelAdmin):
    list_display = ["name", "tenant", "basic_salary", "is_active"]
    list_filter = ["is_active"]


@admin.register(EmployeeProfile)
class EmployeeProfileAdmin(admin.ModelAdmin):
    list_display = ["user", "tenant", "department", "salary_structure", "designation"]
    search_fields = ["user__username", "designation"]


@admin.register(SalaryPayment)
class SalaryPaymentAdmin(admin.ModelAdmin):
    list_display = ["employee", "pay_year", "pay_month", "net_salary", "bonus", "status", "paid_at"]
    list_filter = ["status", "pay_year", "pay_month"]
    readonly_fields = ["paid_at", "expense", "created_at", "updated_at"]


@admin.register(SalaryRequest)
class SalaryRequestAdmin(admin.ModelAdmin):
    list_display = ["employee", "amount", "status", "reviewed_by", "created_at"]
    list_filter = ["status"]


@admin.register(LeaveRequest)
class LeaveRequestAdmin(admin.ModelAdmin):
    list_display = ["employee", "leave_type", "start_date", "end_date", "status"]
    list_filter = ["status", "leave_type"]


@admin.register(Award)
class AwardAdmin(admin.ModelAdmin):
    list_display = ["title", "employee", "cash_amount", "awarded_on"]
