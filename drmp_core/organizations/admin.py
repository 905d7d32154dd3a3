# drmp_core/organizations/admin.py
from __future__ import annotations

from django.contrib import admin

from drmp_core.organizations.models import Organization


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "name",
        "type",
        "status",
        "audit_status",
        "contact_person",
        "unified_credit_code",
        "is_deleted",
        "created_at",
        "updated_at",
    )
    list_filter = ("type", "status", "audit_status", "is_deleted")
    search_fields = ("name", "contact_person", "unified_credit_code")
    ordering = ("-created_at",)

    readonly_fields = ("created_at", "updated_at", "version", "audit_time", "audit_by")

    fieldsets = (
        ("Organization", {"fields": ("name", "type", "sub_type", "status", "description")}),
        ("Contact", {"fields": ("contact_person", "contact_phone", "contact_email", "address")}),
        (
            "Registration",
            {
                "fields": (
                    "legal_person",
                    "unified_credit_code",
                    "registration_capital",
                    "establish_date",
                    "business_license",
                )
            },
        ),
        (
            "Capacity",
            {
                "fields": (
                    "team_size",
                    "monthly_capacity",
                    "current_load",
                    "service_regions",
                    "business_scope",
                    "disposal_types",
                    "settlement_methods",
                    "cooperation_cases",
                )
            },
        ),
        ("Audit", {"fields": ("audit_status", "audit_comment", "audit_time", "audit_by")}),
        ("Contract", {"fields": ("contract_start_date", "contract_end_date", "contract_file")}),
        ("Record", {"fields": ("is_deleted", "version", "created_at", "updated_at")}),
    )

    def get_queryset(self, request):
        return Organization.all_objects.all()
