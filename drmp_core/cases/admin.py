# drmp_core/cases/admin.py
from __future__ import annotations

from django.contrib import admin

from drmp_core.cases.models import Case


@admin.register(Case)
class CaseAdmin(admin.ModelAdmin):
    # Debtor PII columns stay out of list_display/search_fields: they are ciphertext at rest.
    list_display = (
        "id",
        "receipt_number",
        "case_package",
        "current_status",
        "assigned_org",
        "loan_amount",
        "remaining_amount",
        "overdue_days",
        "is_deleted",
        "created_at",
    )
    list_filter = ("current_status", "is_deleted")
    search_fields = ("receipt_number", "consigner", "fund_provider")
    ordering = ("-created_at",)
    raw_id_fields = ("case_package", "assigned_org")

    readonly_fields = ("created_at", "updated_at", "version", "debtor_name_digest", "debtor_phone_digest")

    fieldsets = (
        ("Case", {"fields": ("case_package", "receipt_number", "current_status", "latest_progress")}),
        ("Debtor", {"fields": ("debtor_name", "debtor_id_card", "debtor_phone", "debtor_name_digest", "debtor_phone_digest")}),
        (
            "Loan",
            {
                "fields": (
                    "loan_product",
                    "loan_amount",
                    "remaining_amount",
                    "overdue_days",
                    "consigner",
                    "consign_start_date",
                    "consign_end_date",
                    "fund_provider",
                )
            },
        ),
        ("Details", {"fields": ("debt_info", "debtor_info", "contact_info", "custom_fields", "attachments")}),
        ("Assignment", {"fields": ("assigned_org", "assigned_at", "total_recovered", "recovery_rate")}),
        ("Record", {"fields": ("is_deleted", "version", "created_at", "updated_at")}),
    )

    def get_queryset(self, request):
        return Case.all_objects.select_related("case_package", "assigned_org")
