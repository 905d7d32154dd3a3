# drmp_core/case_packages/admin.py
from __future__ import annotations

from django.contrib import admin

from drmp_core.case_packages.models import CasePackage


@admin.register(CasePackage)
class CasePackageAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "name",
        "source_org",
        "status",
        "total_count",
        "assigned_count",
        "import_status",
        "import_progress",
        "is_deleted",
        "created_at",
    )
    list_filter = ("status", "import_status", "is_deleted")
    search_fields = ("name", "description")
    ordering = ("-created_at",)
    raw_id_fields = ("source_org",)

    readonly_fields = (
        "created_at",
        "updated_at",
        "version",
        "total_count",
        "total_amount",
        "assigned_count",
        "assigned_amount",
    )

    fieldsets = (
        ("Package", {"fields": ("name", "description", "source_org", "status", "publish_time")}),
        ("Statistics", {"fields": ("total_count", "total_amount", "assigned_count", "assigned_amount")}),
        (
            "Expectations",
            {"fields": ("expected_recovery_rate", "expected_period", "preferred_methods", "assignment_strategy")},
        ),
        (
            "Import",
            {
                "fields": (
                    "import_file_path",
                    "import_status",
                    "import_progress",
                    "import_error_msg",
                    "import_started_at",
                )
            },
        ),
        ("Record", {"fields": ("is_deleted", "version", "created_at", "updated_at")}),
    )

    def get_queryset(self, request):
        return CasePackage.all_objects.select_related("source_org")
