# drmp_core/case_packages/models.py
from decimal import Decimal

from django.db import models
from django.db.models import Q

from drmp_core.common.models import BaseModel


class CasePackageStatus(models.TextChoices):
    DRAFT = "DRAFT", "草稿"
    PUBLISHED = "PUBLISHED", "已发布"
    PROCESSING = "PROCESSING", "处理中"
    COMPLETED = "COMPLETED", "已完成"
    WITHDRAWN = "WITHDRAWN", "已撤回"


class ImportStatus(models.TextChoices):
    PENDING = "PENDING", "待导入"
    PROCESSING = "PROCESSING", "导入中"
    SUCCESS = "SUCCESS", "导入成功"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS", "部分成功"
    FAILED = "FAILED", "导入失败"


class CasePackage(BaseModel):
    """
    A batch of cases published by a source organization.

    total/assigned counters are denormalized aggregates over the package's
    non-deleted cases and are rewritten by CasePackageService.refresh_statistics.
    """
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    source_org = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.PROTECT,
        related_name="case_packages",
    )

    total_count = models.PositiveIntegerField(default=0)
    total_amount = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    assigned_count = models.PositiveIntegerField(default=0)
    assigned_amount = models.DecimalField(max_digits=18, decimal_places=2, default=0)

    status = models.CharField(
        max_length=20,
        choices=CasePackageStatus.choices,
        default=CasePackageStatus.DRAFT,
        db_index=True,
    )
    publish_time = models.DateTimeField(null=True, blank=True)

    expected_recovery_rate = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    expected_period = models.PositiveIntegerField(null=True, blank=True)
    preferred_methods = models.JSONField(default=list, blank=True)
    assignment_strategy = models.JSONField(default=dict, blank=True)

    import_file_path = models.CharField(max_length=500, blank=True, default="")
    import_status = models.CharField(
        max_length=20,
        choices=ImportStatus.choices,
        default=ImportStatus.PENDING,
        db_index=True,
    )
    import_progress = models.PositiveSmallIntegerField(default=0)
    import_error_msg = models.TextField(blank=True, default="")
    import_started_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "case_packages_case_package"
        constraints = [
            models.UniqueConstraint(
                fields=["source_org", "name"],
                condition=Q(is_deleted=False),
                name="uq_case_package_name_per_org_active",
            ),
        ]
        indexes = [
            models.Index(fields=["source_org", "status"]),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def remaining_count(self) -> int:
        return max((self.total_count or 0) - (self.assigned_count or 0), 0)

    @property
    def remaining_amount(self) -> Decimal:
        return (self.total_amount or Decimal("0")) - (self.assigned_amount or Decimal("0"))

    @property
    def assignment_progress(self) -> int:
        if not self.total_count:
            return 0
        return int(self.assigned_count * 100 / self.total_count)

    @property
    def is_editable(self) -> bool:
        return self.status not in (CasePackageStatus.PUBLISHED, CasePackageStatus.PROCESSING)
