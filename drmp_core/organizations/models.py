# drmp_core/organizations/models.py
from django.db import models
from django.db.models import Q

from drmp_core.common.models import BaseModel


class OrganizationType(models.TextChoices):
    SOURCE = "SOURCE", "案源机构"
    DISPOSAL = "DISPOSAL", "处置机构"


class OrganizationStatus(models.TextChoices):
    PENDING = "PENDING", "待审核"
    ACTIVE = "ACTIVE", "活跃"
    SUSPENDED = "SUSPENDED", "暂停"
    REJECTED = "REJECTED", "拒绝"


class AuditStatus(models.TextChoices):
    PENDING = "PENDING", "待审核"
    APPROVED = "APPROVED", "已通过"
    REJECTED = "REJECTED", "已拒绝"


class Organization(BaseModel):
    """
    Source (case owner) or disposal (case worker) organization.
    Audit workflow state is tracked separately from operational status.
    """
    name = models.CharField(max_length=255)
    type = models.CharField(max_length=16, choices=OrganizationType.choices, db_index=True)
    sub_type = models.CharField(max_length=50, blank=True, default="")

    status = models.CharField(
        max_length=16,
        choices=OrganizationStatus.choices,
        default=OrganizationStatus.PENDING,
        db_index=True,
    )

    contact_person = models.CharField(max_length=100, blank=True, default="")
    contact_phone = models.CharField(max_length=50, blank=True, default="")
    contact_email = models.EmailField(max_length=100, blank=True, default="")
    address = models.TextField(blank=True, default="")

    business_license = models.CharField(max_length=500, blank=True, default="")
    legal_person = models.CharField(max_length=100, blank=True, default="")
    unified_credit_code = models.CharField(max_length=50, null=True, blank=True)
    registration_capital = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    establish_date = models.DateField(null=True, blank=True)

    # disposal capacity profile
    team_size = models.PositiveIntegerField(null=True, blank=True)
    monthly_capacity = models.PositiveIntegerField(null=True, blank=True)
    current_load = models.CharField(max_length=50, blank=True, default="")
    service_regions = models.JSONField(default=list, blank=True)
    business_scope = models.JSONField(default=list, blank=True)
    disposal_types = models.JSONField(default=list, blank=True)
    settlement_methods = models.JSONField(default=list, blank=True)
    cooperation_cases = models.TextField(blank=True, default="")
    description = models.TextField(blank=True, default="")

    audit_status = models.CharField(
        max_length=16,
        choices=AuditStatus.choices,
        default=AuditStatus.PENDING,
        db_index=True,
    )
    audit_comment = models.TextField(blank=True, default="")
    audit_time = models.DateTimeField(null=True, blank=True)
    audit_by = models.BigIntegerField(null=True, blank=True)

    contract_start_date = models.DateField(null=True, blank=True)
    contract_end_date = models.DateField(null=True, blank=True)
    contract_file = models.CharField(max_length=500, blank=True, default="")

    class Meta:
        db_table = "organizations_organization"
        constraints = [
            models.UniqueConstraint(
                fields=["name"],
                condition=Q(is_deleted=False),
                name="uq_org_name_active",
            ),
            models.UniqueConstraint(
                fields=["unified_credit_code"],
                condition=Q(is_deleted=False, unified_credit_code__isnull=False),
                name="uq_org_credit_code_active",
            ),
        ]
        indexes = [
            models.Index(fields=["type", "status"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.type})"

    @property
    def is_active(self) -> bool:
        return self.status == OrganizationStatus.ACTIVE
