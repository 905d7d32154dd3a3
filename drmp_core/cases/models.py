# drmp_core/cases/models.py
from django.db import models
from django.db.models import Q

from drmp_core.common.crypto import EncryptedTextField, search_digest
from drmp_core.common.models import BaseModel


class CaseStatus(models.TextChoices):
    PENDING_ASSIGNMENT = "PENDING_ASSIGNMENT", "待分案"
    ASSIGNED = "ASSIGNED", "已分案"
    PROCESSING = "PROCESSING", "处置中"
    MEDIATING = "MEDIATING", "调解中"
    LITIGATING = "LITIGATING", "诉讼中"
    SETTLED = "SETTLED", "已和解"
    LITIGATION = "LITIGATION", "诉讼"
    CLOSED = "CLOSED", "已结案"
    WITHDRAWN = "WITHDRAWN", "已撤回"
    SUSPENDED = "SUSPENDED", "已暂停"


class Case(BaseModel):
    """
    A single debt record. Debtor PII is encrypted at rest; the name and
    phone digests support exact-match search without decrypting rows.
    """
    case_package = models.ForeignKey(
        "case_packages.CasePackage",
        on_delete=models.PROTECT,
        related_name="cases",
    )
    receipt_number = models.CharField(max_length=100)

    debtor_id_card = EncryptedTextField()
    debtor_name = EncryptedTextField()
    debtor_phone = EncryptedTextField()
    debtor_name_digest = models.CharField(max_length=64, blank=True, default="", db_index=True)
    debtor_phone_digest = models.CharField(max_length=64, blank=True, default="", db_index=True)

    loan_product = models.CharField(max_length=100)
    loan_amount = models.DecimalField(max_digits=15, decimal_places=2)
    remaining_amount = models.DecimalField(max_digits=15, decimal_places=2)
    overdue_days = models.PositiveIntegerField(default=0, db_index=True)

    consigner = models.CharField(max_length=200)
    consign_start_date = models.DateField()
    consign_end_date = models.DateField()
    fund_provider = models.CharField(max_length=200)

    debt_info = models.JSONField(default=dict, blank=True)
    debtor_info = models.JSONField(default=dict, blank=True)
    contact_info = models.JSONField(default=dict, blank=True)
    custom_fields = models.JSONField(default=dict, blank=True)

    current_status = models.CharField(
        max_length=32,
        choices=CaseStatus.choices,
        default=CaseStatus.PENDING_ASSIGNMENT,
        db_index=True,
    )
    assigned_org = models.ForeignKey(
        "organizations.Organization",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="assigned_cases",
    )
    assigned_at = models.DateTimeField(null=True, blank=True)
    latest_progress = models.TextField(blank=True, default="")

    total_recovered = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    recovery_rate = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    attachments = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = "cases_case"
        constraints = [
            models.UniqueConstraint(
                fields=["receipt_number"],
                condition=Q(is_deleted=False),
                name="uq_case_receipt_number_active",
            ),
        ]
        indexes = [
            models.Index(fields=["case_package", "current_status"]),
            models.Index(fields=["assigned_org", "current_status"]),
        ]

    def __str__(self) -> str:
        return self.receipt_number

    def refresh_digests(self) -> None:
        self.debtor_name_digest = search_digest(self.debtor_name)
        self.debtor_phone_digest = search_digest(self.debtor_phone)

    def save(self, *args, **kwargs):
        self.refresh_digests()
        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            extra = []
            if "debtor_name" in update_fields:
                extra.append("debtor_name_digest")
            if "debtor_phone" in update_fields:
                extra.append("debtor_phone_digest")
            kwargs["update_fields"] = list(update_fields) + extra
        super().save(*args, **kwargs)

    @property
    def is_assigned(self) -> bool:
        return self.assigned_org_id is not None

    @property
    def is_processing(self) -> bool:
        return self.current_status == CaseStatus.PROCESSING

    @property
    def is_closed(self) -> bool:
        return self.current_status == CaseStatus.CLOSED
