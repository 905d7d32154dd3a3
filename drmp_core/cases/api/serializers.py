# drmp_core/cases/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from drmp_core.cases.classification import calculate_overdue_level, calculate_risk_level
from drmp_core.cases.models import Case, CaseStatus
from drmp_core.common.crypto import mask_id_card, mask_name, mask_phone


class CaseSerializer(serializers.ModelSerializer):
    """
    Read model. Debtor PII leaves the API masked only.
    """
    case_package_id = serializers.IntegerField(read_only=True)
    case_package_name = serializers.CharField(source="case_package.name", read_only=True, default=None)
    assigned_org_id = serializers.IntegerField(read_only=True, allow_null=True)
    assigned_org_name = serializers.CharField(source="assigned_org.name", read_only=True, default=None)

    debtor_id_card = serializers.SerializerMethodField()
    debtor_name = serializers.SerializerMethodField()
    debtor_phone = serializers.SerializerMethodField()

    overdue_level = serializers.SerializerMethodField()
    risk_level = serializers.SerializerMethodField()
    is_assigned = serializers.BooleanField(read_only=True)
    is_processing = serializers.BooleanField(read_only=True)
    is_closed = serializers.BooleanField(read_only=True)

    class Meta:
        model = Case
        fields = [
            "id",
            "case_package_id",
            "case_package_name",
            "receipt_number",
            "debtor_id_card",
            "debtor_name",
            "debtor_phone",
            "loan_product",
            "loan_amount",
            "remaining_amount",
            "overdue_days",
            "consigner",
            "consign_start_date",
            "consign_end_date",
            "fund_provider",
            "debt_info",
            "debtor_info",
            "contact_info",
            "custom_fields",
            "current_status",
            "assigned_org_id",
            "assigned_org_name",
            "assigned_at",
            "latest_progress",
            "total_recovered",
            "recovery_rate",
            "attachments",
            "overdue_level",
            "risk_level",
            "is_assigned",
            "is_processing",
            "is_closed",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_debtor_id_card(self, obj):
        return mask_id_card(obj.debtor_id_card)

    def get_debtor_name(self, obj):
        return mask_name(obj.debtor_name)

    def get_debtor_phone(self, obj):
        return mask_phone(obj.debtor_phone)

    def get_overdue_level(self, obj):
        return calculate_overdue_level(obj.overdue_days)

    def get_risk_level(self, obj):
        return calculate_risk_level(obj.overdue_days, obj.remaining_amount)


class CaseWriteSerializer(serializers.Serializer):
    """
    Shape only; business rules (formats, amounts, dates) are enforced by
    CaseService so that single writes and batch import share one rule set.
    """
    case_package_id = serializers.IntegerField(required=False)
    receipt_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    debtor_id_card = serializers.CharField(max_length=18, required=False, allow_blank=True)
    debtor_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    debtor_phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    loan_product = serializers.CharField(max_length=100, required=False, allow_blank=True)
    loan_amount = serializers.DecimalField(max_digits=15, decimal_places=2, required=False, allow_null=True)
    remaining_amount = serializers.DecimalField(max_digits=15, decimal_places=2, required=False, allow_null=True)
    overdue_days = serializers.IntegerField(required=False, allow_null=True)
    consigner = serializers.CharField(max_length=200, required=False, allow_blank=True)
    consign_start_date = serializers.DateField(required=False, allow_null=True)
    consign_end_date = serializers.DateField(required=False, allow_null=True)
    fund_provider = serializers.CharField(max_length=200, required=False, allow_blank=True)
    debt_info = serializers.DictField(required=False)
    debtor_info = serializers.DictField(required=False)
    contact_info = serializers.DictField(required=False)
    custom_fields = serializers.DictField(required=False)
    latest_progress = serializers.CharField(required=False, allow_blank=True)
    attachments = serializers.ListField(child=serializers.CharField(), required=False)


class CaseAssignSerializer(serializers.Serializer):
    case_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    org_id = serializers.IntegerField()


class CaseStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=CaseStatus.choices)
    progress = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class CaseRecoverySerializer(serializers.Serializer):
    total_recovered = serializers.DecimalField(max_digits=15, decimal_places=2)
    recovery_rate = serializers.DecimalField(max_digits=5, decimal_places=2)


class RiskLevelRequestSerializer(serializers.Serializer):
    overdue_days = serializers.IntegerField(required=False, allow_null=True)
    remaining_amount = serializers.DecimalField(max_digits=15, decimal_places=2, required=False, allow_null=True)
