# drmp_core/organizations/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from drmp_core.organizations.models import AuditStatus, Organization, OrganizationStatus, OrganizationType


class OrganizationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Organization
        fields = [
            "id",
            "name",
            "type",
            "sub_type",
            "status",
            "contact_person",
            "contact_phone",
            "contact_email",
            "address",
            "business_license",
            "legal_person",
            "unified_credit_code",
            "registration_capital",
            "establish_date",
            "team_size",
            "monthly_capacity",
            "current_load",
            "service_regions",
            "business_scope",
            "disposal_types",
            "settlement_methods",
            "cooperation_cases",
            "description",
            "audit_status",
            "audit_comment",
            "audit_time",
            "audit_by",
            "contract_start_date",
            "contract_end_date",
            "contract_file",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class OrganizationWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    type = serializers.ChoiceField(choices=OrganizationType.choices)
    sub_type = serializers.CharField(max_length=50, required=False, allow_blank=True)
    contact_person = serializers.CharField(max_length=100, required=False, allow_blank=True)
    contact_phone = serializers.CharField(max_length=50, required=False, allow_blank=True)
    contact_email = serializers.EmailField(max_length=100, required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True)
    legal_person = serializers.CharField(max_length=100, required=False, allow_blank=True)
    unified_credit_code = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)
    registration_capital = serializers.DecimalField(max_digits=15, decimal_places=2, required=False, allow_null=True)
    establish_date = serializers.DateField(required=False, allow_null=True)
    team_size = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    monthly_capacity = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    current_load = serializers.CharField(max_length=50, required=False, allow_blank=True)
    service_regions = serializers.ListField(child=serializers.CharField(), required=False)
    business_scope = serializers.ListField(child=serializers.CharField(), required=False)
    disposal_types = serializers.ListField(child=serializers.CharField(), required=False)
    settlement_methods = serializers.ListField(child=serializers.CharField(), required=False)
    cooperation_cases = serializers.CharField(required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    contract_start_date = serializers.DateField(required=False, allow_null=True)
    contract_end_date = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        start, end = attrs.get("contract_start_date"), attrs.get("contract_end_date")
        if start and end and start > end:
            raise serializers.ValidationError({"contract_end_date": "合同结束日期不能早于开始日期"})
        return attrs


class OrganizationAuditSerializer(serializers.Serializer):
    audit_status = serializers.ChoiceField(choices=[AuditStatus.APPROVED, AuditStatus.REJECTED])
    audit_comment = serializers.CharField(required=False, allow_blank=True, default="")


class OrganizationStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[OrganizationStatus.ACTIVE, OrganizationStatus.SUSPENDED])


class FileUploadSerializer(serializers.Serializer):
    file = serializers.FileField()
