# drmp_core/case_packages/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from drmp_core.case_packages.models import CasePackage


class CasePackageSerializer(serializers.ModelSerializer):
    source_org_id = serializers.IntegerField(read_only=True)
    source_org_name = serializers.CharField(source="source_org.name", read_only=True, default=None)
    remaining_count = serializers.IntegerField(read_only=True)
    remaining_amount = serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True)
    assignment_progress = serializers.IntegerField(read_only=True)

    class Meta:
        model = CasePackage
        fields = [
            "id",
            "name",
            "description",
            "source_org_id",
            "source_org_name",
            "total_count",
            "total_amount",
            "assigned_count",
            "assigned_amount",
            "remaining_count",
            "remaining_amount",
            "assignment_progress",
            "status",
            "publish_time",
            "expected_recovery_rate",
            "expected_period",
            "preferred_methods",
            "assignment_strategy",
            "import_file_path",
            "import_status",
            "import_progress",
            "import_error_msg",
            "import_started_at",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CasePackageWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    source_org_id = serializers.IntegerField(required=False)
    expected_recovery_rate = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, allow_null=True)
    expected_period = serializers.IntegerField(required=False, allow_null=True)
    preferred_methods = serializers.ListField(child=serializers.CharField(), required=False)
    assignment_strategy = serializers.DictField(required=False)


class ImportUploadSerializer(serializers.Serializer):
    file = serializers.FileField()
