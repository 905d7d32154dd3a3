# drmp_core/iam/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from drmp_core.iam import selectors
from drmp_core.iam.models import Role, UserProfile, UserStatus


class UserSerializer(serializers.ModelSerializer):
    """
    Read model for a user: auth user identity + DRMP profile.
    Passwords are never serialized.
    """
    user_id = serializers.IntegerField(source="user.id", read_only=True)
    username = serializers.CharField(source="user.username", read_only=True)
    email = serializers.CharField(source="user.email", read_only=True)
    last_login_time = serializers.DateTimeField(source="user.last_login", read_only=True)
    organization_id = serializers.IntegerField(allow_null=True, read_only=True)
    organization_name = serializers.SerializerMethodField()
    org_type = serializers.SerializerMethodField()
    roles = serializers.SerializerMethodField()

    class Meta:
        model = UserProfile
        fields = [
            "id",
            "user_id",
            "username",
            "email",
            "nickname",
            "real_name",
            "phone",
            "avatar",
            "status",
            "organization_id",
            "organization_name",
            "org_type",
            "roles",
            "last_login_time",
            "last_login_ip",
            "login_count",
            "password_updated_at",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_organization_name(self, obj):
        return obj.organization.name if obj.organization_id else None

    def get_org_type(self, obj):
        return obj.organization.type if obj.organization_id else None

    def get_roles(self, obj):
        return selectors.role_codes_for(obj)


class UserInfoSerializer(UserSerializer):
    """User payload returned by login and /auth/me (adds permission codes)."""
    permissions = serializers.SerializerMethodField()

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ["permissions"]
        read_only_fields = fields

    def get_permissions(self, obj):
        return selectors.permission_codes_for(obj)


class UserCreateSerializer(serializers.Serializer):
    username = serializers.CharField(min_length=3, max_length=50)
    password = serializers.CharField(min_length=6, max_length=128, required=False, allow_blank=True, write_only=True)
    email = serializers.EmailField(max_length=100, required=False, allow_blank=True)
    nickname = serializers.CharField(max_length=100, required=False, allow_blank=True)
    real_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    phone = serializers.RegexField(r"^1[3-9]\d{9}$", required=False, allow_blank=True)
    avatar = serializers.CharField(max_length=500, required=False, allow_blank=True)
    organization_id = serializers.IntegerField(required=False, allow_null=True)
    role_ids = serializers.ListField(child=serializers.IntegerField(), required=False)


class UserUpdateSerializer(serializers.Serializer):
    username = serializers.CharField(min_length=3, max_length=50, required=False)
    email = serializers.EmailField(max_length=100, required=False, allow_blank=True)
    nickname = serializers.CharField(max_length=100, required=False, allow_blank=True)
    real_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    phone = serializers.RegexField(r"^1[3-9]\d{9}$", required=False, allow_blank=True)
    avatar = serializers.CharField(max_length=500, required=False, allow_blank=True)
    organization_id = serializers.IntegerField(required=False, allow_null=True)


class ChangePasswordSerializer(serializers.Serializer):
    old_password = serializers.CharField()
    new_password = serializers.CharField(min_length=6, max_length=128)


class ResetPasswordSerializer(serializers.Serializer):
    new_password = serializers.CharField(min_length=6, max_length=128)


class UserStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=UserStatus.choices)


class AssignRolesSerializer(serializers.Serializer):
    role_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=True)


class RoleSerializer(serializers.ModelSerializer):
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = ["id", "name", "code", "description", "org_type", "is_default", "sort_order", "permissions"]
        read_only_fields = fields

    def get_permissions(self, obj):
        return sorted(p.code for p in obj.permissions.all() if not p.is_deleted)


# ----------------------------
# Auth request/response shapes
# ----------------------------
class LoginRequestSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField()


class RefreshRequestSerializer(serializers.Serializer):
    # optional: falls back to the refresh cookie
    refresh_token = serializers.CharField(required=False, allow_blank=True)


class ValidateRequestSerializer(serializers.Serializer):
    token = serializers.CharField(required=False, allow_blank=True)


class TokenResponseSerializer(serializers.Serializer):
    access_token = serializers.CharField()
    refresh_token = serializers.CharField()
    token_type = serializers.CharField()
    expires_in = serializers.IntegerField()
    user_info = UserInfoSerializer(required=False)
