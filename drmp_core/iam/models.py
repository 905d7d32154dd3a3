# drmp_core/iam/models.py
from typing import Optional

from django.conf import settings
from django.db import models
from django.db.models import Q

from drmp_core.common.models import BaseModel
from drmp_core.organizations.models import Organization


class PermissionType(models.TextChoices):
    MENU = "MENU", "菜单"
    BUTTON = "BUTTON", "按钮"
    API = "API", "接口"


class RoleOrgType(models.TextChoices):
    SOURCE = "SOURCE", "案源机构"
    DISPOSAL = "DISPOSAL", "处置机构"
    PLATFORM = "PLATFORM", "平台"


class UserStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "正常"
    DISABLED = "DISABLED", "禁用"
    LOCKED = "LOCKED", "锁定"


class Permission(BaseModel):
    """
    Atomic capability: e.g. "CASE_READ", "CASE_PACKAGE_PUBLISH".
    Arranged as a menu/button/api tree through `parent`.
    """
    name = models.CharField(max_length=100)
    code = models.CharField(max_length=100)
    type = models.CharField(max_length=16, choices=PermissionType.choices, default=PermissionType.API)

    parent = models.ForeignKey(
        "self", null=True, blank=True, on_delete=models.SET_NULL, related_name="children"
    )
    path = models.CharField(max_length=255, blank=True, default="")
    method = models.CharField(max_length=10, blank=True, default="")
    icon = models.CharField(max_length=100, blank=True, default="")
    sort_order = models.IntegerField(default=0)
    description = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "iam_permission"
        constraints = [
            models.UniqueConstraint(fields=["code"], condition=Q(is_deleted=False), name="uq_permission_code_active"),
        ]
        indexes = [models.Index(fields=["code"])]

    def __str__(self) -> str:
        return self.code


class Role(BaseModel):
    name = models.CharField(max_length=100)
    code = models.CharField(max_length=50)
    description = models.CharField(max_length=255, blank=True, default="")

    org_type = models.CharField(max_length=16, choices=RoleOrgType.choices, default=RoleOrgType.PLATFORM)
    # default roles are attached to new users of the matching organization type
    is_default = models.BooleanField(default=False)
    sort_order = models.IntegerField(default=0)

    permissions = models.ManyToManyField(Permission, through="RolePermission", related_name="roles")

    class Meta:
        db_table = "iam_role"
        constraints = [
            models.UniqueConstraint(fields=["code"], condition=Q(is_deleted=False), name="uq_role_code_active"),
        ]
        indexes = [models.Index(fields=["org_type", "is_default"])]

    def __str__(self) -> str:
        return self.code


class RolePermission(models.Model):
    """
    Many-to-many Role <-> Permission.
    """
    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name="role_permissions")
    permission = models.ForeignKey(Permission, on_delete=models.CASCADE, related_name="permission_roles")

    class Meta:
        db_table = "iam_role_permission"
        constraints = [
            models.UniqueConstraint(fields=["role", "permission"], name="uq_role_permission"),
        ]


class UserProfile(BaseModel):
    """
    DRMP user profile anchored to Django's AUTH_USER_MODEL.
    The auth user holds the credentials (hashed password), username, email
    and last_login; everything platform-specific lives here.
    """
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="drmp_profile")
    organization = models.ForeignKey(
        Organization, null=True, blank=True, on_delete=models.PROTECT, related_name="user_profiles"
    )

    nickname = models.CharField(max_length=100, blank=True, default="")
    real_name = models.CharField(max_length=100, blank=True, default="")
    phone = models.CharField(max_length=20, blank=True, default="")
    avatar = models.CharField(max_length=500, blank=True, default="")
    # Lower-cased copy of user.email; NULL when the user has none.
    email_key = models.CharField(max_length=254, null=True, blank=True, editable=False)

    status = models.CharField(max_length=16, choices=UserStatus.choices, default=UserStatus.ACTIVE, db_index=True)
    last_login_ip = models.CharField(max_length=45, blank=True, default="")
    login_count = models.PositiveIntegerField(default=0)
    password_updated_at = models.DateTimeField(null=True, blank=True)

    roles = models.ManyToManyField(Role, through="UserRole", related_name="user_profiles")

    class Meta:
        db_table = "iam_user_profile"
        indexes = [
            models.Index(fields=["organization", "status"]),
        ]
        constraints = [
            models.UniqueConstraint(fields=["email_key"], name="uq_user_profile_email"),
        ]

    def __str__(self) -> str:
        return self.user.username

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    @staticmethod
    def email_key_for(email: Optional[str]) -> Optional[str]:
        email = (email or "").strip().lower()
        return email or None


class UserRole(models.Model):
    user_profile = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name="user_roles")
    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name="role_users")

    class Meta:
        db_table = "iam_user_role"
        constraints = [
            models.UniqueConstraint(fields=["user_profile", "role"], name="uq_user_profile_role"),
        ]
