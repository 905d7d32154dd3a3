# drmp_core/iam/services/users.py
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils.timezone import now

from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.error_codes import ErrorCode
from drmp_core.iam import selectors
from drmp_core.iam.models import Role, UserProfile, UserRole, UserStatus
from drmp_core.organizations.selectors import get_organization

logger = logging.getLogger(__name__)

# Profile columns writable through create/update. Status and password are not.
PROFILE_FIELDS = ("nickname", "real_name", "phone", "avatar")


class UserService:
    """
    User write-model operations.

    The auth user owns username/email/password; UserProfile owns the rest.
    Both are always changed together inside one transaction.
    """

    @staticmethod
    def _check_unique(*, username: Optional[str], email: Optional[str], exclude_profile_id=None) -> None:
        if username and selectors.exists_by_username(username=username, exclude_profile_id=exclude_profile_id):
            raise BusinessException(ErrorCode.USER_ALREADY_EXISTS, "用户名已存在")
        if email and selectors.exists_by_email(email=email, exclude_profile_id=exclude_profile_id):
            raise BusinessException(ErrorCode.USER_ALREADY_EXISTS, "邮箱已存在")

    @staticmethod
    def _set_roles(profile: UserProfile, roles: Iterable[Role]) -> None:
        UserRole.objects.filter(user_profile=profile).delete()
        UserRole.objects.bulk_create([UserRole(user_profile=profile, role=r) for r in roles])

    @staticmethod
    def _default_roles(profile: UserProfile) -> list[Role]:
        if profile.organization is None:
            return []
        return list(Role.objects.filter(org_type=profile.organization.type, is_default=True))

    # -------------------------
    # Create / update / delete
    # -------------------------
    @staticmethod
    @transaction.atomic
    def create(*, data: dict[str, Any], actor_id: Optional[int] = None) -> UserProfile:
        username = (data.get("username") or "").strip()
        email = (data.get("email") or "").strip()
        logger.info("Creating user username=%s", username)

        UserService._check_unique(username=username, email=email)

        organization = None
        if data.get("organization_id"):
            organization = get_organization(org_id=data["organization_id"])

        password = data.get("password") or settings.DRMP_DEFAULT_PASSWORD
        try:
            # Savepoint: the username and email constraints are the last word on uniqueness.
            with transaction.atomic():
                user = get_user_model().objects.create_user(username=username, email=email, password=password)
                profile = UserProfile.objects.create(
                    user=user,
                    organization=organization,
                    status=UserStatus.ACTIVE,
                    email_key=UserProfile.email_key_for(email),
                    password_updated_at=now(),
                    created_by=actor_id,
                    updated_by=actor_id,
                    **{k: data[k] for k in PROFILE_FIELDS if data.get(k) is not None},
                )
        except IntegrityError as exc:
            raise BusinessException(ErrorCode.USER_ALREADY_EXISTS, "用户名或邮箱已存在") from exc

        if data.get("role_ids"):
            UserService.assign_roles(profile_id=profile.id, role_ids=data["role_ids"], actor_id=actor_id)
        else:
            UserService._set_roles(profile, UserService._default_roles(profile))

        logger.info("User created id=%s username=%s", profile.id, username)
        return selectors.get_profile(profile_id=profile.id)

    @staticmethod
    @transaction.atomic
    def update(*, profile_id, data: dict[str, Any], actor_id: Optional[int] = None) -> UserProfile:
        logger.info("Updating user id=%s", profile_id)
        profile = selectors.get_profile(profile_id=profile_id)
        user = profile.user

        username = (data.get("username") or "").strip() or None
        email = data.get("email")
        email = email.strip() if isinstance(email, str) else None
        UserService._check_unique(
            username=username if username and username != user.username else None,
            email=email if email and email != user.email else None,
            exclude_profile_id=profile.id,
        )

        user_fields: list[str] = []
        if username and username != user.username:
            user.username = username
            user_fields.append("username")
        if email is not None and email != user.email:
            user.email = email
            user_fields.append("email")

        changed: list[str] = []
        if "email" in user_fields:
            profile.email_key = UserProfile.email_key_for(email)
            changed.append("email_key")
        for field in PROFILE_FIELDS:
            if field in data and data[field] is not None and getattr(profile, field) != data[field]:
                setattr(profile, field, data[field])
                changed.append(field)

        if "organization_id" in data:
            org_id = data["organization_id"]
            organization = get_organization(org_id=org_id) if org_id else None
            if organization != profile.organization:
                profile.organization = organization
                changed.append("organization")

        try:
            with transaction.atomic():
                if user_fields:
                    user.save(update_fields=user_fields)
                if changed or user_fields:
                    profile.save_versioned(update_fields=changed, actor_id=actor_id)
        except IntegrityError as exc:
            raise BusinessException(ErrorCode.USER_ALREADY_EXISTS, "用户名或邮箱已存在") from exc
        logger.info("User updated id=%s fields=%s", profile.id, user_fields + changed)
        return profile

    @staticmethod
    @transaction.atomic
    def delete(*, profile_id, actor_id: Optional[int] = None) -> None:
        logger.info("Deleting user id=%s", profile_id)
        profile = selectors.get_profile(profile_id=profile_id)

        profile.soft_delete(actor_id=actor_id)
        user = profile.user
        user.is_active = False
        user.save(update_fields=["is_active"])
        logger.info("User deleted id=%s username=%s", profile.id, user.username)

    # -------------------------
    # Credentials / status / roles
    # -------------------------
    @staticmethod
    @transaction.atomic
    def change_password(*, profile_id, old_password: str, new_password: str, actor_id: Optional[int] = None) -> None:
        logger.info("Changing password user id=%s", profile_id)
        profile = selectors.get_profile(profile_id=profile_id)
        user = profile.user
        if not user.check_password(old_password or ""):
            raise BusinessException(ErrorCode.INVALID_PARAMETER, "原密码不正确")
        UserService._store_password(profile, new_password, actor_id=actor_id)
        logger.info("Password changed user id=%s", profile.id)

    @staticmethod
    @transaction.atomic
    def reset_password(*, profile_id, new_password: str, actor_id: Optional[int] = None) -> None:
        logger.info("Resetting password user id=%s", profile_id)
        profile = selectors.get_profile(profile_id=profile_id)
        UserService._store_password(profile, new_password, actor_id=actor_id)
        logger.info("Password reset user id=%s", profile.id)

    @staticmethod
    def _store_password(profile: UserProfile, raw: str, *, actor_id: Optional[int]) -> None:
        user = profile.user
        user.set_password(raw)
        user.save(update_fields=["password"])
        profile.password_updated_at = now()
        profile.save_versioned(update_fields=["password_updated_at"], actor_id=actor_id)

    @staticmethod
    @transaction.atomic
    def update_status(*, profile_id, status: str, actor_id: Optional[int] = None) -> UserProfile:
        if status not in UserStatus.values:
            raise BusinessException(ErrorCode.INVALID_PARAMETER, f"无效的用户状态: {status}")

        profile = selectors.get_profile(profile_id=profile_id)
        if profile.status == status:
            return profile

        profile.status = status
        profile.save_versioned(update_fields=["status"], actor_id=actor_id)
        logger.info("User status changed id=%s status=%s", profile.id, status)
        return profile

    @staticmethod
    @transaction.atomic
    def assign_roles(*, profile_id, role_ids: list, actor_id: Optional[int] = None) -> UserProfile:
        logger.info("Assigning roles user id=%s roles=%s", profile_id, role_ids)
        profile = selectors.get_profile(profile_id=profile_id)

        wanted = set(role_ids or [])
        roles = list(Role.objects.filter(id__in=wanted))
        if len(roles) != len(wanted):
            raise BusinessException(ErrorCode.ROLE_NOT_FOUND, "部分角色不存在")

        UserService._set_roles(profile, roles)
        logger.info("Roles assigned user id=%s count=%s", profile.id, len(roles))
        return selectors.get_profile(profile_id=profile.id)

    @staticmethod
    def record_login(*, profile: UserProfile, client_ip: Optional[str]) -> None:
        """
        Login bookkeeping: counter, IP and the auth user's last_login.
        Written without a version check; nothing else touches these columns.
        """
        stamp = now()
        UserProfile.objects.filter(id=profile.id).update(
            login_count=F("login_count") + 1,
            last_login_ip=client_ip or "",
        )
        get_user_model().objects.filter(id=profile.user_id).update(last_login=stamp)
        logger.debug("Login recorded user id=%s ip=%s", profile.id, client_ip)
