# drmp_core/iam/services/auth.py
from __future__ import annotations

import logging
from typing import Any, Optional

from django.contrib.auth import get_user_model
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken, Token

from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.error_codes import ErrorCode
from drmp_core.iam import selectors
from drmp_core.iam.models import UserProfile, UserStatus
from drmp_core.iam.services.users import UserService
from drmp_core.iam.tokens import (
    DrmpRefreshToken,
    TokenStore,
    access_lifetime_seconds,
    remaining_seconds,
)
from drmp_core.organizations.models import OrganizationStatus

logger = logging.getLogger(__name__)


class AuthService:
    """
    Token issuance and revocation.

    - login issues an access/refresh pair and remembers the refresh jti
    - refresh only honours the most recently issued refresh token per user
    - logout revokes the presented access token until it expires
    """

    @staticmethod
    def _ensure_can_sign_in(profile: UserProfile) -> None:
        if profile.status == UserStatus.LOCKED:
            raise BusinessException(ErrorCode.ACCOUNT_LOCKED)
        if profile.status != UserStatus.ACTIVE or not profile.user.is_active:
            raise BusinessException(ErrorCode.USER_DISABLED, "用户已被禁用或锁定")

    @staticmethod
    def _ensure_organization_active(profile: UserProfile) -> None:
        org = profile.organization
        if org is not None and (org.is_deleted or org.status != OrganizationStatus.ACTIVE):
            raise BusinessException(ErrorCode.ORGANIZATION_NOT_APPROVED, "所属机构未激活，无法登录")

    @staticmethod
    def _issue(profile: UserProfile) -> dict[str, Any]:
        refresh = DrmpRefreshToken.for_profile(profile)
        access = refresh.access_token
        TokenStore.remember_refresh(user_id=profile.user_id, jti=refresh["jti"])
        return {
            "access_token": str(access),
            "refresh_token": str(refresh),
            "token_type": "Bearer",
            "expires_in": access_lifetime_seconds(),
        }

    @staticmethod
    def login(*, username: str, password: str, client_ip: Optional[str] = None) -> dict[str, Any]:
        """
        Returns the token pair plus the signed-in profile under "profile".
        """
        logger.info("Login attempt username=%s", username)

        user = get_user_model().objects.filter(username=(username or "").strip()).first()
        profile = selectors.get_profile_for_user(user_id=user.id) if user is not None else None
        if profile is None:
            raise BusinessException(ErrorCode.INVALID_USERNAME_OR_PASSWORD)

        AuthService._ensure_can_sign_in(profile)

        if not user.check_password(password or ""):
            raise BusinessException(ErrorCode.INVALID_USERNAME_OR_PASSWORD)

        AuthService._ensure_organization_active(profile)

        result = AuthService._issue(profile)
        UserService.record_login(profile=profile, client_ip=client_ip)

        logger.info("Login ok user_id=%s username=%s", user.id, user.username)
        result["profile"] = selectors.get_profile(profile_id=profile.id)
        return result

    @staticmethod
    def refresh_token(*, raw: Optional[str]) -> dict[str, Any]:
        if not raw:
            raise BusinessException(ErrorCode.INVALID_TOKEN, "刷新令牌无效")
        try:
            token = DrmpRefreshToken(raw)
        except TokenError:
            raise BusinessException(ErrorCode.INVALID_TOKEN, "刷新令牌无效")

        user_id = token.get(api_settings.USER_ID_CLAIM)
        if TokenStore.current_refresh(user_id=user_id) != token.get("jti"):
            logger.info("Rejected superseded refresh token user_id=%s", user_id)
            raise BusinessException(ErrorCode.INVALID_TOKEN, "刷新令牌无效")

        profile = selectors.get_profile_for_user(user_id=user_id)
        if profile is None or profile.status != UserStatus.ACTIVE or not profile.user.is_active:
            raise BusinessException(ErrorCode.USER_DISABLED, "用户不存在或已被禁用")

        result = AuthService._issue(profile)
        logger.debug("Token refreshed user_id=%s", user_id)
        return result

    @staticmethod
    def logout(*, token: Token) -> None:
        user_id = token.get(api_settings.USER_ID_CLAIM)
        TokenStore.revoke(jti=token.get("jti"), ttl=remaining_seconds(token))
        if user_id is not None:
            TokenStore.forget_refresh(user_id=user_id)
        logger.info("Logout ok user_id=%s", user_id)

    @staticmethod
    def validate_token(*, raw: Optional[str]) -> bool:
        if not raw:
            return False
        try:
            token = AccessToken(raw)
        except TokenError:
            return False
        return not TokenStore.is_revoked(jti=token.get("jti"))
