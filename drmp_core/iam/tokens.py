# drmp_core/iam/tokens.py
"""
Signed JWT pair plus the server-side token state kept in the shared cache:

  token:refresh:<user_id>   jti of the only refresh token still honoured
  token:blacklist:<jti>     revoked access tokens, until their natural expiry
"""
from __future__ import annotations

import logging
import time
from datetime import timedelta
from typing import Any, Optional

from django.conf import settings
from django.core.cache import cache
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import RefreshToken, Token

logger = logging.getLogger(__name__)

REFRESH_KEY_PREFIX = "token:refresh:"
BLACKLIST_KEY_PREFIX = "token:blacklist:"


def _seconds(value: Any) -> int:
    """
    Convert a JWT lifetime setting into seconds.
    Supports timedelta OR int/float (already seconds).
    """
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    return int(value)


def access_lifetime_seconds() -> int:
    return _seconds(api_settings.ACCESS_TOKEN_LIFETIME)


def refresh_lifetime_seconds() -> int:
    return _seconds(api_settings.REFRESH_TOKEN_LIFETIME)


def remaining_seconds(token: Token) -> int:
    exp = token.get("exp")
    if not exp:
        return 0
    return max(int(exp) - int(time.time()), 0)


class DrmpRefreshToken(RefreshToken):
    """
    Refresh token whose claims (copied onto the derived access token) carry
    the organization the user acts for.
    """

    @classmethod
    def for_profile(cls, profile) -> "DrmpRefreshToken":
        token = cls.for_user(profile.user)
        org = profile.organization
        token["org_id"] = org.id if org is not None else None
        token["org_type"] = org.type if org is not None else None
        return token


class TokenStore:
    """
    Cache-backed token state shared by every process using the same cache.
    """

    @staticmethod
    def _refresh_key(user_id) -> str:
        return f"{REFRESH_KEY_PREFIX}{user_id}"

    @staticmethod
    def _blacklist_key(jti: str) -> str:
        return f"{BLACKLIST_KEY_PREFIX}{jti}"

    @staticmethod
    def remember_refresh(*, user_id, jti: str) -> None:
        # Overwrites the previous entry: only the latest refresh token is honoured.
        cache.set(TokenStore._refresh_key(user_id), jti, timeout=refresh_lifetime_seconds())

    @staticmethod
    def current_refresh(*, user_id) -> Optional[str]:
        return cache.get(TokenStore._refresh_key(user_id))

    @staticmethod
    def forget_refresh(*, user_id) -> None:
        cache.delete(TokenStore._refresh_key(user_id))

    @staticmethod
    def revoke(*, jti: str, ttl: int) -> None:
        if ttl <= 0:
            return
        cache.set(TokenStore._blacklist_key(jti), "blacklisted", timeout=ttl)

    @staticmethod
    def is_revoked(*, jti: Optional[str]) -> bool:
        if not jti:
            return False
        return cache.get(TokenStore._blacklist_key(jti)) is not None


def token_cookie_names() -> tuple[str, str]:
    jwt_cfg = getattr(settings, "SIMPLE_JWT", {}) or {}
    return (
        jwt_cfg.get("AUTH_COOKIE", "drmp_access"),
        jwt_cfg.get("AUTH_COOKIE_REFRESH", "drmp_refresh"),
    )
