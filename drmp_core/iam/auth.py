# drmp_core/iam/auth.py

from __future__ import annotations

from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken

from drmp_core.iam.tokens import TokenStore, token_cookie_names


class CookieOrHeaderJWTAuthentication(JWTAuthentication):
    """
    Authenticate using:
      1) Authorization: Bearer <access>
      2) HttpOnly cookie containing access token

    ALSO rejects access tokens revoked by logout.
    """

    def get_validated_token(self, raw_token):
        validated_token = super().get_validated_token(raw_token)
        if TokenStore.is_revoked(jti=validated_token.get("jti")):
            raise InvalidToken({"detail": "令牌已失效", "code": "token_revoked"})
        return validated_token

    def authenticate(self, request):
        # 1) Prefer Authorization header
        header = self.get_header(request)
        if header:
            return super().authenticate(request)

        # 2) Cookie access token
        cookie_name, _ = token_cookie_names()
        raw_token = request.COOKIES.get(cookie_name)
        if not raw_token:
            return None

        validated_token = self.get_validated_token(raw_token)
        return self.get_user(validated_token), validated_token
