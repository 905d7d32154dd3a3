# drmp_core/iam/api/auth.py

from __future__ import annotations

from django.conf import settings
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema

from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.api.response import ok
from drmp_core.common.error_codes import ErrorCode
from drmp_core.iam import selectors
from drmp_core.iam.api.serializers import (
    LoginRequestSerializer,
    RefreshRequestSerializer,
    TokenResponseSerializer,
    UserInfoSerializer,
    ValidateRequestSerializer,
)
from drmp_core.iam.services.auth import AuthService
from drmp_core.iam.tokens import access_lifetime_seconds, refresh_lifetime_seconds, token_cookie_names


def client_ip(request) -> str:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR", "")


def _set_auth_cookies(response: Response, *, access: str, refresh: str) -> None:
    jwt_cfg = getattr(settings, "SIMPLE_JWT", {}) or {}
    access_name, refresh_name = token_cookie_names()

    secure = bool(jwt_cfg.get("AUTH_COOKIE_SECURE", False))
    samesite = jwt_cfg.get("AUTH_COOKIE_SAMESITE", "Lax")

    response.set_cookie(
        access_name,
        access,
        max_age=access_lifetime_seconds(),
        httponly=True,
        secure=secure,
        samesite=samesite,
        path="/",
    )
    response.set_cookie(
        refresh_name,
        refresh,
        max_age=refresh_lifetime_seconds(),
        httponly=True,
        secure=secure,
        samesite=samesite,
        path="/",
    )


def _clear_auth_cookies(response: Response) -> None:
    access_name, refresh_name = token_cookie_names()
    response.delete_cookie(access_name, path="/")
    response.delete_cookie(refresh_name, path="/")


def _bearer(request) -> str:
    header = request.META.get("HTTP_AUTHORIZATION", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return ""


class LoginView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        request=LoginRequestSerializer,
        responses={200: TokenResponseSerializer},
        tags=["Auth"],
    )
    def post(self, request):
        ser = LoginRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        result = AuthService.login(
            username=ser.validated_data["username"],
            password=ser.validated_data["password"],
            client_ip=client_ip(request),
        )
        profile = result.pop("profile")
        result["user_info"] = UserInfoSerializer(profile).data

        res = ok(result, message="登录成功")
        _set_auth_cookies(res, access=result["access_token"], refresh=result["refresh_token"])
        return res


class RefreshView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        request=RefreshRequestSerializer,
        responses={200: TokenResponseSerializer},
        tags=["Auth"],
    )
    def post(self, request):
        ser = RefreshRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        _, refresh_cookie_name = token_cookie_names()
        raw = ser.validated_data.get("refresh_token") or request.COOKIES.get(refresh_cookie_name)

        result = AuthService.refresh_token(raw=raw)

        res = ok(result, message="令牌刷新成功")
        _set_auth_cookies(res, access=result["access_token"], refresh=result["refresh_token"])
        return res


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(request=None, tags=["Auth"])
    def post(self, request):
        if request.auth is not None:
            AuthService.logout(token=request.auth)
        res = ok(message="登出成功")
        _clear_auth_cookies(res)
        return res


class ValidateView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(request=ValidateRequestSerializer, tags=["Auth"])
    def post(self, request):
        ser = ValidateRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        access_cookie_name, _ = token_cookie_names()
        raw = ser.validated_data.get("token") or _bearer(request) or request.COOKIES.get(access_cookie_name)
        return ok(AuthService.validate_token(raw=raw))


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: UserInfoSerializer}, tags=["Auth"])
    def get(self, request):
        profile = selectors.get_profile_for_user(user_id=request.user.id)
        if profile is None:
            raise BusinessException(ErrorCode.USER_NOT_FOUND)
        return ok(UserInfoSerializer(profile).data)
