# drmp_core/iam/api/users.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied

from drmp_core.common.api.pagination import paginate
from drmp_core.common.api.params import int_param
from drmp_core.common.api.response import ok
from drmp_core.common.permissions import RES_USER, CapabilityPermission, check_capability
from drmp_core.iam import selectors
from drmp_core.iam.api.serializers import (
    AssignRolesSerializer,
    ChangePasswordSerializer,
    ResetPasswordSerializer,
    UserCreateSerializer,
    UserSerializer,
    UserStatusSerializer,
    UserUpdateSerializer,
)
from drmp_core.iam.models import UserProfile
from drmp_core.iam.services.users import UserService


class UserPermission(CapabilityPermission):
    capabilities_per_action = {
        "list": (RES_USER, "LIST"),
        "by_org": (RES_USER, "LIST"),
        "count_by_org": (RES_USER, "LIST"),
        "active_count": (RES_USER, "LIST"),
        "retrieve": (RES_USER, "VIEW"),
        "by_username": (RES_USER, "VIEW"),
        "create": (RES_USER, "ADD"),
        "update": (RES_USER, "EDIT"),
        "set_status": (RES_USER, "EDIT"),
        "destroy": (RES_USER, "DELETE"),
        "reset_password": (RES_USER, "RESET_PASSWORD"),
        "assign_roles": (RES_USER, "ASSIGN_ROLE"),
        # self-service; the handler checks ownership or USER_CHANGE_PASSWORD
        "change_password": None,
    }
    public_actions = frozenset({"check_username", "check_email"})


def _user_filters(request) -> dict:
    return {
        "status": request.query_params.get("status") or None,
        "keyword": request.query_params.get("keyword") or None,
    }


@extend_schema_view(
    list=extend_schema(tags=["Users"], parameters=[
        OpenApiParameter("org_id", int), OpenApiParameter("status", str), OpenApiParameter("keyword", str),
        OpenApiParameter("current", int), OpenApiParameter("size", int),
    ]),
    retrieve=extend_schema(tags=["Users"], responses={200: UserSerializer}),
    create=extend_schema(tags=["Users"], request=UserCreateSerializer, responses={201: UserSerializer}),
    update=extend_schema(tags=["Users"], request=UserUpdateSerializer, responses={200: UserSerializer}),
    destroy=extend_schema(tags=["Users"]),
    by_org=extend_schema(tags=["Users"]),
    by_username=extend_schema(tags=["Users"], responses={200: UserSerializer}),
    change_password=extend_schema(tags=["Users"], request=ChangePasswordSerializer),
    reset_password=extend_schema(tags=["Users"], request=ResetPasswordSerializer),
    set_status=extend_schema(tags=["Users"], request=UserStatusSerializer, responses={200: UserSerializer}),
    assign_roles=extend_schema(tags=["Users"], request=AssignRolesSerializer, responses={200: UserSerializer}),
    check_username=extend_schema(tags=["Users"]),
    check_email=extend_schema(tags=["Users"]),
    count_by_org=extend_schema(tags=["Users"]),
    active_count=extend_schema(tags=["Users"]),
)
class UserViewSet(viewsets.ViewSet):
    """
    Users are addressed by their profile id.
    """

    permission_classes = [UserPermission]
    lookup_value_regex = r"\d+"

    serializer_class = UserSerializer
    queryset = UserProfile.objects.none()

    def list(self, request):
        qs = selectors.list_profiles(org_id=int_param(request, "org_id"), **_user_filters(request))
        return paginate(request, qs, UserSerializer)

    def retrieve(self, request, pk=None):
        return ok(UserSerializer(selectors.get_profile(profile_id=pk)).data)

    def create(self, request):
        ser = UserCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        profile = UserService.create(data=ser.validated_data, actor_id=request.user.id)
        return ok(UserSerializer(profile).data, message="用户创建成功", status=status.HTTP_201_CREATED)

    def update(self, request, pk=None):
        ser = UserUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        profile = UserService.update(profile_id=pk, data=ser.validated_data, actor_id=request.user.id)
        return ok(UserSerializer(profile).data, message="用户更新成功")

    def destroy(self, request, pk=None):
        UserService.delete(profile_id=pk, actor_id=request.user.id)
        return ok(message="用户删除成功")

    @action(detail=False, methods=["get"], url_path=r"org/(?P<org_id>\d+)")
    def by_org(self, request, org_id=None):
        qs = selectors.list_profiles(org_id=org_id, **_user_filters(request))
        return paginate(request, qs, UserSerializer)

    @action(detail=False, methods=["get"], url_path=r"username/(?P<username>[^/]+)")
    def by_username(self, request, username=None):
        return ok(UserSerializer(selectors.get_profile_by_username(username=username)).data)

    # ----------------------------
    # Credentials / status / roles
    # ----------------------------
    @action(detail=True, methods=["post"], url_path="change-password")
    def change_password(self, request, pk=None):
        profile = selectors.get_profile(profile_id=pk)
        if profile.user_id != request.user.id and not check_capability(request.user, RES_USER, "CHANGE_PASSWORD"):
            raise PermissionDenied("权限不足")

        ser = ChangePasswordSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        UserService.change_password(
            profile_id=profile.id,
            old_password=ser.validated_data["old_password"],
            new_password=ser.validated_data["new_password"],
            actor_id=request.user.id,
        )
        return ok(message="密码修改成功")

    @action(detail=True, methods=["post"], url_path="reset-password")
    def reset_password(self, request, pk=None):
        ser = ResetPasswordSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        UserService.reset_password(
            profile_id=pk, new_password=ser.validated_data["new_password"], actor_id=request.user.id
        )
        return ok(message="密码重置成功")

    @action(detail=True, methods=["post"], url_path="status")
    def set_status(self, request, pk=None):
        ser = UserStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        profile = UserService.update_status(
            profile_id=pk, status=ser.validated_data["status"], actor_id=request.user.id
        )
        return ok(UserSerializer(profile).data, message="用户状态更新成功")

    @action(detail=True, methods=["post"], url_path="roles")
    def assign_roles(self, request, pk=None):
        ser = AssignRolesSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        profile = UserService.assign_roles(
            profile_id=pk, role_ids=ser.validated_data["role_ids"], actor_id=request.user.id
        )
        return ok(UserSerializer(profile).data, message="角色分配成功")

    # ----------------------------
    # Lookups / stats
    # ----------------------------
    @action(detail=False, methods=["get"], url_path="check-username", authentication_classes=[])
    def check_username(self, request):
        exists = selectors.exists_by_username(
            username=request.query_params.get("username", ""),
            exclude_profile_id=int_param(request, "exclude_id"),
        )
        return ok(not exists)

    @action(detail=False, methods=["get"], url_path="check-email", authentication_classes=[])
    def check_email(self, request):
        exists = selectors.exists_by_email(
            email=request.query_params.get("email", ""),
            exclude_profile_id=int_param(request, "exclude_id"),
        )
        return ok(not exists)

    @action(detail=False, methods=["get"], url_path=r"stats/org/(?P<org_id>\d+)/count")
    def count_by_org(self, request, org_id=None):
        return ok(selectors.count_by_org(org_id=org_id))

    @action(detail=False, methods=["get"], url_path="stats/active-count")
    def active_count(self, request):
        return ok(selectors.count_active())
