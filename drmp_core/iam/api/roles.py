# drmp_core/iam/api/roles.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import viewsets
from rest_framework.decorators import action

from drmp_core.common.api.response import ok
from drmp_core.common.permissions import RES_ROLE, CapabilityPermission
from drmp_core.iam import selectors
from drmp_core.iam.api.serializers import RoleSerializer
from drmp_core.iam.models import Permission, Role


class RoleAccessPermission(CapabilityPermission):
    capabilities_per_action = {
        "list": (RES_ROLE, "LIST"),
        "tree": (RES_ROLE, "LIST"),
    }


@extend_schema_view(
    list=extend_schema(
        tags=["Roles"],
        parameters=[OpenApiParameter("org_type", str)],
        responses={200: RoleSerializer(many=True)},
    ),
)
class RoleViewSet(viewsets.ViewSet):
    permission_classes = [RoleAccessPermission]

    serializer_class = RoleSerializer
    queryset = Role.objects.none()

    def list(self, request):
        roles = selectors.list_roles(org_type=request.query_params.get("org_type") or None)
        return ok(RoleSerializer(roles, many=True).data)


@extend_schema_view(tree=extend_schema(tags=["Roles"]))
class PermissionViewSet(viewsets.ViewSet):
    permission_classes = [RoleAccessPermission]
    queryset = Permission.objects.none()

    @action(detail=False, methods=["get"])
    def tree(self, request):
        return ok(selectors.permission_tree())
