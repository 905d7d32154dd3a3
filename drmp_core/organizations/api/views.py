# drmp_core/organizations/api/views.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser

from drmp_core.common.api.pagination import paginate
from drmp_core.common.api.params import int_param
from drmp_core.common.api.response import ok
from drmp_core.common.permissions import RES_ORG, CapabilityPermission
from drmp_core.organizations import selectors
from drmp_core.organizations.api.serializers import (
    FileUploadSerializer,
    OrganizationAuditSerializer,
    OrganizationSerializer,
    OrganizationStatusSerializer,
    OrganizationWriteSerializer,
)
from drmp_core.organizations.models import Organization
from drmp_core.organizations.services import OrganizationService


class OrganizationPermission(CapabilityPermission):
    """Capabilities for organization management"""
    capabilities_per_action = {
        "list": (RES_ORG, "LIST"),
        "retrieve": (RES_ORG, "VIEW"),
        "create": (RES_ORG, "ADD"),
        "update": (RES_ORG, "EDIT"),
        "destroy": (RES_ORG, "DELETE"),
        "audit": (RES_ORG, "AUDIT"),
        "pending_audit_count": (RES_ORG, "AUDIT"),
        "set_status": (RES_ORG, "EDIT"),
        "business_license": (RES_ORG, "EDIT"),
        "contract": (RES_ORG, "EDIT"),
        "disposal_active": (RES_ORG, "LIST"),
        "disposal_by_region": (RES_ORG, "LIST"),
    }
    public_actions = frozenset({"register", "check_name", "check_credit_code"})


def _actor_id(request):
    return getattr(request.user, "id", None)


@extend_schema_view(
    list=extend_schema(tags=["Organizations"], parameters=[
        OpenApiParameter("type", str), OpenApiParameter("status", str), OpenApiParameter("keyword", str),
        OpenApiParameter("current", int), OpenApiParameter("size", int),
    ]),
    retrieve=extend_schema(tags=["Organizations"], responses={200: OrganizationSerializer}),
    create=extend_schema(tags=["Organizations"], request=OrganizationWriteSerializer, responses={201: OrganizationSerializer}),
    update=extend_schema(tags=["Organizations"], request=OrganizationWriteSerializer, responses={200: OrganizationSerializer}),
    destroy=extend_schema(tags=["Organizations"]),
    register=extend_schema(tags=["Organizations"], request=OrganizationWriteSerializer, responses={201: OrganizationSerializer}),
    audit=extend_schema(tags=["Organizations"], request=OrganizationAuditSerializer, responses={200: OrganizationSerializer}),
    set_status=extend_schema(tags=["Organizations"], request=OrganizationStatusSerializer, responses={200: OrganizationSerializer}),
    business_license=extend_schema(tags=["Organizations"], request={"multipart/form-data": FileUploadSerializer}),
    contract=extend_schema(tags=["Organizations"], request={"multipart/form-data": FileUploadSerializer}),
    disposal_active=extend_schema(tags=["Organizations"], responses={200: OrganizationSerializer(many=True)}),
    disposal_by_region=extend_schema(tags=["Organizations"], responses={200: OrganizationSerializer(many=True)}),
    check_name=extend_schema(tags=["Organizations"]),
    check_credit_code=extend_schema(tags=["Organizations"]),
    pending_audit_count=extend_schema(tags=["Organizations"]),
)
class OrganizationViewSet(viewsets.ViewSet):
    """
    Thin API layer:
    - request validation via serializers
    - calls selectors for reads
    - calls OrganizationService for writes
    """

    permission_classes = [OrganizationPermission]
    parser_classes = [JSONParser, FormParser, MultiPartParser]
    lookup_value_regex = r"\d+"

    # ✅ critical for drf-spectacular
    serializer_class = OrganizationSerializer
    queryset = Organization.objects.none()

    # ----------------------------
    # CRUD
    # ----------------------------
    def list(self, request):
        qs = selectors.list_organizations(
            type=request.query_params.get("type") or None,
            status=request.query_params.get("status") or None,
            keyword=request.query_params.get("keyword") or None,
        )
        return paginate(request, qs, OrganizationSerializer)

    def retrieve(self, request, pk=None):
        org = selectors.get_organization(org_id=pk)
        return ok(OrganizationSerializer(org).data)

    def create(self, request):
        ser = OrganizationWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        org = OrganizationService.create(data=ser.validated_data, actor_id=_actor_id(request))
        return ok(OrganizationSerializer(org).data, message="机构创建成功", status=status.HTTP_201_CREATED)

    def update(self, request, pk=None):
        ser = OrganizationWriteSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        org = OrganizationService.update(org_id=pk, data=ser.validated_data, actor_id=_actor_id(request))
        return ok(OrganizationSerializer(org).data, message="机构更新成功")

    def destroy(self, request, pk=None):
        OrganizationService.delete(org_id=pk, actor_id=_actor_id(request))
        return ok(message="机构删除成功")

    # ----------------------------
    # Onboarding / audit
    # ----------------------------
    @action(detail=False, methods=["post"], authentication_classes=[])
    def register(self, request):
        ser = OrganizationWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        org = OrganizationService.create(data=ser.validated_data)
        return ok(OrganizationSerializer(org).data, message="机构注册成功，请等待审核", status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def audit(self, request, pk=None):
        ser = OrganizationAuditSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        org = OrganizationService.audit(
            org_id=pk,
            audit_status=ser.validated_data["audit_status"],
            comment=ser.validated_data.get("audit_comment", ""),
            actor_id=_actor_id(request),
        )
        return ok(OrganizationSerializer(org).data, message="审核完成")

    @action(detail=True, methods=["post"], url_path="status")
    def set_status(self, request, pk=None):
        ser = OrganizationStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        org = OrganizationService.set_status(
            org_id=pk, status=ser.validated_data["status"], actor_id=_actor_id(request)
        )
        return ok(OrganizationSerializer(org).data)

    @action(detail=True, methods=["post"], url_path="business-license")
    def business_license(self, request, pk=None):
        path = OrganizationService.upload_business_license(
            org_id=pk, upload=request.FILES.get("file"), actor_id=_actor_id(request)
        )
        return ok(path, message="营业执照上传成功")

    @action(detail=True, methods=["post"])
    def contract(self, request, pk=None):
        path = OrganizationService.upload_contract(
            org_id=pk, upload=request.FILES.get("file"), actor_id=_actor_id(request)
        )
        return ok(path, message="合同文件上传成功")

    # ----------------------------
    # Lookups
    # ----------------------------
    @action(detail=False, methods=["get"], url_path="disposal/active")
    def disposal_active(self, request):
        return ok(OrganizationSerializer(selectors.active_disposal_organizations(), many=True).data)

    @action(detail=False, methods=["get"], url_path=r"disposal/by-region/(?P<region>[^/]+)")
    def disposal_by_region(self, request, region=None):
        orgs = selectors.disposal_organizations_by_region(region=region)
        return ok(OrganizationSerializer(orgs, many=True).data)

    @action(detail=False, methods=["get"], url_path="check-name", authentication_classes=[])
    def check_name(self, request):
        exists = selectors.exists_by_name(
            name=request.query_params.get("name", ""),
            exclude_id=int_param(request, "exclude_id"),
        )
        return ok(not exists)

    @action(detail=False, methods=["get"], url_path="check-credit-code", authentication_classes=[])
    def check_credit_code(self, request):
        exists = selectors.exists_by_credit_code(
            code=request.query_params.get("code", ""),
            exclude_id=int_param(request, "exclude_id"),
        )
        return ok(not exists)

    @action(detail=False, methods=["get"], url_path="stats/pending-audit")
    def pending_audit_count(self, request):
        return ok(selectors.count_pending_audit())
