# drmp_core/cases/api/views.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action

from drmp_core.cases import selectors
from drmp_core.cases.api.serializers import (
    CaseAssignSerializer,
    CaseRecoverySerializer,
    CaseSerializer,
    CaseStatusSerializer,
    CaseWriteSerializer,
    RiskLevelRequestSerializer,
)
from drmp_core.cases.classification import calculate_overdue_level, calculate_risk_level
from drmp_core.cases.models import Case
from drmp_core.cases.services import CaseService
from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.api.pagination import paginate
from drmp_core.common.api.params import int_param
from drmp_core.common.api.response import ok
from drmp_core.common.error_codes import ErrorCode
from drmp_core.common.permissions import RES_CASE, CapabilityPermission


class CasePermission(CapabilityPermission):
    """Capabilities for case management"""
    capabilities_per_action = {
        "list": (RES_CASE, "READ"),
        "retrieve": (RES_CASE, "READ"),
        "by_receipt": (RES_CASE, "READ"),
        "by_package": (RES_CASE, "READ"),
        "by_organization": (RES_CASE, "READ"),
        "check_receipt_number": (RES_CASE, "READ"),
        "pending_assignment": (RES_CASE, "READ"),
        "overdue": (RES_CASE, "READ"),
        "by_overdue_days": (RES_CASE, "READ"),
        "status_statistics": (RES_CASE, "READ"),
        "organization_statistics": (RES_CASE, "READ"),
        "recovery_statistics": (RES_CASE, "READ"),
        "create": (RES_CASE, "CREATE"),
        "update": (RES_CASE, "UPDATE"),
        "set_status": (RES_CASE, "UPDATE"),
        "recovery": (RES_CASE, "UPDATE"),
        "destroy": (RES_CASE, "DELETE"),
        "assign": (RES_CASE, "ASSIGN"),
        # pure calculators
        "overdue_level": None,
        "risk_level": None,
    }


@extend_schema_view(
    list=extend_schema(tags=["Cases"], parameters=[
        OpenApiParameter("case_package_id", int), OpenApiParameter("status", str),
        OpenApiParameter("assigned_org_id", int), OpenApiParameter("keyword", str),
        OpenApiParameter("current", int), OpenApiParameter("size", int),
    ]),
    retrieve=extend_schema(tags=["Cases"], responses={200: CaseSerializer}),
    create=extend_schema(tags=["Cases"], request=CaseWriteSerializer, responses={201: CaseSerializer}),
    update=extend_schema(tags=["Cases"], request=CaseWriteSerializer, responses={200: CaseSerializer}),
    destroy=extend_schema(tags=["Cases"]),
    by_receipt=extend_schema(tags=["Cases"], responses={200: CaseSerializer}),
    by_package=extend_schema(tags=["Cases"], parameters=[
        OpenApiParameter("status", str), OpenApiParameter("keyword", str),
    ]),
    by_organization=extend_schema(tags=["Cases"], parameters=[OpenApiParameter("status", str)]),
    check_receipt_number=extend_schema(tags=["Cases"], parameters=[
        OpenApiParameter("receipt_number", str), OpenApiParameter("exclude_id", int),
    ]),
    pending_assignment=extend_schema(tags=["Cases"]),
    overdue=extend_schema(tags=["Cases"], parameters=[OpenApiParameter("timeout_days", int)]),
    by_overdue_days=extend_schema(tags=["Cases"], parameters=[
        OpenApiParameter("min_days", int), OpenApiParameter("max_days", int),
    ]),
    status_statistics=extend_schema(tags=["Cases"]),
    organization_statistics=extend_schema(tags=["Cases"]),
    recovery_statistics=extend_schema(tags=["Cases"]),
    assign=extend_schema(tags=["Cases"], request=CaseAssignSerializer),
    set_status=extend_schema(tags=["Cases"], request=CaseStatusSerializer, responses={200: CaseSerializer}),
    recovery=extend_schema(tags=["Cases"], request=CaseRecoverySerializer, responses={200: CaseSerializer}),
    overdue_level=extend_schema(tags=["Cases"], parameters=[OpenApiParameter("overdue_days", int)]),
    risk_level=extend_schema(tags=["Cases"], request=RiskLevelRequestSerializer),
)
class CaseViewSet(viewsets.ViewSet):
    """
    Thin API layer over CaseService / case selectors.
    """

    permission_classes = [CasePermission]
    lookup_value_regex = r"\d+"

    serializer_class = CaseSerializer
    queryset = Case.objects.none()

    # ----------------------------
    # CRUD
    # ----------------------------
    def list(self, request):
        qs = selectors.list_cases(
            case_package_id=int_param(request, "case_package_id"),
            status=request.query_params.get("status") or None,
            assigned_org_id=int_param(request, "assigned_org_id"),
            keyword=request.query_params.get("keyword") or None,
        )
        return paginate(request, qs, CaseSerializer)

    def retrieve(self, request, pk=None):
        return ok(CaseSerializer(selectors.get_case(case_id=pk)).data)

    def create(self, request):
        ser = CaseWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        case = CaseService.create(data=ser.validated_data, actor_id=request.user.id)
        return ok(CaseSerializer(case).data, message="案件创建成功", status=status.HTTP_201_CREATED)

    def update(self, request, pk=None):
        ser = CaseWriteSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        case = CaseService.update(case_id=pk, data=ser.validated_data, actor_id=request.user.id)
        return ok(CaseSerializer(case).data, message="案件更新成功")

    def destroy(self, request, pk=None):
        CaseService.delete(case_id=pk, actor_id=request.user.id)
        return ok(message="案件删除成功")

    # ----------------------------
    # Lookups
    # ----------------------------
    @action(detail=False, methods=["get"], url_path=r"receipt/(?P<receipt>[^/]+)")
    def by_receipt(self, request, receipt=None):
        return ok(CaseSerializer(selectors.get_case_by_receipt_number(receipt_number=receipt)).data)

    @action(detail=False, methods=["get"], url_path=r"package/(?P<package_id>\d+)")
    def by_package(self, request, package_id=None):
        qs = selectors.list_cases_by_package(
            case_package_id=package_id,
            status=request.query_params.get("status") or None,
            keyword=request.query_params.get("keyword") or None,
        )
        return paginate(request, qs, CaseSerializer)

    @action(detail=False, methods=["get"], url_path=r"organization/(?P<org_id>\d+)")
    def by_organization(self, request, org_id=None):
        qs = selectors.list_cases_by_organization(
            org_id=org_id, status=request.query_params.get("status") or None
        )
        return paginate(request, qs, CaseSerializer)

    @action(detail=False, methods=["get"], url_path="check-receipt-number")
    def check_receipt_number(self, request):
        exists = selectors.exists_by_receipt_number(
            receipt_number=request.query_params.get("receipt_number", ""),
            exclude_id=int_param(request, "exclude_id"),
        )
        return ok(not exists)

    @action(detail=False, methods=["get"], url_path="pending-assignment")
    def pending_assignment(self, request):
        return paginate(request, selectors.pending_assignment_cases(), CaseSerializer)

    @action(detail=False, methods=["get"])
    def overdue(self, request):
        qs = selectors.overdue_cases(timeout_days=int_param(request, "timeout_days", 7))
        return paginate(request, qs, CaseSerializer)

    @action(detail=False, methods=["get"], url_path="by-overdue-days")
    def by_overdue_days(self, request):
        min_days = int_param(request, "min_days", 0)
        max_days = int_param(request, "max_days")
        if max_days is None:
            raise BusinessException(ErrorCode.INVALID_PARAMETER, "max_days不能为空")
        qs = selectors.cases_by_overdue_days(min_days=min_days, max_days=max_days)
        return paginate(request, qs, CaseSerializer)

    # ----------------------------
    # Statistics
    # ----------------------------
    @action(detail=False, methods=["get"], url_path="statistics/status")
    def status_statistics(self, request):
        return ok(selectors.status_statistics())

    @action(detail=False, methods=["get"], url_path=r"statistics/organization/(?P<org_id>\d+)")
    def organization_statistics(self, request, org_id=None):
        return ok(selectors.status_statistics(org_id=int(org_id)))

    @action(detail=False, methods=["get"], url_path=r"statistics/recovery/(?P<org_id>\d+)")
    def recovery_statistics(self, request, org_id=None):
        return ok(selectors.recovery_statistics(org_id=int(org_id)))

    # ----------------------------
    # Workflow
    # ----------------------------
    @action(detail=False, methods=["post"])
    def assign(self, request):
        ser = CaseAssignSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        cases = CaseService.assign(
            case_ids=ser.validated_data["case_ids"],
            org_id=ser.validated_data["org_id"],
            actor_id=request.user.id,
        )
        return ok({"assigned_count": len(cases)}, message="案件分配成功")

    @action(detail=True, methods=["put"], url_path="status")
    def set_status(self, request, pk=None):
        ser = CaseStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        case = CaseService.update_status(
            case_id=pk,
            status=ser.validated_data["status"],
            progress=ser.validated_data.get("progress"),
            actor_id=request.user.id,
        )
        return ok(CaseSerializer(case).data, message="案件状态更新成功")

    @action(detail=True, methods=["put"])
    def recovery(self, request, pk=None):
        ser = CaseRecoverySerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        case = CaseService.update_recovery(
            case_id=pk,
            total_recovered=ser.validated_data["total_recovered"],
            recovery_rate=ser.validated_data["recovery_rate"],
            actor_id=request.user.id,
        )
        return ok(CaseSerializer(case).data, message="回款信息更新成功")

    # ----------------------------
    # Calculators
    # ----------------------------
    @action(detail=False, methods=["get"], url_path="calculate-overdue-level")
    def overdue_level(self, request):
        return ok(calculate_overdue_level(int_param(request, "overdue_days")))

    @action(detail=False, methods=["post"], url_path="calculate-risk-level")
    def risk_level(self, request):
        ser = RiskLevelRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        return ok(calculate_risk_level(
            ser.validated_data.get("overdue_days"),
            ser.validated_data.get("remaining_amount"),
        ))
