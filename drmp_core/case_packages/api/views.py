# drmp_core/case_packages/api/views.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser

from drmp_core.case_packages import selectors
from drmp_core.case_packages.api.serializers import (
    CasePackageSerializer,
    CasePackageWriteSerializer,
    ImportUploadSerializer,
)
from drmp_core.case_packages.imports import ImportService
from drmp_core.case_packages.models import CasePackage
from drmp_core.case_packages.services import CasePackageService
from drmp_core.common.api.pagination import paginate
from drmp_core.common.api.params import int_param
from drmp_core.common.api.response import ok
from drmp_core.common.permissions import RES_CASE, RES_CASE_PACKAGE, CapabilityPermission


class CasePackagePermission(CapabilityPermission):
    """Capabilities for case package management"""
    capabilities_per_action = {
        "list": (RES_CASE_PACKAGE, "READ"),
        "retrieve": (RES_CASE_PACKAGE, "READ"),
        "published": (RES_CASE_PACKAGE, "READ"),
        "check_name": (RES_CASE_PACKAGE, "READ"),
        "status_statistics": (RES_CASE_PACKAGE, "READ"),
        "create": (RES_CASE_PACKAGE, "CREATE"),
        "update": (RES_CASE_PACKAGE, "UPDATE"),
        "refresh_statistics": (RES_CASE_PACKAGE, "UPDATE"),
        "destroy": (RES_CASE_PACKAGE, "DELETE"),
        "publish": (RES_CASE_PACKAGE, "PUBLISH"),
        "withdraw": (RES_CASE_PACKAGE, "WITHDRAW"),
        "close": (RES_CASE_PACKAGE, "CLOSE"),
        "import_cases": (RES_CASE, "IMPORT"),
        "import_progress": (RES_CASE, "IMPORT"),
    }


@extend_schema_view(
    list=extend_schema(tags=["Case Packages"], parameters=[
        OpenApiParameter("source_org_id", int), OpenApiParameter("status", str), OpenApiParameter("keyword", str),
        OpenApiParameter("current", int), OpenApiParameter("size", int),
    ]),
    retrieve=extend_schema(tags=["Case Packages"], responses={200: CasePackageSerializer}),
    create=extend_schema(tags=["Case Packages"], request=CasePackageWriteSerializer, responses={201: CasePackageSerializer}),
    update=extend_schema(tags=["Case Packages"], request=CasePackageWriteSerializer, responses={200: CasePackageSerializer}),
    destroy=extend_schema(tags=["Case Packages"]),
    published=extend_schema(tags=["Case Packages"]),
    check_name=extend_schema(tags=["Case Packages"], parameters=[
        OpenApiParameter("source_org_id", int), OpenApiParameter("name", str), OpenApiParameter("exclude_id", int),
    ]),
    status_statistics=extend_schema(tags=["Case Packages"]),
    publish=extend_schema(tags=["Case Packages"], request=None, responses={200: CasePackageSerializer}),
    withdraw=extend_schema(tags=["Case Packages"], request=None, responses={200: CasePackageSerializer}),
    close=extend_schema(tags=["Case Packages"], request=None, responses={200: CasePackageSerializer}),
    refresh_statistics=extend_schema(tags=["Case Packages"], request=None, responses={200: CasePackageSerializer}),
    import_cases=extend_schema(tags=["Case Packages"], request={"multipart/form-data": ImportUploadSerializer}),
    import_progress=extend_schema(tags=["Case Packages"]),
)
class CasePackageViewSet(viewsets.ViewSet):
    """
    Thin API layer over CasePackageService and the import pipeline.
    """

    permission_classes = [CasePackagePermission]
    parser_classes = [JSONParser, FormParser, MultiPartParser]
    lookup_value_regex = r"\d+"

    serializer_class = CasePackageSerializer
    queryset = CasePackage.objects.none()

    # ----------------------------
    # CRUD
    # ----------------------------
    def list(self, request):
        qs = selectors.list_case_packages(
            source_org_id=int_param(request, "source_org_id"),
            status=request.query_params.get("status") or None,
            keyword=request.query_params.get("keyword") or None,
        )
        return paginate(request, qs, CasePackageSerializer)

    def retrieve(self, request, pk=None):
        return ok(CasePackageSerializer(selectors.get_case_package(package_id=pk)).data)

    def create(self, request):
        ser = CasePackageWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        package = CasePackageService.create(data=ser.validated_data, actor_id=request.user.id)
        return ok(CasePackageSerializer(package).data, message="案件包创建成功", status=status.HTTP_201_CREATED)

    def update(self, request, pk=None):
        ser = CasePackageWriteSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        package = CasePackageService.update(package_id=pk, data=ser.validated_data, actor_id=request.user.id)
        return ok(CasePackageSerializer(package).data, message="案件包更新成功")

    def destroy(self, request, pk=None):
        CasePackageService.delete(package_id=pk, actor_id=request.user.id)
        return ok(message="案件包删除成功")

    # ----------------------------
    # Lookups
    # ----------------------------
    @action(detail=False, methods=["get"])
    def published(self, request):
        return paginate(request, selectors.list_published(), CasePackageSerializer)

    @action(detail=False, methods=["get"], url_path="check-name")
    def check_name(self, request):
        exists = selectors.exists_by_name(
            source_org_id=int_param(request, "source_org_id"),
            name=request.query_params.get("name", ""),
            exclude_id=int_param(request, "exclude_id"),
        )
        return ok(not exists)

    @action(detail=False, methods=["get"], url_path="statistics/status")
    def status_statistics(self, request):
        return ok(selectors.status_statistics())

    # ----------------------------
    # Lifecycle
    # ----------------------------
    @action(detail=True, methods=["post"])
    def publish(self, request, pk=None):
        package = CasePackageService.publish(package_id=pk, actor_id=request.user.id)
        return ok(CasePackageSerializer(package).data, message="案件包发布成功")

    @action(detail=True, methods=["post"])
    def withdraw(self, request, pk=None):
        package = CasePackageService.withdraw(package_id=pk, actor_id=request.user.id)
        return ok(CasePackageSerializer(package).data, message="案件包撤回成功")

    @action(detail=True, methods=["post"])
    def close(self, request, pk=None):
        package = CasePackageService.close(package_id=pk, actor_id=request.user.id)
        return ok(CasePackageSerializer(package).data, message="案件包关闭成功")

    @action(detail=True, methods=["post"], url_path="refresh-statistics")
    def refresh_statistics(self, request, pk=None):
        package = CasePackageService.refresh_statistics(package_id=pk)
        return ok(CasePackageSerializer(package).data)

    # ----------------------------
    # Import
    # ----------------------------
    @action(detail=True, methods=["post"], url_path="import")
    def import_cases(self, request, pk=None):
        result = ImportService.start(package_id=pk, upload=request.FILES.get("file"), actor_id=request.user.id)
        return ok(result, message="导入任务已提交")

    @action(detail=False, methods=["get"], url_path=r"import/(?P<task_id>[0-9a-fA-F-]+)/progress")
    def import_progress(self, request, task_id=None):
        return ok(ImportService.get_progress(task_id=task_id))
