# drmp_core/api/urls.py
from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from drmp_core.case_packages.api.views import CasePackageViewSet
from drmp_core.cases.api.views import CaseViewSet
from drmp_core.iam.api.auth import LoginView, LogoutView, MeView, RefreshView, ValidateView
from drmp_core.iam.api.roles import PermissionViewSet, RoleViewSet
from drmp_core.iam.api.users import UserViewSet
from drmp_core.organizations.api.views import OrganizationViewSet

router = DefaultRouter()

# ViewSet-backed modules (centralized)
router.register(r"organizations", OrganizationViewSet, basename="organizations")
router.register(r"users", UserViewSet, basename="users")
router.register(r"roles", RoleViewSet, basename="roles")
router.register(r"permissions", PermissionViewSet, basename="permissions")
router.register(r"cases", CaseViewSet, basename="cases")
router.register(r"case-packages", CasePackageViewSet, basename="case-packages")

urlpatterns = [
    # 🔐 Auth
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/refresh/", RefreshView.as_view(), name="refresh"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("auth/validate/", ValidateView.as_view(), name="validate"),
    path("auth/me/", MeView.as_view(), name="me"),

    path("", include(router.urls)),
]
