# drmp_core/conftest.py
from datetime import date
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from drmp_core.organizations.models import AuditStatus, Organization, OrganizationStatus, OrganizationType


def case_payload(**overrides):
    """
    A case payload that passes every field rule. Override per test.
    """
    data = {
        "receipt_number": "R-0001",
        "debtor_id_card": "110101199003071234",
        "debtor_name": "张三丰",
        "debtor_phone": "13800138000",
        "loan_product": "消费贷",
        "loan_amount": Decimal("20000.00"),
        "remaining_amount": Decimal("15000.00"),
        "overdue_days": 45,
        "consigner": "某银行",
        "consign_start_date": date(2024, 1, 1),
        "consign_end_date": date(2024, 12, 31),
        "fund_provider": "某资方",
    }
    data.update(overrides)
    return data


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def seeded(db):
    from drmp_core.iam.services.seed import seed_permissions

    return seed_permissions()


@pytest.fixture
def source_org(db):
    return Organization.objects.create(
        name="案源机构A",
        type=OrganizationType.SOURCE,
        status=OrganizationStatus.ACTIVE,
        audit_status=AuditStatus.APPROVED,
    )


@pytest.fixture
def disposal_org(db):
    return Organization.objects.create(
        name="处置机构B",
        type=OrganizationType.DISPOSAL,
        status=OrganizationStatus.ACTIVE,
        audit_status=AuditStatus.APPROVED,
        service_regions=["北京", "上海"],
    )


@pytest.fixture
def make_user(db):
    """
    Factory: auth user + UserProfile with the given role codes.
    """
    from drmp_core.iam.models import Role, UserProfile, UserRole, UserStatus

    def _make(username="tester", *, password="Pass@12345", organization=None, role_codes=(), email=""):
        user = get_user_model().objects.create_user(username=username, password=password, email=email)
        profile = UserProfile.objects.create(
            user=user,
            organization=organization,
            status=UserStatus.ACTIVE,
            email_key=UserProfile.email_key_for(email),
        )
        for role in Role.objects.filter(code__in=list(role_codes)):
            UserRole.objects.create(user_profile=profile, role=role)
        return user

    return _make


@pytest.fixture
def admin_user(seeded, make_user, source_org):
    return make_user("platform_admin", organization=source_org, role_codes=["PLATFORM_ADMIN"])


@pytest.fixture
def plain_user(seeded, make_user, source_org):
    """Authenticated, but holds no roles."""
    return make_user("no_roles", organization=source_org)


@pytest.fixture
def api_client(admin_user):
    c = APIClient()
    c.force_authenticate(user=admin_user)
    return c


@pytest.fixture
def plain_client(plain_user):
    c = APIClient()
    c.force_authenticate(user=plain_user)
    return c


@pytest.fixture
def anon_client():
    return APIClient()


@pytest.fixture
def case_package(db, source_org):
    from drmp_core.case_packages.models import CasePackage

    return CasePackage.objects.create(name="2024年第一批", source_org=source_org)


@pytest.fixture
def make_case(case_package):
    from drmp_core.cases.services import CaseService

    def _make(**overrides):
        data = case_payload(**overrides)
        data.setdefault("case_package_id", case_package.id)
        return CaseService.create(data=data)

    return _make
