# drmp_core/iam/tests/test_user_api.py
import pytest
from rest_framework.test import APIClient

from drmp_core.common.error_codes import ErrorCode
from drmp_core.iam.models import PermissionType

pytestmark = pytest.mark.django_db


def test_create_and_fetch_user(api_client, disposal_org):
    res = api_client.post(
        "/api/v1/users/",
        {"username": "newbie", "email": "n@example.com", "organization_id": disposal_org.id, "phone": "13900139000"},
        format="json",
    )
    assert res.status_code == 201, res.json()
    user = res.json()["data"]
    assert user["roles"] == ["DISPOSAL_ADMIN"]
    assert user["organization_name"] == disposal_org.name
    assert "password" not in user

    by_name = api_client.get("/api/v1/users/username/newbie/").json()["data"]
    assert by_name["id"] == user["id"]


def test_create_validates_phone(api_client):
    res = api_client.post("/api/v1/users/", {"username": "badphone", "phone": "123"}, format="json")
    assert res.status_code == 400
    assert res.json()["message"].startswith("phone:")


def test_list_by_org(api_client, make_user, disposal_org):
    make_user("d1", organization=disposal_org)
    make_user("d2", organization=disposal_org)

    data = api_client.get(f"/api/v1/users/org/{disposal_org.id}/", {"size": 1}).json()["data"]
    assert data["total"] == 2
    assert data["pages"] == 2

    count = api_client.get(f"/api/v1/users/stats/org/{disposal_org.id}/count/").json()["data"]
    assert count == 2


def test_check_username_is_public(make_user):
    make_user("exists")
    client = APIClient()
    assert client.get("/api/v1/users/check-username/", {"username": "exists"}).json()["data"] is False
    assert client.get("/api/v1/users/check-username/", {"username": "free"}).json()["data"] is True

    res = client.get("/api/v1/users/check-username/", {"username": "free", "exclude_id": "x1"})
    assert res.status_code == 400
    assert res.json()["code"] == ErrorCode.INVALID_PARAMETER.code


def test_self_service_password_change(seeded, make_user):
    user = make_user("selfie")
    client = APIClient()
    client.force_authenticate(user=user)

    res = client.post(
        f"/api/v1/users/{user.drmp_profile.id}/change-password/",
        {"old_password": "Pass@12345", "new_password": "Another1"},
        format="json",
    )
    assert res.status_code == 200
    assert res.json()["message"] == "密码修改成功"


def test_changing_someone_elses_password_needs_capability(seeded, make_user):
    victim = make_user("victim")
    intruder = make_user("intruder")
    client = APIClient()
    client.force_authenticate(user=intruder)

    res = client.post(
        f"/api/v1/users/{victim.drmp_profile.id}/change-password/",
        {"old_password": "Pass@12345", "new_password": "Hacked1"},
        format="json",
    )
    assert res.status_code == 403


def test_status_and_roles_endpoints(api_client, make_user, seeded):
    from drmp_core.iam.models import Role

    target = make_user("target")
    pid = target.drmp_profile.id

    res = api_client.post(f"/api/v1/users/{pid}/status/", {"status": "DISABLED"}, format="json")
    assert res.json()["data"]["status"] == "DISABLED"

    role = Role.objects.get(code="SOURCE_ADMIN")
    res = api_client.post(f"/api/v1/users/{pid}/roles/", {"role_ids": [role.id]}, format="json")
    assert res.json()["message"] == "角色分配成功"
    assert res.json()["data"]["roles"] == ["SOURCE_ADMIN"]


def test_delete_user(api_client, make_user):
    target = make_user("bye")
    pid = target.drmp_profile.id
    assert api_client.delete(f"/api/v1/users/{pid}/").json()["message"] == "用户删除成功"

    res = api_client.get(f"/api/v1/users/{pid}/")
    assert res.status_code == 404
    assert res.json()["code"] == ErrorCode.USER_NOT_FOUND.code


def test_roles_listing(api_client):
    roles = api_client.get("/api/v1/roles/", {"org_type": "DISPOSAL"}).json()["data"]
    assert [r["code"] for r in roles] == ["DISPOSAL_ADMIN"]
    assert "CASE_READ" in roles[0]["permissions"]


def test_permission_tree(api_client):
    tree = api_client.get("/api/v1/permissions/tree/").json()["data"]
    assert [n["code"] for n in tree] == ["CASE", "CASE_PACKAGE", "ORG", "USER", "ROLE"]
    assert all(n["type"] == PermissionType.MENU for n in tree)
    assert tree[-1]["children"][0]["code"] == "ROLE_LIST"


def test_role_endpoints_need_capability(plain_client):
    assert plain_client.get("/api/v1/roles/").status_code == 403
