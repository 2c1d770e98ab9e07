import pytest

from conftest import FakeResult, entity_handler, make_officer
from app.api import deps
from app.main import app
from app.models import AuditLog, Officer
from app.schemas.application import OfficerRole


@pytest.fixture
def admin(client):
    officer = make_officer(OfficerRole.ADMIN, position_type=None)

    async def _get_admin():
        return officer

    app.dependency_overrides[deps.get_current_officer] = _get_admin
    return officer


def _payload(**overrides):
    payload = {
        "email": "New.JE@pmc.gov.in",
        "password": "Password123!",
        "full_name": "Nikhil Joshi",
        "role": "JUNIOR_ENGINEER",
        "position_type": "ARCHITECT",
    }
    payload.update(overrides)
    return payload


def test_non_admin_cannot_create_officer(client):
    response = client.post("/api/v1/officers", json=_payload())

    assert response.status_code == 403


def test_admin_creates_officer(client, admin, fake_db):
    response = client.post("/api/v1/officers", json=_payload(key_label="09160"))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["email"] == "new.je@pmc.gov.in"
    assert data["role"] == "JUNIOR_ENGINEER"
    assert data["position_type"] == "ARCHITECT"
    assert data["key_label"] == "09160"
    assert "hashed_password" not in data
    audit = fake_db.added_of(AuditLog)[0]
    assert audit.action == "officer.created"
    assert "hashed_password" not in audit.new_value
    assert fake_db.flushed is True


def test_junior_engineer_needs_position(client, admin):
    response = client.post("/api/v1/officers", json=_payload(position_type=None))

    assert response.status_code == 400


def test_executive_engineer_without_position(client, admin):
    response = client.post(
        "/api/v1/officers",
        json=_payload(email="ee@pmc.gov.in", role="EXECUTIVE_ENGINEER", position_type=None),
    )

    assert response.status_code == 201
    assert response.json()["data"]["position_type"] is None


def test_list_officers(client, admin, fake_db):
    clerk = make_officer(OfficerRole.CLERK, position_type=None)
    fake_db.on_execute(lambda stmt: FakeResult(scalar=1, items=[clerk]))

    response = client.get("/api/v1/officers?role=CLERK")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 1
    assert data["items"][0]["id"] == str(clerk.id)


def test_deactivating_officer_revokes_tokens(client, admin, fake_db):
    officer = make_officer(OfficerRole.ASSISTANT_ENGINEER, token_version=1)
    fake_db.on_execute(entity_handler(Officer, FakeResult(scalar=officer)))

    response = client.patch(f"/api/v1/officers/{officer.id}", json={"is_active": False})

    assert response.status_code == 200
    assert response.json()["data"]["is_active"] is False
    assert officer.token_version == 2


def test_update_unknown_officer_is_404(client, admin):
    response = client.patch(f"/api/v1/officers/{make_officer().id}", json={"full_name": "Someone"})

    assert response.status_code == 404
