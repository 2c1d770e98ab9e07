import pytest
from fastapi.testclient import TestClient

from conftest import FakeAsyncSession, FakeResult, entity_handler, make_applicant, make_officer
from app.api.v1.routers import auth as auth_router
from app.core.security import decode_token, get_password_hash
from app.db.session import get_db
from app.main import app
from app.models import Officer, User
from app.schemas.application import OfficerRole


@pytest.fixture
def login_calls(monkeypatch):
    calls = {"limits": [], "attempts": []}

    async def fake_limits(ip, identifier):
        calls["limits"].append(identifier)

    async def fake_record(identifier, success):
        calls["attempts"].append((identifier, success))

    monkeypatch.setattr(auth_router, "enforce_login_limits", fake_limits)
    monkeypatch.setattr(auth_router, "record_login_attempt", fake_record)
    return calls


@pytest.fixture
def auth_db():
    db = FakeAsyncSession()

    async def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    yield db
    app.dependency_overrides.clear()


def test_applicant_login_issues_applicant_token(patch_jwt_keys, login_calls, auth_db):
    user = make_applicant(hashed_password=get_password_hash("Password123!"), token_version=2)
    auth_db.on_execute(entity_handler(User, FakeResult(scalar=user)))

    response = TestClient(app).post(
        "/api/v1/auth/login", json={"email": "Applicant@Example.com", "password": "Password123!"}
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["kind"] == "applicant"
    claims = decode_token(data["access_token"], expected_kind="applicant")
    assert claims["sub"] == str(user.id)
    assert claims["tv"] == 2
    assert login_calls["limits"] == ["applicant:applicant@example.com"]
    assert login_calls["attempts"] == [("applicant:applicant@example.com", True)]
    assert user.last_active_at is not None


def test_officer_login_issues_officer_token(patch_jwt_keys, login_calls, auth_db):
    officer = make_officer(OfficerRole.CITY_ENGINEER, position_type=None, hashed_password=get_password_hash("Password123!"))
    auth_db.on_execute(entity_handler(Officer, FakeResult(scalar=officer)))

    response = TestClient(app).post(
        "/api/v1/auth/officers/login", json={"email": officer.email, "password": "Password123!"}
    )

    assert response.status_code == 200
    token = response.json()["data"]["access_token"]
    assert decode_token(token, expected_kind="officer")["sub"] == str(officer.id)


def test_wrong_password_records_failure(patch_jwt_keys, login_calls, auth_db):
    user = make_applicant(hashed_password=get_password_hash("Password123!"))
    auth_db.on_execute(entity_handler(User, FakeResult(scalar=user)))

    response = TestClient(app).post(
        "/api/v1/auth/login", json={"email": "applicant@example.com", "password": "WrongPassword!"}
    )

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"
    assert login_calls["attempts"] == [("applicant:applicant@example.com", False)]


def test_unknown_account_is_invalid_credentials(patch_jwt_keys, login_calls, auth_db):
    response = TestClient(app).post(
        "/api/v1/auth/officers/login", json={"email": "nobody@pmc.gov.in", "password": "Password123!"}
    )

    assert response.status_code == 401
    assert login_calls["attempts"] == [("officer:nobody@pmc.gov.in", False)]


def test_inactive_account_cannot_login(patch_jwt_keys, login_calls, auth_db):
    user = make_applicant(hashed_password=get_password_hash("Password123!"), is_active=False)
    auth_db.on_execute(entity_handler(User, FakeResult(scalar=user)))

    response = TestClient(app).post(
        "/api/v1/auth/login", json={"email": "applicant@example.com", "password": "Password123!"}
    )

    assert response.status_code == 401
    assert response.json()["message"] == "Inactive account"


def test_register_creates_active_applicant(auth_db):
    response = TestClient(app).post(
        "/api/v1/auth/register",
        json={"email": "New.User@Example.com", "password": "Password123!", "full_name": " New User "},
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["email"] == "new.user@example.com"
    assert data["full_name"] == "New User"
    user = auth_db.added_of(User)[0]
    assert user.hashed_password != "Password123!"


def test_register_rejects_short_password(auth_db):
    response = TestClient(app).post(
        "/api/v1/auth/register",
        json={"email": "short@example.com", "password": "abc", "full_name": "Short"},
    )

    assert response.status_code == 400


def test_officer_token_cannot_reach_applicant_endpoints(patch_jwt_keys, auth_db):
    from app.core.security import create_access_token

    officer = make_officer()
    token = create_access_token(str(officer.id), "officer", token_version=0)

    response = TestClient(app).get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_me_resolves_applicant_from_token(patch_jwt_keys, auth_db):
    from app.core.security import create_access_token

    user = make_applicant()
    auth_db.on_execute(entity_handler(User, FakeResult(scalar=user)))
    token = create_access_token(str(user.id), "applicant", token_version=0)

    response = TestClient(app).get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["data"]["id"] == str(user.id)


def test_revoked_token_is_refused(patch_jwt_keys, auth_db):
    from app.core.security import create_access_token

    user = make_applicant(token_version=4)
    auth_db.on_execute(entity_handler(User, FakeResult(scalar=user)))
    token = create_access_token(str(user.id), "applicant", token_version=3)

    response = TestClient(app).get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["message"] == "Token revoked"


def test_logout_revokes_tokens(client, test_applicant):
    response = client.post("/api/v1/auth/logout")

    assert response.status_code == 200
    assert test_applicant.token_version == 1
