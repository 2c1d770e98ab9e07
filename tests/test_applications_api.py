from types import SimpleNamespace

from conftest import FakeResult, entity_handler, make_application, make_appointment, make_document
from app.models import Application
from app.schemas.application import ApplicationStatus, WorkflowAction, WorkflowStage
from app.services import workflow_orchestrator


def test_create_application_returns_draft(client, fake_db, test_applicant):
    created = {}

    def serve_created(stmt):
        descriptions = getattr(stmt, "column_descriptions", None)
        if descriptions and descriptions[0].get("entity") is Application:
            return FakeResult(scalar=created.get("application"))
        return None

    original_add = fake_db.add

    def tracking_add(obj):
        original_add(obj)
        if isinstance(obj, Application):
            created["application"] = obj

    fake_db.add = tracking_add
    fake_db.on_execute(serve_created)

    response = client.post(
        "/api/v1/applications",
        json={
            "position_type": "ARCHITECT",
            "full_name": "Asha Kulkarni",
            "email": "asha@example.com",
            "phone": "9876543210",
            "form_data": {"coa_number": "CA/2019/12345"},
        },
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "DRAFT"
    assert data["application_number"].startswith("PMC-ARC-")
    assert data["applicant_id"] == str(test_applicant.id)
    assert data["form_data"] == {"coa_number": "CA/2019/12345"}


def test_create_application_validates_position(client):
    response = client.post(
        "/api/v1/applications",
        json={"position_type": "PLUMBER", "full_name": "A", "email": "a@example.com", "phone": "9876543210"},
    )

    assert response.status_code == 422


def test_get_other_applicants_application_is_404(client, fake_db):
    application = make_application()
    fake_db.on_execute(entity_handler(Application, FakeResult(scalar=application)))

    response = client.get(f"/api/v1/applications/{application.id}")

    assert response.status_code == 404
    assert response.json()["code"] == "application_not_found"


def test_get_own_application_includes_documents(client, fake_db, test_applicant):
    application = make_application(ApplicationStatus.JE_PENDING, applicant=test_applicant)
    application.documents.append(make_document(application, "PAN_CARD"))
    fake_db.on_execute(entity_handler(Application, FakeResult(scalar=application)))

    response = client.get(f"/api/v1/applications/{application.id}")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "JE_PENDING"
    assert [doc["document_type"] for doc in data["documents"]] == ["PAN_CARD"]


def test_list_applications(client, fake_db, test_applicant):
    application = make_application(applicant=test_applicant)
    fake_db.on_execute(lambda stmt: FakeResult(scalar=1, items=[application]))

    response = client.get("/api/v1/applications?status=DRAFT")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 1
    assert data["items"][0]["id"] == str(application.id)


def test_submit_application(client, monkeypatch, test_applicant):
    application = make_application(applicant=test_applicant)

    async def fake_submit(db, application_id, applicant):
        assert applicant is test_applicant
        return SimpleNamespace(
            application_id=application.id,
            action=WorkflowAction.SUBMIT,
            from_status="DRAFT",
            to_status="JE_PENDING",
            stage=WorkflowStage.JE,
        )

    monkeypatch.setattr(workflow_orchestrator, "submit_application", fake_submit)

    response = client.post(f"/api/v1/applications/{application.id}/submit")

    assert response.status_code == 200
    assert response.json()["data"]["to_status"] == "JE_PENDING"


def test_upload_rejects_disallowed_extension(client, fake_db, test_applicant, storage_dir):
    application = make_application(applicant=test_applicant)
    fake_db.on_execute(entity_handler(Application, FakeResult(scalar=application)))

    response = client.post(
        f"/api/v1/applications/{application.id}/documents",
        data={"document_type": "PAN_CARD"},
        files={"file": ("pan.exe", b"MZ", "application/octet-stream")},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_upload"


def test_upload_document(client, fake_db, test_applicant, storage_dir):
    application = make_application(applicant=test_applicant)
    fake_db.on_execute(entity_handler(Application, FakeResult(scalar=application)))

    response = client.post(
        f"/api/v1/applications/{application.id}/documents",
        data={"document_type": "DEGREE_CERTIFICATE"},
        files={"file": ("degree.pdf", b"%PDF-1.4 degree", "application/pdf")},
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["document_type"] == "DEGREE_CERTIFICATE"
    assert data["is_verified"] is False
    assert data["size_bytes"] == len(b"%PDF-1.4 degree")


def test_download_certificate(client, fake_db, test_applicant, storage_dir):
    application = make_application(ApplicationStatus.COMPLETED, applicant=test_applicant)
    signed_path = "applications/cert/signed.pdf"
    (storage_dir / "applications" / "cert").mkdir(parents=True)
    (storage_dir / signed_path).write_bytes(b"%PDF-1.4 certificate")
    application.documents.append(
        make_document(application, "LICENCE_CERTIFICATE", is_signed=True, signed_file_path=signed_path)
    )
    fake_db.on_execute(entity_handler(Application, FakeResult(scalar=application)))

    response = client.get(f"/api/v1/applications/{application.id}/certificate")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content == b"%PDF-1.4 certificate"
    assert application.application_number in response.headers["content-disposition"]


def test_download_challan(client, fake_db, test_applicant, storage_dir):
    application = make_application(ApplicationStatus.CLERK_PENDING, applicant=test_applicant)
    challan_path = "applications/challan/payment_challan.pdf"
    (storage_dir / "applications" / "challan").mkdir(parents=True)
    (storage_dir / challan_path).write_bytes(b"%PDF-1.4 challan")
    application.documents.append(make_document(application, "PAYMENT_CHALLAN", file_path=challan_path))
    fake_db.on_execute(entity_handler(Application, FakeResult(scalar=application)))

    response = client.get(f"/api/v1/applications/{application.id}/challan")

    assert response.status_code == 200
    assert response.content == b"%PDF-1.4 challan"
    assert f"{application.application_number}-challan.pdf" in response.headers["content-disposition"]


def test_challan_before_payment_is_404(client, fake_db, test_applicant):
    application = make_application(ApplicationStatus.PAYMENT_PENDING, applicant=test_applicant)
    fake_db.on_execute(entity_handler(Application, FakeResult(scalar=application)))

    response = client.get(f"/api/v1/applications/{application.id}/challan")

    assert response.status_code == 404
    assert response.json()["code"] == "document_not_found"


def test_other_applicants_challan_is_hidden(client, fake_db):
    application = make_application(ApplicationStatus.CLERK_PENDING)
    application.documents.append(make_document(application, "PAYMENT_CHALLAN"))
    fake_db.on_execute(entity_handler(Application, FakeResult(scalar=application)))

    response = client.get(f"/api/v1/applications/{application.id}/challan")

    assert response.status_code == 404
    assert response.json()["code"] == "application_not_found"


def test_list_appointments(client, fake_db, test_applicant):
    application = make_application(ApplicationStatus.JE_PENDING, applicant=test_applicant)
    appointment = make_appointment(application, status="SCHEDULED")
    application.appointments.append(appointment)
    fake_db.on_execute(entity_handler(Application, FakeResult(scalar=application)))

    response = client.get(f"/api/v1/applications/{application.id}/appointments")

    assert response.status_code == 200
    data = response.json()["data"]
    assert [item["id"] for item in data] == [str(appointment.id)]
    assert data[0]["status"] == "SCHEDULED"
    assert data[0]["room_number"] == "204"
