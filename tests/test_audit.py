from decimal import Decimal

from conftest import FakeAsyncSession, make_officer
from app.models import AuditLog
from app.services.audit import model_snapshot, record_audit_log


def test_snapshot_never_contains_password_hash():
    officer = make_officer(hashed_password="$2b$12$secret")

    snapshot = model_snapshot(officer)

    assert "hashed_password" not in snapshot
    assert snapshot["email"] == officer.email
    assert snapshot["id"] == str(officer.id)


def test_status_change_is_summarised():
    db = FakeAsyncSession()

    entry = record_audit_log(
        db,
        actor_id=None,
        actor_kind="SYSTEM",
        action="payment.completed",
        resource_type="payment",
        resource_id="p-1",
        old_value={"status": "PENDING", "amount": Decimal("3000.00")},
        new_value={"status": "COMPLETED", "amount": Decimal("3000.00")},
    )

    assert db.added_of(AuditLog) == [entry]
    assert entry.summary == "payment.completed: PENDING -> COMPLETED"
    assert entry.changes == {"status": {"from": "PENDING", "to": "COMPLETED"}}
    assert entry.new_value["amount"] == "3000.00"


def test_unchanged_values_record_no_changes():
    db = FakeAsyncSession()

    entry = record_audit_log(
        db,
        actor_id=None,
        action="application.viewed",
        resource_type="application",
        resource_id="a-1",
        old_value={"status": "DRAFT"},
        new_value={"status": "DRAFT"},
    )

    assert entry.changes is None
    assert entry.summary == "application.viewed"
