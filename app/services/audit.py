from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_audit_logger
from app.models.audit_log import AuditLog

# Credential material never enters the audit trail.
_SECRET_COLUMNS = frozenset({"hashed_password", "otp_hash"})


def _serialize(value: Any) -> Any:
    return jsonable_encoder(
        value,
        custom_encoder={
            Decimal: str,
            datetime: lambda v: v.isoformat(),
            date: lambda v: v.isoformat(),
        },
    )


def model_snapshot(model: Any, *, exclude: Iterable[str] | None = None) -> dict[str, Any]:
    """Column values of an ORM row, JSON-ready, without secrets."""
    if model is None:
        return {}
    excluded = _SECRET_COLUMNS | set(exclude or ())
    return _serialize(
        {column.name: getattr(model, column.name) for column in model.__table__.columns if column.name not in excluded}
    )


def _changed_fields(old: dict[str, Any], new: dict[str, Any]) -> dict[str, dict[str, Any]]:
    return {
        key: {"from": old.get(key), "to": new.get(key)}
        for key in sorted(set(old) | set(new))
        if old.get(key) != new.get(key)
    }


def _summary(action: str, changes: dict[str, dict[str, Any]]) -> str:
    status = changes.get("status")
    if status:
        return f"{action}: {status['from']} -> {status['to']}"
    if not changes:
        return action
    fields = list(changes)
    return f"{action}: {', '.join(fields[:3])}{'...' if len(fields) > 3 else ''}"


def record_audit_log(
    db: AsyncSession,
    *,
    actor_id,
    action: str,
    resource_type: str,
    resource_id: str,
    actor_kind: str = "OFFICER",
    old_value: dict[str, Any] | None = None,
    new_value: dict[str, Any] | None = None,
) -> AuditLog:
    old = _serialize(old_value) if old_value is not None else None
    new = _serialize(new_value) if new_value is not None else None
    changes = _changed_fields(old or {}, new or {})
    summary = _summary(action, changes)
    entry = AuditLog(
        actor_id=actor_id,
        actor_kind=actor_kind,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        old_value=old,
        new_value=new,
        changes=changes or None,
        summary=summary,
    )
    db.add(entry)
    get_audit_logger().info(
        "%s resource=%s/%s actor=%s:%s", summary, resource_type, resource_id, actor_kind, actor_id
    )
    return entry
