"""Document review appointments held by the JE before verification.

An appointment belongs to one review cycle. Scheduling again replaces the
open appointment (it is marked ``RESCHEDULED``); documents can be verified
only after the latest appointment of the cycle is ``COMPLETED``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AppointmentNotCompleted, AppointmentNotFound, InvalidStageAction
from app.models.application import Application
from app.models.appointment import Appointment
from app.schemas.application import AppointmentStatus
from app.services import stage_transitions
from app.services.audit import model_snapshot, record_audit_log
from app.services.stage_config import StageConfig, stage_for_status

logger = logging.getLogger(__name__)

_OPEN = AppointmentStatus.SCHEDULED.value


def _appointment_stage(application: Application) -> StageConfig:
    stage_cfg = stage_for_status(application.status)
    if stage_cfg is None or not stage_cfg.requires_appointment:
        raise InvalidStageAction(
            "Appointments cannot be scheduled at the current stage",
            details={"status": application.status},
        )
    return stage_cfg


async def list_appointments(db: AsyncSession, application: Application) -> list[Appointment]:
    stmt = (
        select(Appointment)
        .where(Appointment.application_id == application.id)
        .order_by(Appointment.created_at.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def latest_appointment(db: AsyncSession, application: Application) -> Appointment | None:
    """Most recent appointment of the application's current review cycle."""
    stmt = (
        select(Appointment)
        .where(
            Appointment.application_id == application.id,
            Appointment.review_cycle == application.review_cycle,
        )
        .order_by(Appointment.created_at.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalars().first()


def latest_of_cycle(appointments: Iterable[Appointment], review_cycle: int) -> Appointment | None:
    in_cycle = [item for item in appointments if item.review_cycle == review_cycle]
    return max(in_cycle, key=lambda item: item.created_at, default=None)


def appointment_completed(appointment: Appointment | None) -> bool:
    return appointment is not None and appointment.status == AppointmentStatus.COMPLETED.value


async def ensure_appointment_completed(db: AsyncSession, application: Application) -> Appointment:
    appointment = await latest_appointment(db, application)
    if not appointment_completed(appointment):
        raise AppointmentNotCompleted(
            details={
                "appointment_id": str(appointment.id) if appointment is not None else None,
                "status": appointment.status if appointment is not None else None,
            }
        )
    return appointment


async def schedule_appointment(
    db: AsyncSession,
    *,
    application: Application,
    officer,
    scheduled_at: datetime,
    place: str,
    room_number: str,
    contact_person: str,
    comments: str | None = None,
    now: datetime | None = None,
) -> Appointment:
    now = now or datetime.now(timezone.utc)
    stage_cfg = _appointment_stage(application)
    await stage_transitions.authorize_officer(db, application, stage_cfg, officer)
    if scheduled_at <= now:
        raise InvalidStageAction(
            "Appointment time must be in the future",
            details={"scheduled_at": scheduled_at.isoformat()},
        )

    previous = await latest_appointment(db, application)
    if appointment_completed(previous):
        raise InvalidStageAction(
            "The appointment for this review cycle is already completed",
            details={"appointment_id": str(previous.id)},
        )
    replaced = previous if previous is not None and previous.status == _OPEN else None
    if replaced is not None:
        replaced.status = AppointmentStatus.RESCHEDULED.value
        db.add(replaced)

    appointment = Appointment(
        application_id=application.id,
        review_cycle=application.review_cycle,
        scheduled_by_id=officer.id,
        scheduled_at=scheduled_at,
        place=place.strip(),
        room_number=room_number.strip(),
        contact_person=contact_person.strip(),
        comments=(comments or "").strip() or None,
        status=_OPEN,
        created_at=now,
    )
    db.add(appointment)
    await db.flush()
    record_audit_log(
        db,
        actor_id=officer.id,
        action="appointment.rescheduled" if replaced is not None else "appointment.scheduled",
        resource_type="appointment",
        resource_id=str(appointment.id),
        old_value=model_snapshot(replaced) if replaced is not None else None,
        new_value=model_snapshot(appointment),
    )
    logger.info(
        "Appointment scheduled application=%s appointment=%s at=%s",
        application.id,
        appointment.id,
        scheduled_at.isoformat(),
    )
    return appointment


async def complete_appointment(
    db: AsyncSession,
    *,
    application: Application,
    appointment_id,
    officer,
    notes: str | None = None,
) -> Appointment:
    stage_cfg = _appointment_stage(application)
    await stage_transitions.authorize_officer(db, application, stage_cfg, officer)

    stmt = select(Appointment).where(
        Appointment.id == appointment_id,
        Appointment.application_id == application.id,
    )
    result = await db.execute(stmt)
    appointment = result.scalar_one_or_none()
    if appointment is None:
        raise AppointmentNotFound(details={"appointment_id": str(appointment_id)})
    if appointment.status != _OPEN or appointment.review_cycle != application.review_cycle:
        raise InvalidStageAction(
            "Only a scheduled appointment of the current review cycle can be completed",
            details={"appointment_id": str(appointment.id), "status": appointment.status},
        )

    old_snapshot = model_snapshot(appointment)
    appointment.status = AppointmentStatus.COMPLETED.value
    appointment.completed_at = datetime.now(timezone.utc)
    appointment.completion_notes = (notes or "").strip() or None
    db.add(appointment)
    record_audit_log(
        db,
        actor_id=officer.id,
        action="appointment.completed",
        resource_type="appointment",
        resource_id=str(appointment.id),
        old_value=old_snapshot,
        new_value=model_snapshot(appointment),
    )
    return appointment
