"""Application status state machine.

``transition`` is the only code path that changes ``Application.status``.
It validates the actor and the action against the stage table, mutates the
application and its stage review, and appends one history row. It never
commits: callers load the application with ``load_application_for_update``
and commit (or roll back) the whole action as one unit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ApplicationNotFound, InvalidStageAction, Unauthorized
from app.models.application import Application
from app.models.application_comment import ApplicationComment
from app.models.application_stage_review import ApplicationStageReview
from app.models.application_status_history import ApplicationStatusHistory
from app.schemas.application import (
    REJECTED_STATUSES,
    ActorKind,
    ApplicationStatus,
    WorkflowAction,
    WorkflowStage,
)
from app.services.audit import record_audit_log
from app.services.stage_config import (
    FIRST_STAGE,
    STAGE_TABLE,
    StageConfig,
    next_status,
    stage_for_status,
)

logger = logging.getLogger(__name__)

_REJECTED_VALUES = {status.value for status in REJECTED_STATUSES}


@dataclass(frozen=True)
class Actor:
    kind: ActorKind
    id: UUID | None = None
    officer: Any = None

    @classmethod
    def for_officer(cls, officer) -> "Actor":
        return cls(kind=ActorKind.OFFICER, id=officer.id, officer=officer)

    @classmethod
    def for_applicant(cls, user) -> "Actor":
        return cls(kind=ActorKind.APPLICANT, id=user.id)


SYSTEM_ACTOR = Actor(kind=ActorKind.SYSTEM)


@dataclass(frozen=True)
class TransitionResult:
    application_id: UUID
    action: WorkflowAction
    from_status: str
    to_status: str
    stage: WorkflowStage | None
    history: ApplicationStatusHistory

    @property
    def rejected(self) -> bool:
        return self.to_status in _REJECTED_VALUES

    @property
    def entered_stage(self) -> StageConfig | None:
        return stage_for_status(self.to_status)

    @property
    def completed(self) -> bool:
        return self.to_status == ApplicationStatus.COMPLETED.value


async def load_application_for_update(db: AsyncSession, application_id) -> Application:
    stmt = (
        select(Application)
        .where(Application.id == application_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    application = result.scalar_one_or_none()
    if application is None:
        raise ApplicationNotFound(details={"application_id": str(application_id)})
    return application


async def current_review(
    db: AsyncSession,
    application: Application,
    stage: WorkflowStage,
) -> ApplicationStageReview | None:
    stmt = select(ApplicationStageReview).where(
        ApplicationStageReview.application_id == application.id,
        ApplicationStageReview.stage == stage.value,
        ApplicationStageReview.review_cycle == application.review_cycle,
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def authorize_officer(
    db: AsyncSession,
    application: Application,
    stage_cfg: StageConfig,
    officer,
) -> ApplicationStageReview:
    """Return the open review for the stage if ``officer`` may act on it."""
    if stage_cfg.officer_role is None or officer.role != stage_cfg.officer_role.value:
        raise Unauthorized(
            details={"required_role": getattr(stage_cfg.officer_role, "value", None), "stage": stage_cfg.stage.value},
        )
    if not officer.is_active:
        raise Unauthorized("Officer account is inactive")
    review = await current_review(db, application, stage_cfg.stage)
    if review is None or review.assigned_officer_id != officer.id:
        raise Unauthorized(
            "Only the assigned officer may act on this stage",
            details={"stage": stage_cfg.stage.value},
        )
    if review.approved or review.rejected:
        raise InvalidStageAction("Stage decision already recorded", details={"stage": stage_cfg.stage.value})
    return review


def _authorize_applicant(application: Application, actor: Actor) -> None:
    if actor.kind != ActorKind.APPLICANT or actor.id != application.applicant_id:
        raise Unauthorized("Only the applicant may submit this application")


def _record_comment(db: AsyncSession, application: Application, actor: Actor, stage, body: str) -> None:
    db.add(
        ApplicationComment(
            application_id=application.id,
            author_id=actor.id,
            author_kind=actor.kind.value,
            stage=stage.value if stage else None,
            body=body,
        )
    )


async def transition(
    db: AsyncSession,
    application: Application,
    action: WorkflowAction | str,
    actor: Actor,
    *,
    remarks: str | None = None,
    expected_status: ApplicationStatus | str | None = None,
    signature_transaction_id: str | None = None,
) -> TransitionResult:
    action = WorkflowAction(action)
    from_status = application.status
    remarks = (remarks or "").strip() or None
    if expected_status is not None and from_status != ApplicationStatus(expected_status).value:
        raise InvalidStageAction(
            "Application status changed before this action completed",
            details={"expected_status": ApplicationStatus(expected_status).value, "status": from_status},
        )

    now = datetime.now(timezone.utc)
    stage: WorkflowStage | None = None

    if action in {WorkflowAction.SUBMIT, WorkflowAction.RESUBMIT}:
        _authorize_applicant(application, actor)
        if action == WorkflowAction.SUBMIT and from_status != ApplicationStatus.DRAFT.value:
            raise InvalidStageAction("Only draft applications can be submitted", details={"status": from_status})
        if action == WorkflowAction.RESUBMIT and from_status not in _REJECTED_VALUES:
            raise InvalidStageAction(
                "Only rejected applications can be resubmitted",
                details={"status": from_status},
            )
        to_status = STAGE_TABLE[FIRST_STAGE].pending_status
        if action == WorkflowAction.RESUBMIT:
            application.review_cycle = (application.review_cycle or 1) + 1
        application.submitted_at = now
    else:
        stage_cfg = stage_for_status(from_status)
        if stage_cfg is None:
            raise InvalidStageAction(
                f"{action.value} is not valid while the application is {from_status}",
                details={"status": from_status, "action": action.value},
            )
        stage = stage_cfg.stage
        review = None
        if stage_cfg.officer_role is None:
            if actor.kind != ActorKind.SYSTEM:
                raise Unauthorized("This stage is completed by the payment gateway", details={"stage": stage.value})
        else:
            if actor.kind != ActorKind.OFFICER or actor.officer is None:
                raise Unauthorized(details={"stage": stage.value})
            review = await authorize_officer(db, application, stage_cfg, actor.officer)

        if action == WorkflowAction.SIGN and not stage_cfg.requires_signature:
            raise InvalidStageAction("This stage does not take a signature", details={"stage": stage.value})
        if action == WorkflowAction.APPROVE and stage_cfg.requires_signature:
            raise InvalidStageAction(
                "This stage is completed by signing the document",
                details={"stage": stage.value},
            )

        if action == WorkflowAction.REJECT:
            if stage_cfg.rejected_status is None:
                raise InvalidStageAction("This stage cannot be rejected", details={"stage": stage.value})
            if not remarks:
                raise InvalidStageAction("Rejection comments are required", details={"stage": stage.value})
            to_status = stage_cfg.rejected_status
            review.rejected = True
            review.rejected_at = now
            review.rejection_comments = remarks
            _record_comment(db, application, actor, stage, remarks)
        else:
            to_status = next_status(stage)
            if review is not None:
                review.approved = True
                review.approved_at = now
                review.approval_comments = remarks
                if action == WorkflowAction.SIGN:
                    review.signature_applied = True
                    review.signature_applied_at = now
                    review.signature_transaction_id = signature_transaction_id
                if remarks:
                    _record_comment(db, application, actor, stage, remarks)
        if review is not None:
            db.add(review)

    application.status = to_status.value
    history = ApplicationStatusHistory(
        application_id=application.id,
        from_status=from_status,
        to_status=to_status.value,
        stage=stage.value if stage else None,
        action=action.value,
        updated_by_id=actor.id,
        updated_by_kind=actor.kind.value,
        remarks=remarks,
    )
    db.add(application)
    db.add(history)
    record_audit_log(
        db,
        actor_id=actor.id,
        actor_kind=actor.kind.value,
        action=f"application.{action.value.lower()}",
        resource_type="application",
        resource_id=str(application.id),
        old_value={"status": from_status},
        new_value={"status": to_status.value, "review_cycle": application.review_cycle},
    )
    logger.info(
        "Application %s %s -> %s via %s",
        application.application_number,
        from_status,
        to_status.value,
        action.value,
        extra={"application_id": application.id},
    )
    return TransitionResult(
        application_id=application.id,
        action=action,
        from_status=from_status,
        to_status=to_status.value,
        stage=stage,
        history=history,
    )
