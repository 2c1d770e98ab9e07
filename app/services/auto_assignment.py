from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.settings import settings
from app.models.application import Application
from app.models.application_stage_review import ApplicationStageReview
from app.models.officer import Officer
from app.services.audit import record_audit_log
from app.services.stage_config import StageConfig

logger = logging.getLogger(__name__)


def open_review(
    db: AsyncSession,
    application: Application,
    stage_cfg: StageConfig,
) -> ApplicationStageReview:
    review = ApplicationStageReview(
        id=uuid.uuid4(),
        application_id=application.id,
        stage=stage_cfg.stage.value,
        review_cycle=application.review_cycle,
        approved=False,
        rejected=False,
        signature_applied=False,
    )
    db.add(review)
    return review


async def select_officer(
    db: AsyncSession,
    application: Application,
    stage_cfg: StageConfig,
    *,
    strategy: str | None = None,
    max_workload: int | None = None,
) -> Officer | None:
    """Pick the officer who should take ``stage_cfg`` for ``application``.

    ``workload`` orders candidates by open reviews, then by who was assigned
    least recently. ``round_robin`` only uses the last assignment time.
    Officers at or above the workload cap are never picked.
    """
    strategy = strategy or settings.assignment_strategy
    max_workload = max_workload or settings.assignment_max_workload

    open_reviews = func.count(ApplicationStageReview.id)
    stmt = (
        select(Officer, open_reviews.label("open_reviews"))
        .outerjoin(
            ApplicationStageReview,
            and_(
                ApplicationStageReview.assigned_officer_id == Officer.id,
                ApplicationStageReview.approved.is_(False),
                ApplicationStageReview.rejected.is_(False),
            ),
        )
        .where(
            Officer.role == stage_cfg.officer_role.value,
            Officer.is_active.is_(True),
        )
        .group_by(Officer.id)
        .having(open_reviews < max_workload)
    )
    if stage_cfg.matches_position:
        stmt = stmt.where(Officer.position_type == application.position_type)

    last_assigned = Officer.last_assigned_at.asc().nulls_first()
    if strategy == "round_robin":
        stmt = stmt.order_by(last_assigned, Officer.created_at.asc())
    else:
        stmt = stmt.order_by(open_reviews.asc(), last_assigned, Officer.created_at.asc())

    result = await db.execute(stmt.limit(1))
    row = result.first()
    return row[0] if row else None


def assign(
    db: AsyncSession,
    review: ApplicationStageReview,
    officer: Officer,
    *,
    actor_id=None,
    actor_kind: str = "SYSTEM",
) -> ApplicationStageReview:
    now = datetime.now(timezone.utc)
    previous = review.assigned_officer_id
    review.assigned_officer_id = officer.id
    review.assigned_at = now
    officer.last_assigned_at = now
    db.add(review)
    db.add(officer)
    record_audit_log(
        db,
        actor_id=actor_id,
        actor_kind=actor_kind,
        action="application_stage_review.assigned",
        resource_type="application_stage_review",
        resource_id=str(review.id),
        old_value={"assigned_officer_id": previous},
        new_value={"assigned_officer_id": officer.id, "stage": review.stage},
    )
    return review


async def auto_assign(
    db: AsyncSession,
    application: Application,
    stage_cfg: StageConfig,
    review: ApplicationStageReview,
) -> Officer | None:
    officer = await select_officer(db, application, stage_cfg)
    if officer is None:
        logger.warning(
            "No eligible officer for stage %s of application %s",
            stage_cfg.stage.value,
            application.application_number,
            extra={"application_id": application.id},
        )
        return None
    assign(db, review, officer)
    return officer
