import pytest

from conftest import (
    FakeAsyncSession,
    FakeResult,
    entity_handler,
    make_applicant,
    make_application,
    make_officer,
    make_review,
)
from app.core.exceptions import ApplicationNotFound, InvalidStageAction, Unauthorized
from app.models import Application, ApplicationComment, ApplicationStageReview, ApplicationStatusHistory, AuditLog
from app.schemas.application import ApplicationStatus, OfficerRole, WorkflowAction, WorkflowStage
from app.services import stage_config
from app.services.stage_transitions import (
    SYSTEM_ACTOR,
    Actor,
    load_application_for_update,
    transition,
)


def _session_with_review(review) -> FakeAsyncSession:
    return FakeAsyncSession().on_execute(entity_handler(ApplicationStageReview, FakeResult(scalar=review)))


def test_stage_table_chain_is_linear():
    assert stage_config.STAGE_ORDER == (
        WorkflowStage.JE,
        WorkflowStage.AE,
        WorkflowStage.EE1,
        WorkflowStage.CE1,
        WorkflowStage.PAYMENT,
        WorkflowStage.CLERK,
        WorkflowStage.EE2,
        WorkflowStage.CE2,
    )
    for previous, current in zip(stage_config.STAGE_ORDER, stage_config.STAGE_ORDER[1:]):
        assert stage_config.STAGE_TABLE[previous].successor == current
        assert stage_config.STAGE_TABLE[current].predecessor == previous


def test_next_status_after_final_stage_is_completed():
    assert stage_config.next_status(WorkflowStage.CE1) == ApplicationStatus.PAYMENT_PENDING
    assert stage_config.next_status(WorkflowStage.CE2) == ApplicationStatus.COMPLETED


def test_stage_lookup_by_status():
    assert stage_config.stage_for_status("EE2_PENDING").stage == WorkflowStage.EE2
    assert stage_config.stage_for_status(ApplicationStatus.COMPLETED) is None
    assert {cfg.stage for cfg in stage_config.stages_for_role(OfficerRole.EXECUTIVE_ENGINEER)} == {
        WorkflowStage.EE1,
        WorkflowStage.EE2,
    }


def test_only_the_je_stage_requires_an_appointment():
    assert [cfg.stage for cfg in stage_config.STAGE_TABLE.values() if cfg.requires_appointment] == [WorkflowStage.JE]


@pytest.mark.asyncio
async def test_load_application_for_update_missing_raises():
    with pytest.raises(ApplicationNotFound):
        await load_application_for_update(FakeAsyncSession(), "00000000-0000-0000-0000-000000000000")


@pytest.mark.asyncio
async def test_load_application_for_update_locks_row():
    application = make_application()
    db = FakeAsyncSession().on_execute(entity_handler(Application, FakeResult(scalar=application)))

    loaded = await load_application_for_update(db, application.id)

    assert loaded is application
    assert db.statements[0]._for_update_arg is not None


@pytest.mark.asyncio
async def test_submit_moves_draft_to_je_and_records_history():
    applicant = make_applicant()
    application = make_application(applicant=applicant)
    db = FakeAsyncSession()

    result = await transition(db, application, WorkflowAction.SUBMIT, Actor.for_applicant(applicant))

    assert result.from_status == "DRAFT"
    assert result.to_status == "JE_PENDING"
    assert application.status == "JE_PENDING"
    assert application.submitted_at is not None
    history = db.added_of(ApplicationStatusHistory)
    assert len(history) == 1
    assert history[0].action == "SUBMIT"
    assert history[0].updated_by_kind == "APPLICANT"
    assert db.added_of(AuditLog)[0].action == "application.submit"
    assert db.committed is False


@pytest.mark.asyncio
async def test_submit_by_other_applicant_is_unauthorized():
    application = make_application()

    with pytest.raises(Unauthorized):
        await transition(FakeAsyncSession(), application, WorkflowAction.SUBMIT, Actor.for_applicant(make_applicant()))
    assert application.status == "DRAFT"


@pytest.mark.asyncio
async def test_submit_twice_is_invalid():
    applicant = make_applicant()
    application = make_application(ApplicationStatus.JE_PENDING, applicant=applicant)

    with pytest.raises(InvalidStageAction):
        await transition(FakeAsyncSession(), application, WorkflowAction.SUBMIT, Actor.for_applicant(applicant))


@pytest.mark.asyncio
async def test_resubmit_after_rejection_starts_new_cycle_at_je():
    applicant = make_applicant()
    application = make_application(ApplicationStatus.REJECTED_BY_EE1, applicant=applicant)

    result = await transition(FakeAsyncSession(), application, WorkflowAction.RESUBMIT, Actor.for_applicant(applicant))

    assert result.to_status == "JE_PENDING"
    assert application.review_cycle == 2


@pytest.mark.asyncio
async def test_resubmit_requires_rejected_status():
    applicant = make_applicant()
    application = make_application(applicant=applicant)

    with pytest.raises(InvalidStageAction):
        await transition(FakeAsyncSession(), application, WorkflowAction.RESUBMIT, Actor.for_applicant(applicant))


@pytest.mark.asyncio
async def test_sign_by_assigned_officer_advances_and_marks_review():
    officer = make_officer(OfficerRole.ASSISTANT_ENGINEER)
    application = make_application(ApplicationStatus.AE_PENDING)
    review = make_review(application, "AE", officer=officer)

    result = await transition(
        _session_with_review(review),
        application,
        WorkflowAction.SIGN,
        Actor.for_officer(officer),
        signature_transaction_id="TXN-1",
    )

    assert result.to_status == "EE1_PENDING"
    assert result.stage == WorkflowStage.AE
    assert result.entered_stage.stage == WorkflowStage.EE1
    assert review.approved is True
    assert review.signature_applied is True
    assert review.signature_transaction_id == "TXN-1"


@pytest.mark.asyncio
async def test_officer_with_wrong_role_is_unauthorized():
    officer = make_officer(OfficerRole.EXECUTIVE_ENGINEER, position_type=None)
    application = make_application(ApplicationStatus.AE_PENDING)
    review = make_review(application, "AE", officer=officer)

    with pytest.raises(Unauthorized):
        await transition(_session_with_review(review), application, WorkflowAction.SIGN, Actor.for_officer(officer))
    assert application.status == "AE_PENDING"


@pytest.mark.asyncio
async def test_unassigned_officer_is_unauthorized():
    officer = make_officer(OfficerRole.ASSISTANT_ENGINEER)
    application = make_application(ApplicationStatus.AE_PENDING)
    review = make_review(application, "AE", officer=make_officer(OfficerRole.ASSISTANT_ENGINEER))

    with pytest.raises(Unauthorized):
        await transition(_session_with_review(review), application, WorkflowAction.SIGN, Actor.for_officer(officer))


@pytest.mark.asyncio
async def test_approve_at_signing_stage_is_invalid():
    officer = make_officer(OfficerRole.ASSISTANT_ENGINEER)
    application = make_application(ApplicationStatus.AE_PENDING)
    review = make_review(application, "AE", officer=officer)

    with pytest.raises(InvalidStageAction):
        await transition(_session_with_review(review), application, WorkflowAction.APPROVE, Actor.for_officer(officer))
    assert review.approved is False


@pytest.mark.asyncio
async def test_sign_at_clerk_stage_is_invalid():
    clerk = make_officer(OfficerRole.CLERK, position_type=None)
    application = make_application(ApplicationStatus.CLERK_PENDING)
    review = make_review(application, "CLERK", officer=clerk)

    with pytest.raises(InvalidStageAction):
        await transition(_session_with_review(review), application, WorkflowAction.SIGN, Actor.for_officer(clerk))


@pytest.mark.asyncio
async def test_reject_requires_comments():
    officer = make_officer(OfficerRole.JUNIOR_ENGINEER)
    application = make_application(ApplicationStatus.JE_PENDING)
    review = make_review(application, "JE", officer=officer)

    with pytest.raises(InvalidStageAction):
        await transition(
            _session_with_review(review),
            application,
            WorkflowAction.REJECT,
            Actor.for_officer(officer),
            remarks="   ",
        )
    assert application.status == "JE_PENDING"


@pytest.mark.asyncio
async def test_reject_records_comment_and_rejected_status():
    officer = make_officer(OfficerRole.JUNIOR_ENGINEER)
    application = make_application(ApplicationStatus.JE_PENDING)
    review = make_review(application, "JE", officer=officer)
    db = _session_with_review(review)

    result = await transition(
        db,
        application,
        WorkflowAction.REJECT,
        Actor.for_officer(officer),
        remarks="Degree certificate is illegible",
    )

    assert result.to_status == "REJECTED_BY_JE"
    assert result.rejected is True
    assert review.rejected is True
    assert review.rejection_comments == "Degree certificate is illegible"
    comments = db.added_of(ApplicationComment)
    assert comments and comments[0].body == "Degree certificate is illegible"


@pytest.mark.asyncio
async def test_decided_review_cannot_act_again():
    officer = make_officer(OfficerRole.JUNIOR_ENGINEER)
    application = make_application(ApplicationStatus.JE_PENDING)
    review = make_review(application, "JE", officer=officer, approved=True)

    with pytest.raises(InvalidStageAction):
        await transition(_session_with_review(review), application, WorkflowAction.SIGN, Actor.for_officer(officer))


@pytest.mark.asyncio
async def test_payment_stage_only_advances_for_system():
    application = make_application(ApplicationStatus.PAYMENT_PENDING)
    officer = make_officer(OfficerRole.CITY_ENGINEER, position_type=None)

    with pytest.raises(Unauthorized):
        await transition(FakeAsyncSession(), application, WorkflowAction.APPROVE, Actor.for_officer(officer))

    result = await transition(FakeAsyncSession(), application, WorkflowAction.APPROVE, SYSTEM_ACTOR)
    assert result.to_status == "CLERK_PENDING"


@pytest.mark.asyncio
async def test_payment_stage_cannot_be_rejected():
    application = make_application(ApplicationStatus.PAYMENT_PENDING)

    with pytest.raises(InvalidStageAction):
        await transition(FakeAsyncSession(), application, WorkflowAction.REJECT, SYSTEM_ACTOR, remarks="no")


@pytest.mark.asyncio
async def test_completed_application_accepts_no_action():
    application = make_application(ApplicationStatus.COMPLETED)
    officer = make_officer(OfficerRole.CITY_ENGINEER, position_type=None)

    with pytest.raises(InvalidStageAction):
        await transition(FakeAsyncSession(), application, WorkflowAction.SIGN, Actor.for_officer(officer))


@pytest.mark.asyncio
async def test_expected_status_mismatch_is_rejected():
    officer = make_officer(OfficerRole.ASSISTANT_ENGINEER)
    application = make_application(ApplicationStatus.EE1_PENDING)
    review = make_review(application, "AE", officer=officer)

    with pytest.raises(InvalidStageAction):
        await transition(
            _session_with_review(review),
            application,
            WorkflowAction.SIGN,
            Actor.for_officer(officer),
            expected_status=ApplicationStatus.AE_PENDING,
        )
    assert application.status == "EE1_PENDING"
