"""Static description of the approval chain.

Every workflow decision (who may act, what comes next, which checks run
before a signature) is read from ``STAGE_TABLE`` rather than from
per-role code paths.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from app.schemas.application import (
    ApplicationStatus,
    DocumentType,
    OfficerRole,
    WorkflowStage,
)


@dataclass(frozen=True, slots=True)
class StageConfig:
    stage: WorkflowStage
    pending_status: ApplicationStatus
    rejected_status: ApplicationStatus | None
    officer_role: OfficerRole | None
    predecessor: WorkflowStage | None
    successor: WorkflowStage | None
    requires_document_verification: bool = False
    requires_appointment: bool = False
    requires_signature: bool = False
    signed_document_type: DocumentType | None = None
    key_officer_type: str | None = None
    matches_position: bool = False

    @property
    def is_officer_stage(self) -> bool:
        return self.officer_role is not None

    @property
    def is_final(self) -> bool:
        return self.successor is None


_S = WorkflowStage
_A = ApplicationStatus

_STAGES = (
    StageConfig(
        stage=_S.JE,
        pending_status=_A.JE_PENDING,
        rejected_status=_A.REJECTED_BY_JE,
        officer_role=OfficerRole.JUNIOR_ENGINEER,
        predecessor=None,
        successor=_S.AE,
        requires_document_verification=True,
        requires_appointment=True,
        requires_signature=True,
        signed_document_type=DocumentType.RECOMMENDATION_FORM,
        key_officer_type="JE",
        matches_position=True,
    ),
    StageConfig(
        stage=_S.AE,
        pending_status=_A.AE_PENDING,
        rejected_status=_A.REJECTED_BY_AE,
        officer_role=OfficerRole.ASSISTANT_ENGINEER,
        predecessor=_S.JE,
        successor=_S.EE1,
        requires_signature=True,
        signed_document_type=DocumentType.RECOMMENDATION_FORM,
        key_officer_type="AE",
        matches_position=True,
    ),
    StageConfig(
        stage=_S.EE1,
        pending_status=_A.EE1_PENDING,
        rejected_status=_A.REJECTED_BY_EE1,
        officer_role=OfficerRole.EXECUTIVE_ENGINEER,
        predecessor=_S.AE,
        successor=_S.CE1,
        requires_signature=True,
        signed_document_type=DocumentType.RECOMMENDATION_FORM,
        key_officer_type="EE",
    ),
    StageConfig(
        stage=_S.CE1,
        pending_status=_A.CE1_PENDING,
        rejected_status=_A.REJECTED_BY_CE1,
        officer_role=OfficerRole.CITY_ENGINEER,
        predecessor=_S.EE1,
        successor=_S.PAYMENT,
        requires_signature=True,
        signed_document_type=DocumentType.RECOMMENDATION_FORM,
        key_officer_type="CE",
    ),
    StageConfig(
        stage=_S.PAYMENT,
        pending_status=_A.PAYMENT_PENDING,
        rejected_status=None,
        officer_role=None,
        predecessor=_S.CE1,
        successor=_S.CLERK,
    ),
    StageConfig(
        stage=_S.CLERK,
        pending_status=_A.CLERK_PENDING,
        rejected_status=_A.REJECTED_BY_CLERK,
        officer_role=OfficerRole.CLERK,
        predecessor=_S.PAYMENT,
        successor=_S.EE2,
    ),
    StageConfig(
        stage=_S.EE2,
        pending_status=_A.EE2_PENDING,
        rejected_status=_A.REJECTED_BY_EE2,
        officer_role=OfficerRole.EXECUTIVE_ENGINEER,
        predecessor=_S.CLERK,
        successor=_S.CE2,
        requires_signature=True,
        signed_document_type=DocumentType.LICENCE_CERTIFICATE,
        key_officer_type="EE",
    ),
    StageConfig(
        stage=_S.CE2,
        pending_status=_A.CE2_PENDING,
        rejected_status=_A.REJECTED_BY_CE2,
        officer_role=OfficerRole.CITY_ENGINEER,
        predecessor=_S.EE2,
        successor=None,
        requires_signature=True,
        signed_document_type=DocumentType.LICENCE_CERTIFICATE,
        key_officer_type="CE",
    ),
)

STAGE_TABLE: Mapping[WorkflowStage, StageConfig] = MappingProxyType({cfg.stage: cfg for cfg in _STAGES})
STAGE_ORDER: tuple[WorkflowStage, ...] = tuple(cfg.stage for cfg in _STAGES)
FIRST_STAGE = STAGE_ORDER[0]

_BY_PENDING_STATUS: Mapping[str, StageConfig] = MappingProxyType(
    {cfg.pending_status.value: cfg for cfg in _STAGES}
)


def get_stage_config(stage: WorkflowStage | str) -> StageConfig:
    return STAGE_TABLE[WorkflowStage(stage)]


def stage_for_status(status: ApplicationStatus | str) -> StageConfig | None:
    """Return the stage currently responsible for ``status``, if any."""
    value = status.value if isinstance(status, ApplicationStatus) else str(status)
    return _BY_PENDING_STATUS.get(value)


def next_status(stage: WorkflowStage | str) -> ApplicationStatus:
    cfg = get_stage_config(stage)
    if cfg.successor is None:
        return ApplicationStatus.COMPLETED
    return STAGE_TABLE[cfg.successor].pending_status


def stages_for_role(role: OfficerRole | str) -> tuple[StageConfig, ...]:
    role_value = OfficerRole(role)
    return tuple(cfg for cfg in _STAGES if cfg.officer_role == role_value)
