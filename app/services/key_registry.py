from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping

from app.core.exceptions import KeyLabelNotConfigured
from app.core.settings import Settings, settings
from app.schemas.application import DocumentType
from app.services.stage_config import StageConfig

DEFAULT_POSITION = "DEFAULT"


@dataclass(frozen=True)
class KeyRegistry:
    """Signing key labels and signature placement, fixed at startup."""

    key_labels: Mapping[tuple[str, str], str]
    coordinates: Mapping[str, str]

    def key_label(self, officer_type: str, position_type: str | None) -> str:
        officer_type = officer_type.upper()
        if position_type:
            label = self.key_labels.get((officer_type, position_type.upper()))
            if label:
                return label
        label = self.key_labels.get((officer_type, DEFAULT_POSITION))
        if not label:
            raise KeyLabelNotConfigured(
                details={"officer_type": officer_type, "position_type": position_type},
            )
        return label

    def coordinates_for(self, document_type: DocumentType | str | None) -> str:
        value = document_type.value if isinstance(document_type, DocumentType) else document_type
        if value and value in self.coordinates:
            return self.coordinates[value]
        return self.coordinates[DocumentType.RECOMMENDATION_FORM.value]


def build_key_registry(config: Settings) -> KeyRegistry:
    labels: dict[tuple[str, str], str] = {}
    for officer_type, by_position in config.hsm_key_labels.items():
        for position, label in by_position.items():
            labels[(officer_type.upper(), position.upper())] = str(label)
    coordinates = {doc_type.upper(): coords for doc_type, coords in config.hsm_signature_coordinates.items()}
    if DocumentType.RECOMMENDATION_FORM.value not in coordinates:
        raise ValueError("HSM_SIGNATURE_COORDINATES must define RECOMMENDATION_FORM")
    return KeyRegistry(key_labels=MappingProxyType(labels), coordinates=MappingProxyType(coordinates))


@lru_cache(maxsize=1)
def get_key_registry() -> KeyRegistry:
    return build_key_registry(settings)


def key_label_for(officer, stage_config: StageConfig, application, registry: KeyRegistry | None = None) -> str:
    if officer.key_label:
        return officer.key_label
    if stage_config.key_officer_type is None:
        raise KeyLabelNotConfigured(
            "Stage does not sign documents",
            details={"stage": stage_config.stage.value},
        )
    registry = registry or get_key_registry()
    return registry.key_label(stage_config.key_officer_type, application.position_type)
