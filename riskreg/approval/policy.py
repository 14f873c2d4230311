"""Approval policy: which entity edits must go through the four-eye workflow."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Protocol

from riskreg.logging_config import get_logger
from riskreg.settings import Settings

logger = get_logger(name=__name__)


@dataclass(frozen=True)
class ApprovalSettings:
    global_enabled: bool = False
    require_for_controls: bool = False
    require_for_risks: bool = False
    require_for_processes: bool = False
    # Entity id -> explicit on/off, wins over the per-type default
    entity_overrides: Dict[str, bool] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ApprovalSettings":
        return cls(
            global_enabled=settings.approval_global_enabled,
            require_for_controls=settings.approval_require_for_controls,
            require_for_risks=settings.approval_require_for_risks,
            require_for_processes=settings.approval_require_for_processes,
            entity_overrides=dict(settings.approval_entity_overrides),
        )


class ApprovalPolicy(Protocol):
    def is_required(self, entity_type: str, entity_id: str) -> bool:
        ...


class SettingsApprovalPolicy:
    """Policy evaluated from tenant-level :class:`ApprovalSettings`.

    Globally disabled means never required. Otherwise a per-entity override
    decides when present, else the default for the entity type.
    """

    def __init__(self, settings: ApprovalSettings | None = None):
        self.settings = settings or ApprovalSettings()

    def is_required(self, entity_type: str, entity_id: str) -> bool:
        settings = self.settings
        if not settings.global_enabled:
            return False
        if entity_id in settings.entity_overrides:
            return settings.entity_overrides[entity_id]
        if entity_type == "control":
            return settings.require_for_controls
        if entity_type == "risk":
            return settings.require_for_risks
        if entity_type == "process":
            return settings.require_for_processes
        return False

    def update(self, **changes) -> ApprovalSettings:
        self.settings = replace(self.settings, **changes)
        logger.info("Approval settings updated: {}", sorted(changes))
        return self.settings

    def set_entity_override(self, entity_id: str, enabled: bool) -> None:
        overrides = {**self.settings.entity_overrides, entity_id: enabled}
        self.settings = replace(self.settings, entity_overrides=overrides)
        logger.info("Approval override for {} set to {}", entity_id, enabled)
