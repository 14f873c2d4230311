"""Request and response models for the register API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from riskreg.domain.models import Control, ControlLink
from riskreg.rows.generator import TaxonomyNode


class StandardApiError(BaseModel):
    code: str
    message: str
    status: int
    details: Dict[str, Any] = Field(default_factory=dict)


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ==================== Rows ====================

class RowUpdateRequest(ApiModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    gross_probability: Optional[int] = None
    gross_impact: Optional[int] = None
    risk_appetite: Optional[int] = None


class NetScoresResponse(ApiModel):
    row_id: str
    gross_score: Optional[int] = None
    net_probability: Optional[int] = None
    net_impact: Optional[int] = None
    net_score: Optional[int] = None
    has_controls: bool = False
    unscored: bool = False
    within_appetite: Optional[int] = None


class EffectiveControlResponse(ApiModel):
    control: Control
    link: Optional[ControlLink] = None
    net_probability: Optional[int] = None
    net_impact: Optional[int] = None
    net_score: Optional[int] = None
    link_count: int = 0
    shared_edit_warning: bool = False


class RowSyncRequest(ApiModel):
    risks: List[TaxonomyNode]
    processes: List[TaxonomyNode]


class RowSyncResponse(ApiModel):
    created: List[str] = Field(default_factory=list)
    kept: List[str] = Field(default_factory=list)
    removed: List[str] = Field(default_factory=list)


class LinkControlRequest(ApiModel):
    control_id: str
    net_probability: Optional[int] = None
    net_impact: Optional[int] = None


# ==================== Controls ====================

class CreateControlRequest(ApiModel):
    control: Dict[str, Any]
    row_id: Optional[str] = None
    embed: bool = False


class ControlDetailResponse(ApiModel):
    control: Control
    link_count: int = 0
    shared_edit_warning: bool = False
    pending_change_ids: List[str] = Field(default_factory=list)


class FieldEditRequest(ApiModel):
    field: str
    value: Any = None
    link_id: Optional[str] = None
    # False buffers the value (typing); True commits it straight away.
    commit: bool = True


class EditResponse(ApiModel):
    entity_id: str
    field: str
    committed: bool
    deferred: bool = False
    display_value: Any = None
    draft: Optional[Dict[str, Any]] = None


class DraftResponse(ApiModel):
    entity_id: str
    values: Dict[str, Any] = Field(default_factory=dict)
    unsaved: bool = False


class SubmitRequest(ApiModel):
    entity_name: Optional[str] = None
    is_embedded: Optional[bool] = None


# ==================== Sessions ====================

class SessionCloseResponse(ApiModel):
    session_id: str
    discarded_drafts: int


# ==================== Pending Changes ====================

class RejectRequest(ApiModel):
    reason: Optional[str] = None


class PendingCountResponse(ApiModel):
    pending: int
    by_status: Dict[str, int] = Field(default_factory=dict)


class PruneResponse(ApiModel):
    removed: int


class ApprovalSettingsModel(ApiModel):
    global_enabled: bool = False
    require_for_controls: bool = False
    require_for_risks: bool = False
    require_for_processes: bool = False
    entity_overrides: Dict[str, bool] = Field(default_factory=dict)


class ApprovalSettingsUpdate(ApiModel):
    global_enabled: Optional[bool] = None
    require_for_controls: Optional[bool] = None
    require_for_risks: Optional[bool] = None
    require_for_processes: Optional[bool] = None


class EntityOverrideRequest(ApiModel):
    enabled: bool


# ==================== Health ====================

class EntityCount(ApiModel):
    kind: str
    count: int


class HealthResponse(ApiModel):
    status: str
    store_backend: str
    entities: List[EntityCount]
    pending_changes: int
    open_sessions: int
