"""Risk register entities: rows, controls, control links and pending changes."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, computed_field
from pydantic.alias_generators import to_camel


Score = Annotated[StrictInt, Field(ge=1, le=5)]

DEFAULT_RISK_APPETITE = 9


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def score_product(probability: int | None, impact: int | None) -> int | None:
    """probability × impact, or None when either side is unscored."""
    if probability is None or impact is None:
        return None
    return probability * impact


class EntityKind(str, Enum):
    ROW = "row"
    CONTROL = "control"
    CONTROL_LINK = "control_link"
    PENDING_CHANGE = "pending_change"


class ControlType(str, Enum):
    PREVENTATIVE = "Preventative"
    DETECTIVE = "Detective"
    CORRECTIVE = "Corrective"
    DIRECTIVE = "Directive"
    DETERRENT = "Deterrent"
    COMPENSATING = "Compensating"
    ACCEPTANCE = "Acceptance"
    TOLERANCE = "Tolerance"
    MANUAL = "Manual"
    AUTOMATED = "Automated"


class TestFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"
    AS_NEEDED = "as-needed"


class Role(str, Enum):
    """Roles, most to least privileged."""

    DIRECTOR = "director"
    MANAGER = "manager"
    RISK_MANAGER = "risk-manager"
    CONTROL_OWNER = "control-owner"
    CONTROL_TESTER = "control-tester"

    @property
    def is_manager(self) -> bool:
        """Approval authority (manager or director)."""
        return self in (Role.MANAGER, Role.DIRECTOR)

    @property
    def can_edit_definitions(self) -> bool:
        """May create, link and unlink controls and edit gross scores."""
        return self is Role.RISK_MANAGER or self.is_manager


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class _Entity(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Control(_Entity):
    """A mitigating control, embedded in one row or shared from the hub."""

    id: str = Field(default_factory=new_id)
    name: str
    description: str | None = None
    control_type: ControlType | None = None
    net_probability: Score | None = None
    net_impact: Score | None = None
    assigned_tester_id: str | None = None
    test_frequency: TestFrequency | None = None
    test_procedure: str | None = None
    comment: str | None = None
    # Set for embedded controls; hub controls belong to no single row.
    owner_row_id: str | None = None
    position: int = 0

    @computed_field(alias="netScore")
    @property
    def net_score(self) -> int | None:
        return score_product(self.net_probability, self.net_impact)

    @property
    def is_embedded(self) -> bool:
        return self.owner_row_id is not None


class ControlLink(_Entity):
    """Association of a hub control with a row, with optional score overrides."""

    id: str = Field(default_factory=new_id)
    row_id: str
    control_id: str
    net_probability: Score | None = None
    net_impact: Score | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @computed_field(alias="netScore")
    @property
    def net_score(self) -> int | None:
        return score_product(self.net_probability, self.net_impact)


class Row(_Entity):
    """One lowest-level risk × lowest-level process combination."""

    id: str = Field(default_factory=new_id)
    risk_id: str
    process_id: str
    risk_name: str = ""
    process_name: str = ""
    gross_probability: Score | None = None
    gross_impact: Score | None = None
    risk_appetite: int = DEFAULT_RISK_APPETITE
    controls: List[Control] = Field(default_factory=list)

    @computed_field(alias="grossScore")
    @property
    def gross_score(self) -> int | None:
        return score_product(self.gross_probability, self.gross_impact)

    @computed_field(alias="withinAppetite")
    @property
    def within_appetite(self) -> int | None:
        gross = self.gross_score
        return None if gross is None else self.risk_appetite - gross

    @property
    def pair_key(self) -> tuple[str, str]:
        return (self.risk_id, self.process_id)


class PendingChange(_Entity):
    """A submitted batch of control edits awaiting manager review."""

    id: str = Field(default_factory=new_id)
    entity_type: Literal["control"] = "control"
    entity_id: str
    entity_name: str
    change_type: Literal["update"] = "update"
    proposed_values: Dict[str, Any]
    current_values: Dict[str, Any] = Field(default_factory=dict)
    submitted_by: str
    submitted_at: datetime = Field(default_factory=utcnow)
    status: ApprovalStatus = ApprovalStatus.PENDING
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    rejection_reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not ApprovalStatus.PENDING


ENTITY_TYPES: Dict[EntityKind, type[_Entity]] = {
    EntityKind.ROW: Row,
    EntityKind.CONTROL: Control,
    EntityKind.CONTROL_LINK: ControlLink,
    EntityKind.PENDING_CHANGE: PendingChange,
}


def kind_of(entity: BaseModel) -> EntityKind:
    for kind, model in ENTITY_TYPES.items():
        if isinstance(entity, model):
            return kind
    raise TypeError(f"{type(entity).__name__} is not a register entity")
