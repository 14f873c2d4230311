"""Domain entities and typed field edits."""

from riskreg.domain.models import (
    ApprovalStatus,
    Control,
    ControlLink,
    ControlType,
    EntityKind,
    PendingChange,
    Role,
    Row,
    new_id,
    score_product,
    utcnow,
)
from riskreg.domain.edits import (
    EDITABLE_FIELDS,
    LINK_ID_KEY,
    FieldEdit,
    edit_target,
    edits_from_values,
    parse_edit,
    read_field,
    wire_value,
)

__all__ = [
    "ApprovalStatus",
    "Control",
    "ControlLink",
    "ControlType",
    "EntityKind",
    "PendingChange",
    "Role",
    "Row",
    "new_id",
    "score_product",
    "utcnow",
    "EDITABLE_FIELDS",
    "LINK_ID_KEY",
    "FieldEdit",
    "edit_target",
    "edits_from_values",
    "parse_edit",
    "read_field",
    "wire_value",
]
