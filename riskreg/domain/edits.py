"""Closed set of editable control fields.

Each editable field is its own edit type carrying a validated value. Wire
field names (``name``, ``netProbability``, ``link_netImpact``...) only enter
the system through :func:`parse_edit`; everything downstream works with
the typed edits, so an invalid key cannot reach the entity store.

Per-link score overrides are separate edit types that also carry the owning
link id, because their apply target is the ControlLink, not the Control.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Tuple, Union

from riskreg.domain.models import Control, ControlLink, ControlType, EntityKind, TestFrequency
from riskreg.errors import InvalidFieldValueError, UnknownFieldError


LINK_PREFIX = "link_"
LINK_ID_KEY = "_linkId"


def _check_text(field: str, value: Any, *, required: bool = False) -> str | None:
    if value is None:
        if required:
            raise InvalidFieldValueError(field, value, "a value is required")
        return None
    if not isinstance(value, str):
        raise InvalidFieldValueError(field, value, "expected text")
    if required and not value.strip():
        raise InvalidFieldValueError(field, value, "must not be blank")
    return value


def _check_score(field: str, value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidFieldValueError(field, value, "expected an integer score")
    if not 1 <= value <= 5:
        raise InvalidFieldValueError(field, value, "score must be between 1 and 5")
    return value


def _check_enum(field: str, value: Any, enum_cls: type[Enum]):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidFieldValueError(field, value, f"expected one of: {allowed}") from None


@dataclass(frozen=True)
class NameEdit:
    value: str
    field: ClassVar[str] = "name"
    attribute: ClassVar[str] = "name"

    def __post_init__(self):
        _check_text(self.field, self.value, required=True)


@dataclass(frozen=True)
class DescriptionEdit:
    value: str | None
    field: ClassVar[str] = "description"
    attribute: ClassVar[str] = "description"

    def __post_init__(self):
        _check_text(self.field, self.value)


@dataclass(frozen=True)
class CommentEdit:
    value: str | None
    field: ClassVar[str] = "comment"
    attribute: ClassVar[str] = "comment"

    def __post_init__(self):
        _check_text(self.field, self.value)


@dataclass(frozen=True)
class TestProcedureEdit:
    __test__ = False

    value: str | None
    field: ClassVar[str] = "testProcedure"
    attribute: ClassVar[str] = "test_procedure"

    def __post_init__(self):
        _check_text(self.field, self.value)


@dataclass(frozen=True)
class AssignedTesterEdit:
    value: str | None
    field: ClassVar[str] = "assignedTesterId"
    attribute: ClassVar[str] = "assigned_tester_id"

    def __post_init__(self):
        _check_text(self.field, self.value)


@dataclass(frozen=True)
class ControlTypeEdit:
    value: ControlType | None
    field: ClassVar[str] = "controlType"
    attribute: ClassVar[str] = "control_type"

    def __post_init__(self):
        object.__setattr__(self, "value", _check_enum(self.field, self.value, ControlType))


@dataclass(frozen=True)
class TestFrequencyEdit:
    __test__ = False

    value: TestFrequency | None
    field: ClassVar[str] = "testFrequency"
    attribute: ClassVar[str] = "test_frequency"

    def __post_init__(self):
        object.__setattr__(self, "value", _check_enum(self.field, self.value, TestFrequency))


@dataclass(frozen=True)
class ProbabilityEdit:
    value: int | None
    field: ClassVar[str] = "netProbability"
    attribute: ClassVar[str] = "net_probability"

    def __post_init__(self):
        _check_score(self.field, self.value)


@dataclass(frozen=True)
class ImpactEdit:
    value: int | None
    field: ClassVar[str] = "netImpact"
    attribute: ClassVar[str] = "net_impact"

    def __post_init__(self):
        _check_score(self.field, self.value)


@dataclass(frozen=True)
class LinkProbabilityEdit:
    link_id: str
    value: int | None
    field: ClassVar[str] = "link_netProbability"
    attribute: ClassVar[str] = "net_probability"

    def __post_init__(self):
        _check_score(self.field, self.value)


@dataclass(frozen=True)
class LinkImpactEdit:
    link_id: str
    value: int | None
    field: ClassVar[str] = "link_netImpact"
    attribute: ClassVar[str] = "net_impact"

    def __post_init__(self):
        _check_score(self.field, self.value)


ControlEdit = Union[
    NameEdit,
    DescriptionEdit,
    CommentEdit,
    TestProcedureEdit,
    AssignedTesterEdit,
    ControlTypeEdit,
    TestFrequencyEdit,
    ProbabilityEdit,
    ImpactEdit,
]
LinkEdit = Union[LinkProbabilityEdit, LinkImpactEdit]
FieldEdit = Union[ControlEdit, LinkEdit]

CONTROL_EDITS: Tuple[type, ...] = (
    NameEdit,
    DescriptionEdit,
    CommentEdit,
    TestProcedureEdit,
    AssignedTesterEdit,
    ControlTypeEdit,
    TestFrequencyEdit,
    ProbabilityEdit,
    ImpactEdit,
)
LINK_EDITS: Tuple[type, ...] = (LinkProbabilityEdit, LinkImpactEdit)

_BY_FIELD: Dict[str, type] = {cls.field: cls for cls in CONTROL_EDITS + LINK_EDITS}

EDITABLE_FIELDS: Tuple[str, ...] = tuple(_BY_FIELD)


def is_link_edit(edit: FieldEdit) -> bool:
    return isinstance(edit, LINK_EDITS)


def edit_target(edit: FieldEdit) -> EntityKind:
    """Which entity kind an edit is applied to."""
    if isinstance(edit, LINK_EDITS):
        return EntityKind.CONTROL_LINK
    if isinstance(edit, CONTROL_EDITS):
        return EntityKind.CONTROL
    raise TypeError(f"Unsupported edit type: {type(edit).__name__}")


def wire_value(edit: FieldEdit) -> Any:
    """JSON-safe value recorded in drafts and pending changes."""
    value = edit.value
    return value.value if isinstance(value, Enum) else value


def parse_edit(field: str, value: Any, link_id: str | None = None) -> FieldEdit:
    """Turn a wire field name and raw value into a typed edit."""
    edit_cls = _BY_FIELD.get(field)
    if edit_cls is None:
        raise UnknownFieldError(field)
    if edit_cls in LINK_EDITS:
        if not link_id:
            raise InvalidFieldValueError(field, value, "a link id is required for per-link overrides")
        return edit_cls(link_id=link_id, value=value)
    return edit_cls(value=value)


def edits_from_values(values: Mapping[str, Any]) -> List[FieldEdit]:
    """Rebuild typed edits from a draft / proposed-values map."""
    link_id = values.get(LINK_ID_KEY)
    return [
        parse_edit(field, value, link_id=link_id)
        for field, value in values.items()
        if field != LINK_ID_KEY
    ]


def control_updates(edits: Iterable[FieldEdit]) -> Dict[str, Any]:
    """Attribute map for the Control-targeted edits."""
    return {edit.attribute: edit.value for edit in edits if isinstance(edit, CONTROL_EDITS)}


def link_updates(edits: Iterable[FieldEdit]) -> Dict[str, Dict[str, Any]]:
    """link_id -> attribute map for the ControlLink-targeted edits."""
    grouped: Dict[str, Dict[str, Any]] = {}
    for edit in edits:
        if isinstance(edit, LINK_EDITS):
            grouped.setdefault(edit.link_id, {})[edit.attribute] = edit.value
    return grouped


def apply_edits(control: Control, edits: Iterable[FieldEdit]) -> Control:
    """Return a copy of ``control`` with its own field edits applied.

    Link edits are ignored here; they never mutate the Control itself.
    """
    updates = control_updates(edits)
    if not updates:
        return control
    return Control.model_validate({**control.model_dump(), **updates})


def read_field(entity: Control | ControlLink | None, field: str) -> Any:
    """Live wire value of ``field`` on a control (or link, for ``link_*`` fields)."""
    edit_cls = _BY_FIELD.get(field)
    if edit_cls is None:
        raise UnknownFieldError(field)
    if entity is None:
        return None
    value = getattr(entity, edit_cls.attribute)
    return value.value if isinstance(value, Enum) else value
