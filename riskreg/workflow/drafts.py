"""Session-local buffers of proposed control edits.

A draft maps wire field names to proposed values, one draft per entity id.
Per-link overrides are stored under ``link_netProbability`` /
``link_netImpact`` next to the ``_linkId`` they apply to. Drafts are never
persisted: they disappear on submit, discard or session close.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from riskreg.domain.edits import (
    LINK_ID_KEY,
    FieldEdit,
    edits_from_values,
    is_link_edit,
    wire_value,
)
from riskreg.errors import DraftConflictError
from riskreg.logging_config import get_logger

logger = get_logger(name=__name__)


@dataclass
class Draft:
    entity_id: str
    values: Dict[str, Any] = field(default_factory=dict)

    @property
    def link_id(self) -> Optional[str]:
        return self.values.get(LINK_ID_KEY)

    @property
    def fields(self) -> List[str]:
        return [name for name in self.values if name != LINK_ID_KEY]

    def is_empty(self) -> bool:
        return not self.fields

    def edits(self) -> List[FieldEdit]:
        return edits_from_values(self.values)

    def copy(self) -> "Draft":
        return Draft(self.entity_id, dict(self.values))


class DraftAccumulator:
    """Per-session drafts keyed by entity id."""

    def __init__(self):
        self._drafts: Dict[str, Draft] = {}

    def record(self, entity_id: str, edit: FieldEdit) -> Draft:
        """Merge one edit into the entity's draft, creating it on first use.

        A draft tracks a single link; overriding a different link while one
        is tracked raises :class:`DraftConflictError`.
        """
        draft = self._drafts.get(entity_id) or Draft(entity_id)
        if is_link_edit(edit):
            tracked = draft.link_id
            if tracked is not None and tracked != edit.link_id:
                raise DraftConflictError(entity_id, tracked, edit.link_id)
            draft.values[LINK_ID_KEY] = edit.link_id
        draft.values[edit.field] = wire_value(edit)
        self._drafts[entity_id] = draft
        logger.debug("Draft {} now holds {}", entity_id, draft.fields)
        return draft.copy()

    def get(self, entity_id: str) -> Optional[Draft]:
        draft = self._drafts.get(entity_id)
        return draft.copy() if draft is not None else None

    def has_draft(self, entity_id: str) -> bool:
        draft = self._drafts.get(entity_id)
        return draft is not None and not draft.is_empty()

    def is_unsaved(self, entity_id: str, field_name: Optional[str] = None) -> bool:
        """Whether the entity (or one of its fields) has edits awaiting submission."""
        if field_name is None:
            return self.has_draft(entity_id)
        draft = self._drafts.get(entity_id)
        return draft is not None and field_name in draft.values

    def display_value(self, entity_id: str, field_name: str, live_value: Any) -> Any:
        """Drafted value when one exists, else the live value."""
        draft = self._drafts.get(entity_id)
        if draft is not None and field_name in draft.values:
            return draft.values[field_name]
        return live_value

    def discard(self, entity_id: str) -> None:
        self._drafts.pop(entity_id, None)

    def discard_all(self) -> int:
        count = len(self._drafts)
        self._drafts.clear()
        return count

    def entity_ids(self) -> List[str]:
        return [entity_id for entity_id, draft in self._drafts.items() if not draft.is_empty()]

    def __iter__(self) -> Iterator[Draft]:
        return iter([draft.copy() for draft in self._drafts.values()])

    def __len__(self) -> int:
        return len(self.entity_ids())
