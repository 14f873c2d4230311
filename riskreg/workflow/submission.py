"""Turns a control's draft into one pending change."""

from __future__ import annotations

from typing import Any, Dict, Optional

from riskreg.domain.edits import LINK_ID_KEY, LINK_PREFIX, read_field
from riskreg.domain.models import Control, EntityKind, PendingChange
from riskreg.errors import DraftSubmissionError, RegisterError
from riskreg.logging_config import get_logger
from riskreg.store.base import EntityStore
from riskreg.workflow.drafts import Draft, DraftAccumulator
from riskreg.workflow.queue import PendingChangeQueue

logger = get_logger(name=__name__)


class DraftSubmitter:
    def __init__(self, store: EntityStore, drafts: DraftAccumulator, queue: PendingChangeQueue):
        self.store = store
        self.drafts = drafts
        self.queue = queue

    def submit(
        self,
        entity_id: str,
        entity_name: str,
        is_embedded: bool,
        submitted_by: str,
    ) -> Optional[PendingChange]:
        """Submit the entity's draft for approval.

        Returns None when there is nothing to submit. The draft is cleared
        only once the pending change exists; on failure it is kept and
        :class:`DraftSubmissionError` is raised so the user can retry.
        """
        draft = self.drafts.get(entity_id)
        if draft is None or draft.is_empty():
            return None

        try:
            current_values = self.current_values(draft, is_embedded)
            change = self.queue.create(
                entity_id=entity_id,
                entity_name=entity_name,
                proposed_values=draft.values,
                current_values=current_values,
                submitted_by=submitted_by,
            )
        except Exception as exc:
            logger.error("Failed to submit draft for control {}: {}", entity_id, exc)
            reason = exc.message if isinstance(exc, RegisterError) else exc.__class__.__name__
            raise DraftSubmissionError(entity_id, reason) from exc

        self.drafts.discard(entity_id)
        return change

    def current_values(self, draft: Draft, is_embedded: bool) -> Dict[str, Any]:
        """Live value of every drafted field, the approval baseline."""
        control = self._live_control(draft.entity_id, is_embedded)
        link = None
        if draft.link_id:
            link = self.store.find(EntityKind.CONTROL_LINK, draft.link_id)

        values: Dict[str, Any] = {}
        for field, proposed in draft.values.items():
            if field == LINK_ID_KEY:
                values[field] = proposed
            elif field.startswith(LINK_PREFIX):
                values[field] = read_field(link, field)
            else:
                values[field] = read_field(control, field)
        return values

    def _live_control(self, entity_id: str, is_embedded: bool) -> Optional[Control]:
        control = self.store.find(EntityKind.CONTROL, entity_id)
        if control is None or not is_embedded or control.owner_row_id is None:
            return control
        # Embedded controls are read through their owning row.
        row = self.store.find(EntityKind.ROW, control.owner_row_id)
        if row is None:
            return None
        return next((c for c in row.controls if c.id == entity_id), None)
