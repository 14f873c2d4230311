"""Mutation router: apply an edit now, or defer it into a draft.

Edits on a control whose policy requires approval are buffered in the
session's :class:`DraftAccumulator` unless the editor is an approver
(manager or director). Everything else goes straight to the entity store
as a single write, which the score board picks up through the event bus.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import BaseModel

from riskreg.approval.policy import ApprovalPolicy
from riskreg.domain.edits import AssignedTesterEdit, FieldEdit, edit_target, is_link_edit, parse_edit
from riskreg.domain.models import Control, EntityKind, Role
from riskreg.errors import InvalidLinkError, StoreWriteError
from riskreg.logging_config import get_logger
from riskreg.notifications import Notifier
from riskreg.store.base import EntityStore
from riskreg.workflow.drafts import Draft, DraftAccumulator
from riskreg.workflow.permissions import as_role

logger = get_logger(name=__name__)


@dataclass(frozen=True)
class RouteOutcome:
    entity_id: str
    edit: FieldEdit
    deferred: bool
    # The stored Control or ControlLink after a direct write
    entity: Optional[BaseModel] = None
    # Snapshot of the draft after a deferred write
    draft: Optional[Draft] = None

    @property
    def applied(self) -> bool:
        return not self.deferred


class MutationRouter:
    def __init__(
        self,
        store: EntityStore,
        policy: ApprovalPolicy,
        drafts: DraftAccumulator,
        notifier: Optional[Notifier] = None,
    ):
        self.store = store
        self.policy = policy
        self.drafts = drafts
        self.notifier = notifier

    def requires_approval(self, entity_id: str, role: Union[Role, str]) -> bool:
        return self.policy.is_required("control", entity_id) and not as_role(role).is_manager

    def apply_or_defer(self, entity_id: str, edit: FieldEdit, role: Union[Role, str]) -> RouteOutcome:
        if self.requires_approval(entity_id, role):
            draft = self.drafts.record(entity_id, edit)
            logger.info("Deferred {} on control {} into draft", edit.field, entity_id)
            return RouteOutcome(entity_id, edit, deferred=True, draft=draft)

        entity = self._write(entity_id, edit)
        return RouteOutcome(entity_id, edit, deferred=False, entity=entity)

    def apply_field(
        self,
        entity_id: str,
        field: str,
        value: Any,
        role: Union[Role, str],
        link_id: Optional[str] = None,
    ) -> RouteOutcome:
        """Parse a wire field name and value, then route the resulting edit."""
        return self.apply_or_defer(entity_id, parse_edit(field, value, link_id=link_id), role)

    def _write(self, entity_id: str, edit: FieldEdit) -> BaseModel:
        control: Control = self.store.get(EntityKind.CONTROL, entity_id)

        if is_link_edit(edit):
            link = self.store.get(EntityKind.CONTROL_LINK, edit.link_id)
            if link.control_id != entity_id:
                raise InvalidLinkError(
                    f"Link '{edit.link_id}' does not belong to control '{entity_id}'",
                    link_id=edit.link_id,
                    control_id=entity_id,
                )
            target_id = link.id
        else:
            target_id = entity_id

        kind = edit_target(edit)
        try:
            updated = self.store.apply_update(kind, target_id, {edit.attribute: edit.value})
        except StoreWriteError:
            logger.error("Direct write of {} on {} '{}' failed", edit.field, kind.value, target_id)
            raise

        if isinstance(edit, AssignedTesterEdit) and self.notifier is not None:
            self.notifier.tester_assigned(edit.value, control.assigned_tester_id, updated.name)
        return updated
