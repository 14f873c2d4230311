"""Editing sessions: keystroke-buffered local echo with commit-on-blur.

Typing only updates the session's local buffer. The buffered value is
routed once, when focus leaves the field, and only if it differs from the
committed value (the draft value when one exists, else the live value).
Closing the session blurs the focused field first, then discards all drafts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from riskreg.domain.edits import EDITABLE_FIELDS, LINK_PREFIX, read_field
from riskreg.domain.models import Control, EntityKind, PendingChange, Role
from riskreg.errors import SessionNotFoundError, UnknownFieldError
from riskreg.logging_config import get_logger
from riskreg.store.base import EntityStore
from riskreg.workflow.drafts import DraftAccumulator
from riskreg.workflow.router import MutationRouter, RouteOutcome
from riskreg.workflow.submission import DraftSubmitter

logger = get_logger(name=__name__)

_UNSET = object()


@dataclass
class _Focus:
    entity_id: str
    field: str
    link_id: Optional[str] = None
    buffer: Any = _UNSET


class EditingSession:
    def __init__(
        self,
        session_id: str,
        role: Role,
        user_id: str,
        store: EntityStore,
        drafts: DraftAccumulator,
        router: MutationRouter,
        submitter: DraftSubmitter,
    ):
        self.session_id = session_id
        self.role = role
        self.user_id = user_id
        self.store = store
        self.drafts = drafts
        self.router = router
        self.submitter = submitter
        self._focus: Optional[_Focus] = None
        self.commit_count = 0

    @property
    def focused_field(self) -> Optional[str]:
        return self._focus.field if self._focus else None

    @property
    def focused_entity_id(self) -> Optional[str]:
        return self._focus.entity_id if self._focus else None

    def focus(self, entity_id: str, field: str, link_id: Optional[str] = None) -> None:
        if field not in EDITABLE_FIELDS:
            raise UnknownFieldError(field)
        current = self._focus
        if current and (current.entity_id, current.field, current.link_id) == (entity_id, field, link_id):
            return
        if current is not None:
            self.blur()
        self._focus = _Focus(entity_id, field, link_id)

    def type_into(self, entity_id: str, field: str, value: Any, link_id: Optional[str] = None) -> None:
        """Buffer a value for the field; nothing is routed until blur."""
        self.focus(entity_id, field, link_id)
        self._focus.buffer = value

    def blur(self) -> Optional[RouteOutcome]:
        """Commit the focused field's buffered value, if it changed."""
        focus, self._focus = self._focus, None
        if focus is None or focus.buffer is _UNSET:
            return None
        if focus.buffer == self.committed_value(focus.entity_id, focus.field, focus.link_id):
            return None

        # The buffer is dropped either way; a failed write leaves the committed value in place.
        outcome = self.router.apply_field(
            focus.entity_id, focus.field, focus.buffer, self.role, link_id=focus.link_id
        )
        self.commit_count += 1
        return outcome

    def edit(self, entity_id: str, field: str, value: Any, link_id: Optional[str] = None) -> Optional[RouteOutcome]:
        """Immediate-commit edit, as for select boxes."""
        self.type_into(entity_id, field, value, link_id)
        return self.blur()

    def committed_value(self, entity_id: str, field: str, link_id: Optional[str] = None) -> Any:
        return self.drafts.display_value(entity_id, field, self._live_value(entity_id, field, link_id))

    def display_value(self, entity_id: str, field: str, link_id: Optional[str] = None) -> Any:
        """Buffered value while typing, else the drafted value, else the live value."""
        focus = self._focus
        if (
            focus is not None
            and focus.buffer is not _UNSET
            and (focus.entity_id, focus.field, focus.link_id) == (entity_id, field, link_id)
        ):
            return focus.buffer
        return self.committed_value(entity_id, field, link_id)

    def _live_value(self, entity_id: str, field: str, link_id: Optional[str]) -> Any:
        if field.startswith(LINK_PREFIX):
            link = self.store.find(EntityKind.CONTROL_LINK, link_id) if link_id else None
            return read_field(link, field)
        return read_field(self.store.find(EntityKind.CONTROL, entity_id), field)

    def submit(
        self,
        entity_id: str,
        entity_name: Optional[str] = None,
        is_embedded: Optional[bool] = None,
    ) -> Optional[PendingChange]:
        if self._focus is not None and self._focus.entity_id == entity_id:
            self.blur()
        if entity_name is None or is_embedded is None:
            control: Optional[Control] = self.store.find(EntityKind.CONTROL, entity_id)
            if entity_name is None:
                entity_name = control.name if control else entity_id
            if is_embedded is None:
                is_embedded = bool(control and control.is_embedded)
        return self.submitter.submit(entity_id, entity_name, is_embedded, self.user_id)

    def discard(self, entity_id: str) -> None:
        if self._focus is not None and self._focus.entity_id == entity_id:
            self._focus = None
        self.drafts.discard(entity_id)

    def close(self) -> int:
        """Flush the focused field, then drop every draft. Returns the number discarded."""
        try:
            self.blur()
        finally:
            discarded = self.drafts.discard_all()
        logger.info("Session {} closed, {} drafts discarded", self.session_id, discarded)
        return discarded

    def unsaved_entities(self) -> List[str]:
        return self.drafts.entity_ids()


SessionFactory = Callable[[str, Role, str], EditingSession]


class SessionRegistry:
    """Open editing sessions keyed by client session id."""

    def __init__(self, factory: SessionFactory):
        self._factory = factory
        self._sessions: Dict[str, EditingSession] = {}

    def open(self, session_id: str, role: Role, user_id: str) -> EditingSession:
        session = self._sessions.get(session_id)
        if session is None or session.role is not role or session.user_id != user_id:
            if session is not None:
                session.close()
            session = self._factory(session_id, role, user_id)
            self._sessions[session_id] = session
            logger.debug("Opened editing session {} as {}", session_id, role.value)
        return session

    def get(self, session_id: str) -> EditingSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def close(self, session_id: str) -> int:
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session.close()

    def __len__(self) -> int:
        return len(self._sessions)
