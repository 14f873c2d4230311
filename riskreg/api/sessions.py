"""Editing session lifecycle: flush the focused field, close the panel."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header

from riskreg.api.dependencies import get_registry, get_session
from riskreg.api.models import DraftResponse, EditResponse, SessionCloseResponse
from riskreg.registry import Registry
from riskreg.workflow.session import EditingSession

router = APIRouter(prefix="/v2/sessions", tags=["Sessions"])


@router.post("/blur", response_model=Optional[EditResponse])
def blur_focused_field(session: EditingSession = Depends(get_session)):
    focus_field = session.focused_field
    focus_entity = session.focused_entity_id
    outcome = session.blur()
    if focus_field is None:
        return None
    return EditResponse(
        entity_id=focus_entity,
        field=focus_field,
        committed=outcome is not None,
        deferred=bool(outcome and outcome.deferred),
    )


@router.get("/drafts", response_model=List[DraftResponse])
def list_drafts(session: EditingSession = Depends(get_session)):
    return [
        DraftResponse(entity_id=draft.entity_id, values=draft.values, unsaved=not draft.is_empty())
        for draft in session.drafts
    ]


@router.delete("", response_model=SessionCloseResponse)
def close_session(
    x_session_id: str = Header(..., alias="X-Session-Id"),
    registry: Registry = Depends(get_registry),
):
    """Close the panel: the focused field is flushed first, then drafts are discarded."""
    discarded = registry.sessions.close(x_session_id)
    return SessionCloseResponse(session_id=x_session_id, discarded_drafts=discarded)
