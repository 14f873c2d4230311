"""Controls: definitions, field edits, drafts and submission."""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Response, status

from riskreg.api.dependencies import get_registry, get_role, get_session
from riskreg.api.models import (
    ControlDetailResponse,
    CreateControlRequest,
    DraftResponse,
    EditResponse,
    FieldEditRequest,
    StandardApiError,
    SubmitRequest,
)
from riskreg.domain.models import Control, EntityKind, PendingChange, Role
from riskreg.registry import Registry
from riskreg.workflow.session import EditingSession

router = APIRouter(prefix="/v2/controls", tags=["Controls"])

_ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    403: {"model": StandardApiError},
    404: {"model": StandardApiError},
    409: {"model": StandardApiError},
    422: {"model": StandardApiError},
    503: {"model": StandardApiError},
}


@router.get("", response_model=List[Control])
def list_controls(hub_only: bool = False, registry: Registry = Depends(get_registry)):
    filters = {"owner_row_id": None} if hub_only else None
    return registry.store.list(EntityKind.CONTROL, filters)


@router.post("", response_model=Control, status_code=status.HTTP_201_CREATED, responses=_ERROR_RESPONSES)
def create_control(
    request: CreateControlRequest,
    role: Role = Depends(get_role),
    registry: Registry = Depends(get_registry),
):
    return registry.links.create_control(request.control, row_id=request.row_id, embed=request.embed, role=role)


@router.get("/{control_id}", response_model=ControlDetailResponse, responses=_ERROR_RESPONSES)
def get_control(control_id: str, registry: Registry = Depends(get_registry)):
    control = registry.store.get(EntityKind.CONTROL, control_id)
    link_count = registry.links.link_count(control_id)
    return ControlDetailResponse(
        control=control,
        link_count=link_count,
        shared_edit_warning=link_count > 1,
        pending_change_ids=[change.id for change in registry.queue.pending_for_entity(control_id)],
    )


@router.delete("/{control_id}", status_code=status.HTTP_204_NO_CONTENT, responses=_ERROR_RESPONSES)
def delete_control(
    control_id: str,
    role: Role = Depends(get_role),
    registry: Registry = Depends(get_registry),
):
    registry.links.remove_control(control_id, role=role)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{control_id}/edits", response_model=EditResponse, responses=_ERROR_RESPONSES)
def edit_control_field(
    control_id: str,
    request: FieldEditRequest,
    session: EditingSession = Depends(get_session),
):
    """Buffer a typed value, or commit it through the mutation router.

    A commit writes straight to the store, or into the session's draft when
    the control's edits require approval for this role.
    """
    session.type_into(control_id, request.field, request.value, link_id=request.link_id)
    outcome = session.blur() if request.commit else None
    draft = session.drafts.get(control_id)
    return EditResponse(
        entity_id=control_id,
        field=request.field,
        committed=outcome is not None,
        deferred=bool(outcome and outcome.deferred),
        display_value=session.display_value(control_id, request.field, link_id=request.link_id),
        draft=draft.values if draft else None,
    )


@router.get("/{control_id}/draft", response_model=DraftResponse)
def get_draft(control_id: str, session: EditingSession = Depends(get_session)):
    draft = session.drafts.get(control_id)
    return DraftResponse(
        entity_id=control_id,
        values=draft.values if draft else {},
        unsaved=session.drafts.is_unsaved(control_id),
    )


@router.delete("/{control_id}/draft", status_code=status.HTTP_204_NO_CONTENT)
def discard_draft(control_id: str, session: EditingSession = Depends(get_session)):
    session.discard(control_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{control_id}/submit", response_model=PendingChange, responses=_ERROR_RESPONSES)
def submit_draft(
    control_id: str,
    request: SubmitRequest,
    session: EditingSession = Depends(get_session),
):
    """Turn the control's draft into one pending change. No draft: 204."""
    change = session.submit(control_id, entity_name=request.entity_name, is_embedded=request.is_embedded)
    if change is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return change
