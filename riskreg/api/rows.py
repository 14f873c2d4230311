"""Rows, net scores and control links."""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Response, status

from riskreg.api.dependencies import get_registry, get_role
from riskreg.api.models import (
    EffectiveControlResponse,
    LinkControlRequest,
    NetScoresResponse,
    RowSyncRequest,
    RowSyncResponse,
    RowUpdateRequest,
    StandardApiError,
)
from riskreg.domain.models import Control, ControlLink, EntityKind, Role, Row
from riskreg.registry import Registry
from riskreg.rows.generator import sync_rows
from riskreg.scoring.aggregator import NetScores
from riskreg.workflow.permissions import ensure_can_edit_definitions

router = APIRouter(prefix="/v2/rows", tags=["Rows"])

_ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    403: {"model": StandardApiError},
    404: {"model": StandardApiError},
    409: {"model": StandardApiError},
    422: {"model": StandardApiError},
    503: {"model": StandardApiError},
}


def _scores_response(row: Row, scores: NetScores) -> NetScoresResponse:
    return NetScoresResponse(
        row_id=row.id,
        gross_score=row.gross_score,
        net_probability=scores.net_probability,
        net_impact=scores.net_impact,
        net_score=scores.net_score,
        has_controls=scores.has_controls,
        unscored=scores.is_unscored,
        within_appetite=scores.within_appetite(row.risk_appetite),
    )


@router.get("", response_model=List[Row])
def list_rows(registry: Registry = Depends(get_registry)):
    return registry.store.list(EntityKind.ROW)


@router.post("/sync", response_model=RowSyncResponse, responses=_ERROR_RESPONSES)
def sync_taxonomy_rows(
    request: RowSyncRequest,
    role: Role = Depends(get_role),
    registry: Registry = Depends(get_registry),
):
    """Regenerate rows from taxonomy leaves, keeping existing risk/process pairs."""
    ensure_can_edit_definitions(role, "regenerate rows")
    result = sync_rows(registry.store, request.risks, request.processes)
    return RowSyncResponse(created=result.created, kept=result.kept, removed=result.removed)


@router.get("/scores", response_model=List[NetScoresResponse])
def list_scores(registry: Registry = Depends(get_registry)):
    rows = {row.id: row for row in registry.store.list(EntityKind.ROW)}
    scores = registry.scoreboard.refresh()
    return [_scores_response(rows[row_id], scores[row_id]) for row_id in rows if row_id in scores]


@router.get("/{row_id}", response_model=Row, responses=_ERROR_RESPONSES)
def get_row(row_id: str, registry: Registry = Depends(get_registry)):
    return registry.store.get(EntityKind.ROW, row_id)


@router.patch("/{row_id}", response_model=Row, responses=_ERROR_RESPONSES)
def update_row(
    row_id: str,
    request: RowUpdateRequest,
    role: Role = Depends(get_role),
    registry: Registry = Depends(get_registry),
):
    """Edit gross scores or risk appetite."""
    ensure_can_edit_definitions(role, "edit gross scores")
    return registry.store.apply_update(EntityKind.ROW, row_id, request.model_dump(exclude_unset=True))


@router.get("/{row_id}/scores", response_model=NetScoresResponse, responses=_ERROR_RESPONSES)
def get_row_scores(row_id: str, registry: Registry = Depends(get_registry)):
    row = registry.store.get(EntityKind.ROW, row_id)
    return _scores_response(row, registry.scoreboard.scores_for(row_id))


@router.get("/{row_id}/controls", response_model=List[EffectiveControlResponse], responses=_ERROR_RESPONSES)
def get_effective_controls(row_id: str, registry: Registry = Depends(get_registry)):
    counts = registry.links.link_counts()
    return [
        EffectiveControlResponse(
            control=item.control,
            link=item.link,
            net_probability=item.net_probability,
            net_impact=item.net_impact,
            net_score=item.net_score,
            link_count=counts.get(item.control.id, 0),
            shared_edit_warning=counts.get(item.control.id, 0) > 1,
        )
        for item in registry.links.effective_controls(row_id)
    ]


@router.get("/{row_id}/available-controls", response_model=List[Control], responses=_ERROR_RESPONSES)
def get_available_controls(row_id: str, registry: Registry = Depends(get_registry)):
    return registry.links.available_controls(row_id)


@router.post(
    "/{row_id}/links",
    response_model=ControlLink,
    status_code=status.HTTP_201_CREATED,
    responses=_ERROR_RESPONSES,
)
def link_existing_control(
    row_id: str,
    request: LinkControlRequest,
    role: Role = Depends(get_role),
    registry: Registry = Depends(get_registry),
):
    return registry.links.link_control(
        request.control_id,
        row_id,
        role=role,
        net_probability=request.net_probability,
        net_impact=request.net_impact,
    )


@router.delete("/{row_id}/links/{control_id}", status_code=status.HTTP_204_NO_CONTENT, responses=_ERROR_RESPONSES)
def unlink_control(
    row_id: str,
    control_id: str,
    role: Role = Depends(get_role),
    registry: Registry = Depends(get_registry),
):
    registry.links.unlink_from_row(control_id, row_id, role=role)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
