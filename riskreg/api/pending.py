"""Pending change review: queries, approval, rejection and pruning."""

from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends

from riskreg.api.dependencies import get_registry, get_role, get_user_id
from riskreg.api.models import (
    ApprovalSettingsModel,
    ApprovalSettingsUpdate,
    EntityOverrideRequest,
    PendingCountResponse,
    PruneResponse,
    RejectRequest,
    StandardApiError,
)
from riskreg.domain.models import ApprovalStatus, PendingChange, Role
from riskreg.registry import Registry
from riskreg.workflow.permissions import ensure_manager

router = APIRouter(prefix="/v2/pending-changes", tags=["Pending Changes"])
settings_router = APIRouter(prefix="/v2/approval/settings", tags=["Approval Settings"])

_ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    403: {"model": StandardApiError},
    404: {"model": StandardApiError},
    409: {"model": StandardApiError},
    422: {"model": StandardApiError},
    503: {"model": StandardApiError},
}


@router.get("", response_model=List[PendingChange])
def list_pending_changes(
    status: Optional[ApprovalStatus] = ApprovalStatus.PENDING,
    registry: Registry = Depends(get_registry),
):
    return registry.queue.list_by_status(status or ApprovalStatus.PENDING)


@router.get("/count", response_model=PendingCountResponse)
def count_pending_changes(registry: Registry = Depends(get_registry)):
    stats = registry.queue.stats()
    return PendingCountResponse(pending=stats[ApprovalStatus.PENDING.value], by_status=stats)


@router.get("/entity/{entity_id}", response_model=List[PendingChange])
def pending_for_entity(entity_id: str, registry: Registry = Depends(get_registry)):
    return registry.queue.pending_for_entity(entity_id)


@router.post("/prune", response_model=PruneResponse, responses=_ERROR_RESPONSES)
def prune_resolved_changes(role: Role = Depends(get_role), registry: Registry = Depends(get_registry)):
    ensure_manager(role, "prune resolved pending changes")
    return PruneResponse(removed=registry.queue.prune_resolved())


@router.get("/{change_id}", response_model=PendingChange, responses=_ERROR_RESPONSES)
def get_pending_change(change_id: str, registry: Registry = Depends(get_registry)):
    return registry.queue.get(change_id)


@router.post("/{change_id}/approve", response_model=PendingChange, responses=_ERROR_RESPONSES)
def approve_pending_change(
    change_id: str,
    role: Role = Depends(get_role),
    reviewer: str = Depends(get_user_id),
    registry: Registry = Depends(get_registry),
):
    return registry.queue.approve(change_id, reviewer, role=role)


@router.post("/{change_id}/reject", response_model=PendingChange, responses=_ERROR_RESPONSES)
def reject_pending_change(
    change_id: str,
    request: RejectRequest,
    role: Role = Depends(get_role),
    reviewer: str = Depends(get_user_id),
    registry: Registry = Depends(get_registry),
):
    return registry.queue.reject(change_id, reviewer, reason=request.reason, role=role)


@settings_router.get("", response_model=ApprovalSettingsModel)
def get_approval_settings(registry: Registry = Depends(get_registry)):
    return ApprovalSettingsModel(**asdict(registry.policy.settings))


@settings_router.patch("", response_model=ApprovalSettingsModel, responses=_ERROR_RESPONSES)
def update_approval_settings(
    request: ApprovalSettingsUpdate,
    role: Role = Depends(get_role),
    registry: Registry = Depends(get_registry),
):
    ensure_manager(role, "change approval settings")
    updated = registry.policy.update(**request.model_dump(exclude_none=True))
    return ApprovalSettingsModel(**asdict(updated))


@settings_router.put("/overrides/{entity_id}", response_model=ApprovalSettingsModel, responses=_ERROR_RESPONSES)
def set_entity_override(
    entity_id: str,
    request: EntityOverrideRequest,
    role: Role = Depends(get_role),
    registry: Registry = Depends(get_registry),
):
    ensure_manager(role, "change approval settings")
    registry.policy.set_entity_override(entity_id, request.enabled)
    return ApprovalSettingsModel(**asdict(registry.policy.settings))
