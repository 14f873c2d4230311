"""Pending change queue and its resolution.

A pending change moves ``pending -> approved`` or ``pending -> rejected``
exactly once. Approval writes the proposed control fields, the proposed
link overrides and the status change in one atomic batch; rejection only
records the status.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from riskreg.domain.edits import (
    LINK_ID_KEY,
    LINK_PREFIX,
    control_updates,
    edits_from_values,
    link_updates,
    read_field,
)
from riskreg.domain.models import ApprovalStatus, EntityKind, PendingChange, Role, utcnow
from riskreg.errors import InvalidTransitionError
from riskreg.logging_config import get_logger
from riskreg.notifications import Notifier
from riskreg.store.base import EntityStore, EntityUpdate
from riskreg.workflow.permissions import ensure_manager

logger = get_logger(name=__name__)

BaselineCheck = Literal["off", "warn", "reject"]


class PendingChangeQueue:
    def __init__(
        self,
        store: EntityStore,
        notifier: Optional[Notifier] = None,
        baseline_check: BaselineCheck = "warn",
        retention_days: int = 30,
    ):
        self.store = store
        self.notifier = notifier
        self.baseline_check = baseline_check
        self.retention_days = retention_days

    # ------------------------------------------------------------------
    # Creation and queries
    # ------------------------------------------------------------------

    def create(
        self,
        entity_id: str,
        entity_name: str,
        proposed_values: Mapping[str, Any],
        current_values: Mapping[str, Any],
        submitted_by: str,
    ) -> PendingChange:
        # Reject malformed maps before they become durable.
        edits_from_values(proposed_values)
        change = self.store.add(
            PendingChange(
                entity_id=entity_id,
                entity_name=entity_name,
                proposed_values=dict(proposed_values),
                current_values=dict(current_values),
                submitted_by=submitted_by,
            )
        )
        logger.info(
            "Pending change {} created for control {} by {} ({} fields)",
            change.id, entity_id, submitted_by, len(proposed_values),
        )
        if self.notifier is not None:
            self.notifier.approval_requested(
                change.entity_type, change.entity_name, change.change_type, change.submitted_by
            )
        return change

    def get(self, change_id: str) -> PendingChange:
        return self.store.get(EntityKind.PENDING_CHANGE, change_id)

    def list_by_status(self, status: Union[ApprovalStatus, str]) -> List[PendingChange]:
        return self.store.list(EntityKind.PENDING_CHANGE, {"status": ApprovalStatus(status)})

    def list_pending(self) -> List[PendingChange]:
        return self.list_by_status(ApprovalStatus.PENDING)

    def pending_for_entity(self, entity_id: str) -> List[PendingChange]:
        return self.store.list(
            EntityKind.PENDING_CHANGE,
            {"entity_id": entity_id, "status": ApprovalStatus.PENDING},
        )

    def pending_count(self) -> int:
        return len(self.list_pending())

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def approve(self, change_id: str, reviewer: str, role: Optional[Union[Role, str]] = None) -> PendingChange:
        if role is not None:
            ensure_manager(role, "approve pending changes")
        change = self._require_pending(change_id, ApprovalStatus.APPROVED)

        stale = self.stale_fields(change)
        if stale:
            if self.baseline_check == "reject":
                return self._resolve_rejected(change, reviewer, f"stale baseline: {', '.join(stale)}")
            if self.baseline_check == "warn":
                logger.warning(
                    "Approving pending change {} against a stale baseline: {}", change.id, stale
                )

        edits = edits_from_values(change.proposed_values)
        previous = self.store.find(EntityKind.CONTROL, change.entity_id)

        updates: List[EntityUpdate] = []
        fields = control_updates(edits)
        if fields:
            updates.append(EntityUpdate(EntityKind.CONTROL, change.entity_id, fields))
        for link_id, link_fields in link_updates(edits).items():
            updates.append(EntityUpdate(EntityKind.CONTROL_LINK, link_id, link_fields))
        updates.append(
            EntityUpdate(
                EntityKind.PENDING_CHANGE,
                change.id,
                {
                    "status": ApprovalStatus.APPROVED,
                    "resolved_by": reviewer,
                    "resolved_at": utcnow(),
                },
            )
        )

        results = self.store.apply_batch(updates)
        resolved: PendingChange = results[-1]
        logger.info("Pending change {} approved by {}", change.id, reviewer)

        if self.notifier is not None:
            self.notifier.approval_resolved(
                resolved.submitted_by, resolved.entity_name, ApprovalStatus.APPROVED.value, reviewer
            )
            if "assigned_tester_id" in fields:
                self.notifier.tester_assigned(
                    fields["assigned_tester_id"],
                    previous.assigned_tester_id if previous else None,
                    results[0].name,
                )
        return resolved

    def reject(
        self,
        change_id: str,
        reviewer: str,
        reason: Optional[str] = None,
        role: Optional[Union[Role, str]] = None,
    ) -> PendingChange:
        if role is not None:
            ensure_manager(role, "reject pending changes")
        change = self._require_pending(change_id, ApprovalStatus.REJECTED)
        return self._resolve_rejected(change, reviewer, reason)

    def _resolve_rejected(self, change: PendingChange, reviewer: str, reason: Optional[str]) -> PendingChange:
        resolved: PendingChange = self.store.apply_update(
            EntityKind.PENDING_CHANGE,
            change.id,
            {
                "status": ApprovalStatus.REJECTED,
                "resolved_by": reviewer,
                "resolved_at": utcnow(),
                "rejection_reason": reason,
            },
        )
        logger.info("Pending change {} rejected by {}: {}", change.id, reviewer, reason or "no reason given")
        if self.notifier is not None:
            self.notifier.approval_resolved(
                resolved.submitted_by, resolved.entity_name, ApprovalStatus.REJECTED.value, reviewer, reason
            )
        return resolved

    def _require_pending(self, change_id: str, target: ApprovalStatus) -> PendingChange:
        change = self.get(change_id)
        if change.is_terminal:
            raise InvalidTransitionError(change_id, change.status.value, target.value)
        return change

    def stale_fields(self, change: PendingChange) -> List[str]:
        """Fields whose submission-time baseline no longer matches the live value."""
        control = self.store.find(EntityKind.CONTROL, change.entity_id)
        link_id = change.current_values.get(LINK_ID_KEY) or change.proposed_values.get(LINK_ID_KEY)
        link = self.store.find(EntityKind.CONTROL_LINK, link_id) if link_id else None

        stale = []
        for field, baseline in change.current_values.items():
            if field == LINK_ID_KEY:
                continue
            source = link if field.startswith(LINK_PREFIX) else control
            if read_field(source, field) != baseline:
                stale.append(field)
        return stale

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def prune_resolved(self, now: Optional[datetime] = None) -> int:
        """Delete resolved changes older than the retention window. Pending ones are kept."""
        cutoff = (now or utcnow()) - timedelta(days=self.retention_days)
        removed = 0
        for status in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
            for change in self.list_by_status(status):
                stamp = change.resolved_at or change.submitted_at
                if stamp < cutoff:
                    self.store.remove(EntityKind.PENDING_CHANGE, change.id)
                    removed += 1
        if removed:
            logger.info("Pruned {} resolved pending changes older than {} days", removed, self.retention_days)
        return removed

    def stats(self) -> Dict[str, int]:
        return {status.value: len(self.list_by_status(status)) for status in ApprovalStatus}
