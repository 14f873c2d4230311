"""Stable service error contract shared by the core and the HTTP routers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(eq=False)
class RegisterError(Exception):
    """Base error carrying a machine code, a user-facing message and an HTTP status."""

    code: str
    message: str
    status: int = 400
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    def to_payload(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "status": self.status,
            "details": self.details,
        }


class EntityNotFoundError(RegisterError):
    def __init__(self, kind: str, entity_id: str):
        super().__init__(
            code="ENTITY_NOT_FOUND",
            message=f"{kind} '{entity_id}' not found",
            status=404,
            details={"kind": kind, "entity_id": entity_id},
        )


class UnknownFieldError(RegisterError):
    def __init__(self, field_name: str, kind: str = "control"):
        super().__init__(
            code="UNKNOWN_FIELD",
            message=f"'{field_name}' is not an editable {kind} field",
            status=422,
            details={"field": field_name, "kind": kind},
        )


class InvalidFieldValueError(RegisterError):
    def __init__(self, field_name: str, value: Any, reason: str):
        super().__init__(
            code="INVALID_FIELD_VALUE",
            message=f"Invalid value for '{field_name}': {reason}",
            status=422,
            details={"field": field_name, "value": value},
        )


class DuplicateLinkError(RegisterError):
    def __init__(self, row_id: str, control_id: str):
        super().__init__(
            code="DUPLICATE_LINK",
            message=f"Control '{control_id}' is already linked to row '{row_id}'",
            status=409,
            details={"row_id": row_id, "control_id": control_id},
        )


class InvalidLinkError(RegisterError):
    def __init__(self, message: str, **details: Any):
        super().__init__(code="INVALID_LINK", message=message, status=422, details=details)


class DraftConflictError(RegisterError):
    def __init__(self, entity_id: str, tracked_link_id: str, new_link_id: str):
        super().__init__(
            code="DRAFT_LINK_CONFLICT",
            message=(
                f"Draft for control '{entity_id}' already tracks link '{tracked_link_id}'; "
                "submit or discard it before editing another link"
            ),
            status=409,
            details={
                "entity_id": entity_id,
                "tracked_link_id": tracked_link_id,
                "new_link_id": new_link_id,
            },
        )


class InvalidTransitionError(RegisterError):
    def __init__(self, change_id: str, status: str, target: str):
        super().__init__(
            code="INVALID_TRANSITION",
            message=f"Pending change '{change_id}' is already {status} and cannot become {target}",
            status=409,
            details={"change_id": change_id, "status": status, "target": target},
        )


class PermissionDeniedError(RegisterError):
    def __init__(self, role: str, action: str):
        super().__init__(
            code="PERMISSION_DENIED",
            message=f"Role '{role}' is not allowed to {action}",
            status=403,
            details={"role": role, "action": action},
        )


class StoreWriteError(RegisterError):
    def __init__(self, kind: str, entity_id: str | None, reason: str):
        super().__init__(
            code="STORE_WRITE_FAILED",
            message=f"Failed to write {kind} '{entity_id}': {reason}",
            status=503,
            details={"kind": kind, "entity_id": entity_id},
        )


class DraftSubmissionError(RegisterError):
    def __init__(self, entity_id: str, reason: str):
        super().__init__(
            code="DRAFT_SUBMISSION_FAILED",
            message="Failed to submit changes. Your edits were kept; please try again.",
            status=503,
            details={"entity_id": entity_id, "reason": reason},
        )


class SessionNotFoundError(RegisterError):
    def __init__(self, session_id: str):
        super().__init__(
            code="SESSION_NOT_FOUND",
            message=f"Editing session '{session_id}' is not open",
            status=404,
            details={"session_id": session_id},
        )
