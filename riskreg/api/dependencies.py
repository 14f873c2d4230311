"""Shared request dependencies for the register routers.

Authentication happens upstream; the caller's role and editing session
arrive as headers.
"""

from typing import Optional

from fastapi import Depends, Header, Request

from riskreg.domain.models import Role
from riskreg.registry import Registry
from riskreg.workflow.session import EditingSession


def get_registry(request: Request) -> Registry:
    return request.app.state.registry


def get_role(x_role: Role = Header(..., alias="X-Role")) -> Role:
    return x_role


def get_user_id(
    role: Role = Depends(get_role),
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> str:
    # Without a user id the role is recorded as submitter/reviewer.
    return x_user_id or role.value


def get_session(
    x_session_id: str = Header(..., alias="X-Session-Id"),
    role: Role = Depends(get_role),
    user_id: str = Depends(get_user_id),
    registry: Registry = Depends(get_registry),
) -> EditingSession:
    return registry.sessions.open(x_session_id, role, user_id)
