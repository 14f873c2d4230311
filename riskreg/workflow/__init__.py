"""Approval-gated mutation workflow.

Submodules:
    drafts: session-local draft buffers
    router: apply-now or defer-to-draft decision per edit
    submission: draft -> pending change
    queue: pending change queries and resolution
    links: effective controls and link management
    session: commit-on-blur editing sessions
"""

from .drafts import Draft, DraftAccumulator
from .links import ControlLinkService, EffectiveControl
from .queue import PendingChangeQueue
from .router import MutationRouter, RouteOutcome
from .session import EditingSession, SessionRegistry
from .submission import DraftSubmitter

__all__ = [
    "ControlLinkService",
    "Draft",
    "DraftAccumulator",
    "DraftSubmitter",
    "EditingSession",
    "EffectiveControl",
    "MutationRouter",
    "PendingChangeQueue",
    "RouteOutcome",
    "SessionRegistry",
]
