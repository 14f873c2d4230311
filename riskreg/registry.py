"""Composition root: builds the store, policy, workflow services and sessions once."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from riskreg.approval.policy import ApprovalSettings, SettingsApprovalPolicy
from riskreg.domain.models import Role
from riskreg.events import EventBus
from riskreg.logging_config import get_logger
from riskreg.notifications import NotificationSink, Notifier, build_notification_sink
from riskreg.scoring.scoreboard import ScoreBoard
from riskreg.settings import Settings, get_settings
from riskreg.store.base import EntityStore
from riskreg.store.memory import InMemoryEntityStore
from riskreg.store.sql import SqlEntityStore
from riskreg.workflow.drafts import DraftAccumulator
from riskreg.workflow.links import ControlLinkService
from riskreg.workflow.queue import PendingChangeQueue
from riskreg.workflow.router import MutationRouter
from riskreg.workflow.session import EditingSession, SessionRegistry
from riskreg.workflow.submission import DraftSubmitter

logger = get_logger(name=__name__)


def build_entity_store(settings: Settings, bus: EventBus) -> EntityStore:
    """Pick the entity store backend. Called once per process."""
    if settings.store_backend == "sql":
        settings.ensure_database_dir()
        return SqlEntityStore.from_url(settings.database_url, bus=bus)
    return InMemoryEntityStore(bus=bus)


@dataclass
class Registry:
    settings: Settings
    bus: EventBus
    store: EntityStore
    policy: SettingsApprovalPolicy
    notifier: Notifier
    queue: PendingChangeQueue
    links: ControlLinkService
    scoreboard: ScoreBoard
    sessions: SessionRegistry = field(init=False)

    def __post_init__(self):
        self.sessions = SessionRegistry(self.new_session)

    def new_session(self, session_id: str, role: Role, user_id: str) -> EditingSession:
        drafts = DraftAccumulator()
        return EditingSession(
            session_id=session_id,
            role=role,
            user_id=user_id,
            store=self.store,
            drafts=drafts,
            router=MutationRouter(self.store, self.policy, drafts, self.notifier),
            submitter=DraftSubmitter(self.store, drafts, self.queue),
        )

    def close(self) -> None:
        self.scoreboard.close()
        self.store.close()
        close_sink = getattr(self.notifier.sink, "close", None)
        if close_sink is not None:
            close_sink()


def build_registry(
    settings: Optional[Settings] = None,
    store: Optional[EntityStore] = None,
    sink: Optional[NotificationSink] = None,
) -> Registry:
    settings = settings or get_settings()
    bus = store.bus if store is not None else EventBus()
    store = store or build_entity_store(settings, bus)
    notifier = Notifier(sink or build_notification_sink(settings), settings.manager_recipients)

    registry = Registry(
        settings=settings,
        bus=bus,
        store=store,
        policy=SettingsApprovalPolicy(ApprovalSettings.from_settings(settings)),
        notifier=notifier,
        queue=PendingChangeQueue(
            store,
            notifier,
            baseline_check=settings.approval_baseline_check,
            retention_days=settings.pending_retention_days,
        ),
        links=ControlLinkService(store),
        scoreboard=ScoreBoard(store, bus),
    )
    logger.info("Registry built with {} entity store", store.backend)
    return registry
