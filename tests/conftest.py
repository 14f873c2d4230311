from typing import Any, Dict, List, Optional, Tuple

import pytest

from riskreg.approval.policy import ApprovalSettings, SettingsApprovalPolicy
from riskreg.domain.models import Control, ControlLink, EntityKind, Row
from riskreg.notifications import NotificationType, Notifier
from riskreg.registry import build_registry
from riskreg.settings import Settings
from riskreg.store.memory import InMemoryEntityStore
from riskreg.store.sql import SqlEntityStore
from riskreg.workflow.drafts import DraftAccumulator
from riskreg.workflow.queue import PendingChangeQueue
from riskreg.workflow.router import MutationRouter
from riskreg.workflow.submission import DraftSubmitter


class RecordingSink:
    def __init__(self):
        self.sent: List[Tuple[str, str, Dict[str, Any]]] = []

    def notify(self, event_type, recipient_id, data):
        self.sent.append((NotificationType(event_type).value, recipient_id, dict(data)))

    def of_type(self, event_type: str) -> List[Tuple[str, str, Dict[str, Any]]]:
        return [item for item in self.sent if item[0] == event_type]


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    if request.param == "memory":
        entity_store = InMemoryEntityStore()
    else:
        entity_store = SqlEntityStore.from_url(f"sqlite:///{tmp_path / 'register.db'}")
    yield entity_store
    entity_store.close()


@pytest.fixture
def memory_store():
    return InMemoryEntityStore()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def notifier(sink):
    return Notifier(sink, manager_ids=["mgr-1", "mgr-2"])


@pytest.fixture
def gated_policy():
    return SettingsApprovalPolicy(ApprovalSettings(global_enabled=True, require_for_controls=True))


@pytest.fixture
def drafts():
    return DraftAccumulator()


@pytest.fixture
def queue(store, notifier):
    return PendingChangeQueue(store, notifier)


@pytest.fixture
def router(store, gated_policy, drafts, notifier):
    return MutationRouter(store, gated_policy, drafts, notifier)


@pytest.fixture
def submitter(store, drafts, queue):
    return DraftSubmitter(store, drafts, queue)


@pytest.fixture
def settings():
    return Settings(
        store_backend="memory",
        approval_global_enabled=True,
        approval_require_for_controls=True,
        manager_recipient_ids="mgr-1",
        notification_webhook_url="",
    )


@pytest.fixture
def registry(settings, sink):
    reg = build_registry(settings, store=InMemoryEntityStore(), sink=sink)
    yield reg
    reg.close()


def add_row(
    store,
    risk_id: str = "R1",
    process_id: str = "P1",
    gross: Tuple[Optional[int], Optional[int]] = (4, 5),
    controls: Tuple[Control, ...] = (),
) -> Row:
    return store.add(
        Row(
            risk_id=risk_id,
            process_id=process_id,
            risk_name=f"Risk {risk_id}",
            process_name=f"Process {process_id}",
            gross_probability=gross[0],
            gross_impact=gross[1],
            controls=list(controls),
        )
    )


def add_hub_control(store, name: str = "Dual sign-off", probability=None, impact=None, **fields) -> Control:
    return store.add(Control(name=name, net_probability=probability, net_impact=impact, **fields))


def add_link(store, row: Row, control: Control, probability=None, impact=None) -> ControlLink:
    return store.add(
        ControlLink(row_id=row.id, control_id=control.id, net_probability=probability, net_impact=impact)
    )


def live_control(store, control_id: str) -> Control:
    return store.get(EntityKind.CONTROL, control_id)
