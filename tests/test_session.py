import pytest

from conftest import add_hub_control, add_link, add_row, live_control
from riskreg.approval.policy import ApprovalSettings, SettingsApprovalPolicy
from riskreg.domain.edits import parse_edit
from riskreg.domain.models import Control, EntityKind, Role
from riskreg.errors import DraftSubmissionError, SessionNotFoundError, StoreWriteError, UnknownFieldError
from riskreg.workflow.drafts import DraftAccumulator
from riskreg.workflow.router import MutationRouter
from riskreg.workflow.session import EditingSession, SessionRegistry
from riskreg.workflow.submission import DraftSubmitter


@pytest.fixture
def session(store, router, submitter, drafts):
    return EditingSession("s1", Role.CONTROL_OWNER, "alice", store, drafts, router, submitter)


def test_typing_only_commits_on_blur(store, session, drafts):
    control = add_hub_control(store)

    for partial in ("R", "Re", "Ren", "Renamed"):
        session.type_into(control.id, "name", partial)
    assert session.display_value(control.id, "name") == "Renamed"
    assert not drafts.has_draft(control.id)

    outcome = session.blur()

    assert outcome.deferred
    assert session.commit_count == 1
    assert drafts.get(control.id).values == {"name": "Renamed"}


def test_blur_without_change_commits_nothing(store, session, drafts):
    control = add_hub_control(store)

    session.type_into(control.id, "name", "Dual sign-off")

    assert session.blur() is None
    assert session.commit_count == 0
    assert not drafts.has_draft(control.id)


def test_moving_focus_commits_previous_field(store, session, drafts):
    control = add_hub_control(store)

    session.type_into(control.id, "name", "Renamed")
    session.type_into(control.id, "comment", "checked quarterly")
    session.blur()

    assert drafts.get(control.id).values == {"name": "Renamed", "comment": "checked quarterly"}
    assert session.commit_count == 2


def test_committed_value_prefers_draft(store, session):
    control = add_hub_control(store)
    session.edit(control.id, "name", "Drafted")

    session.type_into(control.id, "name", "Drafted")

    assert session.blur() is None
    assert session.committed_value(control.id, "name") == "Drafted"
    assert live_control(store, control.id).name == "Dual sign-off"


def test_unknown_field_cannot_be_focused(store, session):
    control = add_hub_control(store)
    with pytest.raises(UnknownFieldError):
        session.focus(control.id, "ownerRowId")


def test_link_field_display_reads_the_link(store, session):
    control = add_hub_control(store, probability=4)
    row = add_row(store)
    link = add_link(store, row, control, probability=2)

    assert session.display_value(control.id, "link_netProbability", link_id=link.id) == 2
    session.edit(control.id, "link_netProbability", 1, link_id=link.id)
    assert session.display_value(control.id, "link_netProbability", link_id=link.id) == 1
    assert store.get(EntityKind.CONTROL_LINK, link.id).net_probability == 2


def test_submit_flushes_focused_field_first(store, session, queue):
    control = add_hub_control(store)
    session.type_into(control.id, "comment", "typed but not blurred")

    change = session.submit(control.id)

    assert change.proposed_values == {"comment": "typed but not blurred"}
    assert change.entity_name == "Dual sign-off"
    assert change.submitted_by == "alice"
    assert session.unsaved_entities() == []


def test_submit_embedded_control_reads_baseline_through_row(store, session):
    row = add_row(store, controls=(Control(name="Embedded", net_impact=3),))
    control = store.get(EntityKind.ROW, row.id).controls[0]
    session.edit(control.id, "netImpact", 1)

    change = session.submit(control.id)

    assert change.current_values == {"netImpact": 3}


def test_close_flushes_then_discards(store, session, drafts):
    control = add_hub_control(store)
    other = add_hub_control(store, "Other")
    session.edit(other.id, "name", "Other renamed")
    session.type_into(control.id, "name", "Renamed")

    discarded = session.close()

    assert session.commit_count == 2
    assert discarded == 2
    assert len(drafts) == 0
    assert live_control(store, control.id).name == "Dual sign-off"


def test_close_discards_even_when_flush_fails(store, drafts, submitter):
    control = add_hub_control(store)

    class FailingStore:
        def __getattr__(self, name):
            return getattr(store, name)

        def apply_update(self, *args, **kwargs):
            raise StoreWriteError("control", control.id, "disk full")

    router = MutationRouter(FailingStore(), SettingsApprovalPolicy(ApprovalSettings()), drafts)
    session = EditingSession("s2", Role.RISK_MANAGER, "rita", store, drafts, router, submitter)
    drafts.record(control.id, parse_edit("comment", "left over"))
    session.type_into(control.id, "name", "Renamed")

    with pytest.raises(StoreWriteError):
        session.close()
    assert len(drafts) == 0


def test_failed_submission_keeps_draft(store, drafts, gated_policy):
    control = add_hub_control(store)

    class BrokenQueue:
        def create(self, **kwargs):
            raise StoreWriteError("pending_change", None, "connection lost")

    router = MutationRouter(store, gated_policy, drafts)
    submitter = DraftSubmitter(store, drafts, BrokenQueue())
    router.apply_field(control.id, "name", "Renamed", Role.CONTROL_OWNER)

    with pytest.raises(DraftSubmissionError) as excinfo:
        submitter.submit(control.id, control.name, False, "alice")

    assert excinfo.value.status == 503
    assert drafts.get(control.id).values == {"name": "Renamed"}


def test_registry_reopens_session_on_role_change(store, router, submitter):
    created = []

    def factory(session_id, role, user_id):
        drafts = DraftAccumulator()
        created.append(role)
        return EditingSession(session_id, role, user_id, store, drafts, router, submitter)

    sessions = SessionRegistry(factory)
    first = sessions.open("tab-1", Role.CONTROL_OWNER, "alice")

    assert sessions.open("tab-1", Role.CONTROL_OWNER, "alice") is first
    assert sessions.open("tab-1", Role.MANAGER, "alice") is not first
    assert created == [Role.CONTROL_OWNER, Role.MANAGER]
    assert sessions.close("tab-1") == 0
    with pytest.raises(SessionNotFoundError):
        sessions.get("tab-1")


def test_registry_reopens_session_for_another_user(store, router, submitter):
    def factory(session_id, role, user_id):
        return EditingSession(session_id, role, user_id, store, DraftAccumulator(), router, submitter)

    sessions = SessionRegistry(factory)
    first = sessions.open("tab-1", Role.CONTROL_OWNER, "alice")

    second = sessions.open("tab-1", Role.CONTROL_OWNER, "bob")

    assert second is not first
    assert second.user_id == "bob"
    assert sessions.get("tab-1") is second


def test_rejected_submission_leaves_nothing_unsaved(store, session, drafts, queue):
    control = add_hub_control(store)
    session.type_into(control.id, "name", "Renamed")
    session.blur()
    assert drafts.is_unsaved(control.id)

    change = session.submit(control.id)
    queue.reject(change.id, "mgr-1", reason="Keep the old name")

    assert not drafts.is_unsaved(control.id)
    assert not drafts.has_draft(control.id)
    assert session.unsaved_entities() == []
    assert session.display_value(control.id, "name") == "Dual sign-off"
    assert live_control(store, control.id).name == "Dual sign-off"
