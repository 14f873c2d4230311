import pytest

from conftest import add_hub_control, add_link, add_row
from riskreg.domain.models import ApprovalStatus, Control, EntityKind, PendingChange
from riskreg.errors import EntityNotFoundError, InvalidFieldValueError, StoreWriteError, UnknownFieldError
from riskreg.events import MutationType
from riskreg.store.base import EntityUpdate


def test_row_round_trips_with_embedded_controls_in_order(store):
    row = add_row(store, controls=(Control(name="First", net_probability=2), Control(name="Second")))

    loaded = store.get(EntityKind.ROW, row.id)

    assert [c.name for c in loaded.controls] == ["First", "Second"]
    assert [c.position for c in loaded.controls] == [0, 1]
    assert all(c.owner_row_id == row.id for c in loaded.controls)
    assert loaded.gross_score == 20


def test_get_missing_entity_raises(store):
    with pytest.raises(EntityNotFoundError):
        store.get(EntityKind.CONTROL, "missing")
    assert store.find(EntityKind.CONTROL, "missing") is None


def test_duplicate_add_is_rejected(store):
    control = add_hub_control(store)
    with pytest.raises(StoreWriteError):
        store.add(control)


def test_list_filters_hub_controls(store):
    add_row(store, controls=(Control(name="Embedded"),))
    hub = add_hub_control(store, "Hub")

    hub_controls = store.list(EntityKind.CONTROL, {"owner_row_id": None})

    assert [c.id for c in hub_controls] == [hub.id]
    assert len(store.list(EntityKind.CONTROL)) == 2


def test_list_rejects_unknown_filter(store):
    with pytest.raises(UnknownFieldError):
        store.list(EntityKind.ROW, {"colour": "red"})


def test_apply_update_validates_fields(store):
    control = add_hub_control(store)

    updated = store.apply_update(EntityKind.CONTROL, control.id, {"net_probability": 3, "comment": "checked"})
    assert updated.net_probability == 3
    assert store.get(EntityKind.CONTROL, control.id).comment == "checked"

    with pytest.raises(InvalidFieldValueError):
        store.apply_update(EntityKind.CONTROL, control.id, {"net_probability": 9})
    with pytest.raises(UnknownFieldError):
        store.apply_update(EntityKind.CONTROL, control.id, {"owner_row_id": "elsewhere"})


def test_apply_batch_is_atomic(store):
    control = add_hub_control(store, probability=4)
    row = add_row(store)
    link = add_link(store, row, control)

    with pytest.raises(EntityNotFoundError):
        store.apply_batch(
            [
                EntityUpdate(EntityKind.CONTROL, control.id, {"net_probability": 1}),
                EntityUpdate(EntityKind.CONTROL_LINK, link.id, {"net_impact": 2}),
                EntityUpdate(EntityKind.PENDING_CHANGE, "missing", {"status": ApprovalStatus.APPROVED}),
            ]
        )

    assert store.get(EntityKind.CONTROL, control.id).net_probability == 4
    assert store.get(EntityKind.CONTROL_LINK, link.id).net_impact is None


def test_apply_batch_rolls_back_on_invalid_value(store):
    control = add_hub_control(store, probability=4)
    row = add_row(store)
    link = add_link(store, row, control)

    with pytest.raises(InvalidFieldValueError):
        store.apply_batch(
            [
                EntityUpdate(EntityKind.CONTROL, control.id, {"name": "Renamed"}),
                EntityUpdate(EntityKind.CONTROL_LINK, link.id, {"net_impact": 0}),
            ]
        )

    assert store.get(EntityKind.CONTROL, control.id).name == "Dual sign-off"


def test_removing_control_drops_its_links(store):
    control = add_hub_control(store)
    row_a = add_row(store, process_id="P1")
    row_b = add_row(store, process_id="P2")
    add_link(store, row_a, control)
    add_link(store, row_b, control)

    store.remove(EntityKind.CONTROL, control.id)

    assert store.list(EntityKind.CONTROL_LINK) == []
    assert len(store.list(EntityKind.ROW)) == 2


def test_removing_row_drops_embedded_controls_and_links(store):
    hub = add_hub_control(store)
    row = add_row(store, controls=(Control(name="Embedded"),))
    add_link(store, row, hub)

    store.remove(EntityKind.ROW, row.id)

    assert [c.id for c in store.list(EntityKind.CONTROL)] == [hub.id]
    assert store.list(EntityKind.CONTROL_LINK) == []


def test_writes_publish_mutation_events(store):
    events = []
    store.bus.subscribe(events.append)

    control = add_hub_control(store)
    store.apply_update(EntityKind.CONTROL, control.id, {"comment": "x"})
    store.remove(EntityKind.CONTROL, control.id)

    assert [(e.kind, e.mutation) for e in events] == [
        (EntityKind.CONTROL, MutationType.CREATED),
        (EntityKind.CONTROL, MutationType.UPDATED),
        (EntityKind.CONTROL, MutationType.REMOVED),
    ]
    assert events[1].fields == ("comment",)


def test_embedded_control_events_carry_row_id(store):
    events = []
    store.bus.subscribe(events.append)

    row = add_row(store, controls=(Control(name="Embedded"),))

    control_events = [e for e in events if e.kind is EntityKind.CONTROL]
    assert len(control_events) == 1
    assert control_events[0].row_id == row.id


def test_failing_subscriber_does_not_break_writes(store):
    def explode(event):
        raise RuntimeError("subscriber bug")

    store.bus.subscribe(explode)
    control = add_hub_control(store)

    assert store.get(EntityKind.CONTROL, control.id).name == "Dual sign-off"


def test_pending_change_status_filter(store):
    change = store.add(
        PendingChange(
            entity_id="c1",
            entity_name="Control",
            proposed_values={"name": "New"},
            current_values={"name": "Old"},
            submitted_by="alice",
        )
    )
    store.apply_update(EntityKind.PENDING_CHANGE, change.id, {"status": ApprovalStatus.REJECTED})

    assert store.list(EntityKind.PENDING_CHANGE, {"status": ApprovalStatus.PENDING}) == []
    rejected = store.list(EntityKind.PENDING_CHANGE, {"status": ApprovalStatus.REJECTED})
    assert [c.id for c in rejected] == [change.id]
    assert rejected[0].proposed_values == {"name": "New"}
    assert rejected[0].submitted_at.tzinfo is not None
