from conftest import add_hub_control, add_link
from riskreg.domain.models import DEFAULT_RISK_APPETITE, Control, EntityKind
from riskreg.rows.generator import TaxonomyNode, leaf_nodes, regenerate_rows, sync_rows


def _tree(prefix, leaves, parent_name="Parent"):
    return [
        TaxonomyNode(
            id=f"{prefix}0",
            name=parent_name,
            children=[TaxonomyNode(id=f"{prefix}{n}", name=name) for n, name in enumerate(leaves, start=1)],
        )
    ]


def test_leaf_nodes_walk_depth_first():
    tree = [
        TaxonomyNode(
            id="a",
            name="A",
            children=[
                TaxonomyNode(id="a1", name="A1", children=[TaxonomyNode(id="a1x", name="A1x")]),
                TaxonomyNode(id="a2", name="A2"),
            ],
        ),
        TaxonomyNode(id="b", name="B"),
    ]
    assert [node.id for node in leaf_nodes(tree)] == ["a1x", "a2", "b"]


def test_rows_are_cross_product_of_leaves():
    rows = regenerate_rows(_tree("R", ["Fraud", "Outage"]), _tree("P", ["Payments", "Payroll", "Billing"]))

    assert len(rows) == 6
    assert {row.pair_key for row in rows} == {(f"R{r}", f"P{p}") for r in (1, 2) for p in (1, 2, 3)}
    assert all(row.risk_appetite == DEFAULT_RISK_APPETITE for row in rows)
    assert all(row.gross_score is None for row in rows)


def test_existing_rows_keep_their_data():
    first = regenerate_rows(_tree("R", ["Fraud"]), _tree("P", ["Payments"]))
    scored = first[0].model_copy(update={"gross_probability": 3, "gross_impact": 3})

    again = regenerate_rows(_tree("R", ["Card fraud"]), _tree("P", ["Payments"]), [scored])

    assert again[0].id == scored.id
    assert again[0].gross_score == 9
    assert again[0].risk_name == "Card fraud"


def test_sync_rows_creates_keeps_and_removes(store):
    risks = _tree("R", ["Fraud", "Outage"])
    processes = _tree("P", ["Payments"])
    initial = sync_rows(store, risks, processes)
    assert len(initial.created) == 2

    fraud = next(r for r in store.list(EntityKind.ROW) if r.risk_id == "R1")
    store.apply_update(EntityKind.ROW, fraud.id, {"gross_probability": 4, "gross_impact": 4})
    store.add(Control(name="Embedded", owner_row_id=fraud.id))
    outage = next(r for r in store.list(EntityKind.ROW) if r.risk_id == "R2")
    add_link(store, outage, add_hub_control(store))

    result = sync_rows(store, _tree("R", ["Fraud (renamed)"]), _tree("P", ["Payments", "Payroll"]))

    assert result.kept == [fraud.id]
    assert result.removed == [outage.id]
    assert len(result.created) == 1
    kept = store.get(EntityKind.ROW, fraud.id)
    assert kept.risk_name == "Fraud (renamed)"
    assert kept.gross_score == 16
    assert [c.name for c in kept.controls] == ["Embedded"]
    assert store.list(EntityKind.CONTROL_LINK) == []
