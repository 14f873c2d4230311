from riskreg.domain.models import Control, ControlLink, Row
from riskreg.scoring.aggregator import (
    UNSCORED,
    NetScores,
    aggregate_rows,
    build_link_index,
    compute_net_scores,
    net_within_appetite,
    resolve_link_scores,
)
from riskreg.scoring.keys import inputs_hash, score_key


def _row(p=None, i=None, controls=(), **kwargs):
    return Row(risk_id="R1", process_id="P1", gross_probability=p, gross_impact=i, controls=list(controls), **kwargs)


def test_no_controls_falls_back_to_gross():
    scores = compute_net_scores(_row(3, 4))
    assert scores == NetScores(3, 4, 12)
    assert not scores.has_controls
    assert not scores.is_unscored


def test_no_controls_and_no_gross_is_empty_not_unscored():
    scores = compute_net_scores(_row())
    assert scores.net_score is None
    assert not scores.is_unscored


def test_single_embedded_control():
    scores = compute_net_scores(_row(3, 4, [Control(name="C1", net_probability=2, net_impact=2)]))
    assert (scores.net_probability, scores.net_impact, scores.net_score) == (2, 2, 4)
    assert scores.has_controls


def test_minimum_taken_per_dimension_independently():
    controls = [
        Control(name="C1", net_probability=2, net_impact=5),
        Control(name="C2", net_probability=4, net_impact=1),
    ]
    scores = compute_net_scores(_row(5, 5, controls))
    assert (scores.net_probability, scores.net_impact, scores.net_score) == (2, 1, 2)


def test_link_override_shadows_hub_control_for_its_row():
    c1 = Control(name="C1", net_probability=2, net_impact=3)
    c2 = Control(name="C2", net_probability=5, net_impact=4)
    row = _row(5, 5, [c1])
    link = ControlLink(row_id=row.id, control_id=c2.id, net_probability=1)

    scores = compute_net_scores(row, [link], {c2.id: c2})

    assert (scores.net_probability, scores.net_impact, scores.net_score) == (1, 3, 3)


def test_override_only_affects_the_linked_row():
    hub = Control(name="Hub", net_probability=3, net_impact=3)
    row_a = Row(risk_id="R1", process_id="P1", gross_probability=5, gross_impact=5)
    row_b = Row(risk_id="R1", process_id="P2", gross_probability=5, gross_impact=5)
    links = [
        ControlLink(row_id=row_a.id, control_id=hub.id, net_probability=1, net_impact=1),
        ControlLink(row_id=row_b.id, control_id=hub.id),
    ]

    result = aggregate_rows([row_a, row_b], [hub], links)

    assert result[row_a.id].net_score == 1
    assert result[row_b.id].net_score == 9
    assert hub.net_probability == 3


def test_controls_without_scores_are_unscored():
    scores = compute_net_scores(_row(4, 4, [Control(name="Draft control")]))
    assert scores == UNSCORED
    assert scores.is_unscored
    assert scores.net_score is None


def test_probability_only_controls_are_unscored():
    controls = [Control(name="C1", net_probability=2), Control(name="C2", net_probability=3)]
    assert compute_net_scores(_row(4, 4, controls)).is_unscored


def test_probability_and_impact_from_different_controls_combine():
    controls = [Control(name="C1", net_probability=2), Control(name="C2", net_impact=3)]
    assert compute_net_scores(_row(4, 4, controls)).net_score == 6


def test_dangling_link_counts_as_control_and_uses_its_overrides():
    row = _row(4, 4)
    orphan = ControlLink(row_id=row.id, control_id="gone", net_probability=2, net_impact=2)
    assert compute_net_scores(row, [orphan], {}).net_score == 4

    bare = ControlLink(row_id=row.id, control_id="gone")
    assert compute_net_scores(row, [bare], {}).is_unscored


def test_resolve_link_scores_prefers_override_per_dimension():
    control = Control(name="Hub", net_probability=4, net_impact=4)
    link = ControlLink(row_id="r", control_id=control.id, net_impact=2)
    assert resolve_link_scores(link, control) == (4, 2)
    assert resolve_link_scores(link, None) == (None, 2)


def test_aggregate_rows_indexes_links_by_row():
    hub = Control(name="Hub", net_probability=2, net_impact=2)
    rows = [Row(risk_id="R1", process_id=f"P{n}", gross_probability=5, gross_impact=5) for n in range(3)]
    links = [ControlLink(row_id=rows[0].id, control_id=hub.id)]

    result = aggregate_rows(rows, [hub], links)

    assert result[rows[0].id].net_score == 4
    assert result[rows[1].id].net_score == 25
    assert result[rows[2].id].net_score == 25
    assert set(build_link_index(links)) == {rows[0].id}


def test_within_appetite_uses_net_score():
    row = _row(5, 5, [Control(name="C1", net_probability=2, net_impact=2)], risk_appetite=9)
    scores = compute_net_scores(row)
    assert net_within_appetite(row, scores) == 5
    assert row.within_appetite == 9 - 25
    assert UNSCORED.within_appetite(9) is None


def test_inputs_hash_ignores_non_score_fields():
    control = Control(name="C1", net_probability=2, net_impact=2)
    row = _row(3, 3, [control])
    renamed = _row(3, 3, [control.model_copy(update={"name": "Renamed", "comment": "x"})])
    renamed = renamed.model_copy(update={"id": row.id})

    assert inputs_hash(row) == inputs_hash(renamed)

    rescored = row.model_copy(update={"gross_probability": 4})
    assert inputs_hash(row) != inputs_hash(rescored)


def test_score_key_format():
    assert score_key("row-1", "abc123") == "score:row-1:abc123"
