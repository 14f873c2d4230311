"""Net risk score aggregation.

The net score of a row is the residual risk left after its controls:

* no effective controls: net equals gross;
* controls with at least one scored probability and one scored impact:
  the minimum of each, multiplied;
* controls that carry no scores yet: unscored ``(None, None, None)``,
  which is neither zero nor "no controls".

Effective controls are the row's embedded controls plus every hub control
linked to the row; a link's override shadows the hub control's own value
for that one row only. Everything here is a pure function of the inputs
and never raises on missing data.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from riskreg.domain.models import Control, ControlLink, Row, score_product


@dataclass(frozen=True)
class NetScores:
    net_probability: Optional[int]
    net_impact: Optional[int]
    net_score: Optional[int]
    has_controls: bool = False

    @property
    def is_unscored(self) -> bool:
        """Controls exist but none of them carries a full score yet."""
        return self.has_controls and self.net_score is None

    def within_appetite(self, risk_appetite: int) -> Optional[int]:
        if self.net_score is None:
            return None
        return risk_appetite - self.net_score

    def as_dict(self) -> Dict[str, Optional[int]]:
        return {
            "netProbability": self.net_probability,
            "netImpact": self.net_impact,
            "netScore": self.net_score,
        }


UNSCORED = NetScores(None, None, None, has_controls=True)


def build_link_index(links: Iterable[ControlLink]) -> Dict[str, List[ControlLink]]:
    """Group links by row id in one pass."""
    index: Dict[str, List[ControlLink]] = {}
    for link in links:
        index.setdefault(link.row_id, []).append(link)
    return index


def resolve_link_scores(
    link: ControlLink, control: Optional[Control]
) -> tuple[Optional[int], Optional[int]]:
    """Probability and impact for one link: override first, then the control's own value."""
    probability = link.net_probability
    impact = link.net_impact
    if control is not None:
        if probability is None:
            probability = control.net_probability
        if impact is None:
            impact = control.net_impact
    return probability, impact


def compute_net_scores(
    row: Row,
    row_links: Sequence[ControlLink] = (),
    controls_by_id: Optional[Mapping[str, Control]] = None,
) -> NetScores:
    controls_by_id = controls_by_id or {}
    probabilities: List[int] = []
    impacts: List[int] = []

    for control in row.controls:
        if control.net_probability is not None:
            probabilities.append(control.net_probability)
        if control.net_impact is not None:
            impacts.append(control.net_impact)

    for link in row_links:
        # A link whose control is gone still counts as a control and only
        # contributes its own overrides.
        probability, impact = resolve_link_scores(link, controls_by_id.get(link.control_id))
        if probability is not None:
            probabilities.append(probability)
        if impact is not None:
            impacts.append(impact)

    has_any_controls = len(row.controls) > 0 or len(row_links) > 0
    if not has_any_controls:
        return NetScores(row.gross_probability, row.gross_impact, row.gross_score)

    if probabilities and impacts:
        net_probability = min(probabilities)
        net_impact = min(impacts)
        return NetScores(
            net_probability,
            net_impact,
            score_product(net_probability, net_impact),
            has_controls=True,
        )

    return UNSCORED


def aggregate_rows(
    rows: Iterable[Row],
    controls: Iterable[Control],
    links: Iterable[ControlLink],
) -> Dict[str, NetScores]:
    """Net scores for a batch of rows, keyed by row id.

    Links are indexed by row once up front, so the per-row pass never
    rescans the full link set.
    """
    controls_by_id = {control.id: control for control in controls}
    link_index = build_link_index(links)
    return {
        row.id: compute_net_scores(row, link_index.get(row.id, ()), controls_by_id)
        for row in rows
    }


def net_within_appetite(row: Row, scores: NetScores) -> Optional[int]:
    return scores.within_appetite(row.risk_appetite)
