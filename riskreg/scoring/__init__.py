"""Net score aggregation and the event-driven score board."""

from .aggregator import (
    NetScores,
    aggregate_rows,
    build_link_index,
    compute_net_scores,
    net_within_appetite,
    resolve_link_scores,
)
from .keys import inputs_hash
from .scoreboard import ScoreBoard

__all__ = [
    "NetScores",
    "ScoreBoard",
    "aggregate_rows",
    "build_link_index",
    "compute_net_scores",
    "inputs_hash",
    "net_within_appetite",
    "resolve_link_scores",
]
