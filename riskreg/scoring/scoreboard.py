"""Pull-based net score cache.

Scores are recomputed on demand and remembered under
``score:{row_id}:{inputs_hash}``. Mutation events from the entity store
only mark rows stale; the next read reloads the inputs and recomputes when
their hash changed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Set

from riskreg.domain.models import Control, ControlLink, EntityKind, Row
from riskreg.events import EventBus, MutationEvent, MutationType
from riskreg.logging_config import get_logger
from riskreg.scoring.aggregator import NetScores, build_link_index, compute_net_scores
from riskreg.scoring.keys import inputs_hash, score_key
from riskreg.store.base import EntityStore

logger = get_logger(name=__name__)


@dataclass(frozen=True)
class _Entry:
    key: str
    scores: NetScores


class ScoreBoard:
    """Net scores per row, kept current through the event bus."""

    def __init__(self, store: EntityStore, bus: Optional[EventBus] = None):
        self.store = store
        self.bus = bus or store.bus
        self._entries: Dict[str, _Entry] = {}
        self._stale: Set[str] = set()
        # Hub control id -> rows whose cached score depends on it
        self._rows_by_control: Dict[str, Set[str]] = {}
        self._controls_by_row: Dict[str, Set[str]] = {}
        self.recompute_count = 0
        self.bus.subscribe(self._on_mutation)

    def scores_for(self, row_id: str) -> NetScores:
        entry = self._entries.get(row_id)
        if entry is not None and row_id not in self._stale:
            return entry.scores

        row = self.store.get(EntityKind.ROW, row_id)
        links = self.store.list(EntityKind.CONTROL_LINK, {"row_id": row_id})
        controls_by_id: Dict[str, Control] = {}
        for link in links:
            control = self.store.find(EntityKind.CONTROL, link.control_id)
            if control is not None:
                controls_by_id[control.id] = control
        return self._evaluate(row, links, controls_by_id)

    def refresh(self) -> Dict[str, NetScores]:
        """Scores for every row, recomputing only stale or unseen rows."""
        rows = self.store.list(EntityKind.ROW)
        due = {row.id for row in rows if row.id in self._stale or row.id not in self._entries}

        link_index: Dict[str, list] = {}
        controls_by_id: Dict[str, Control] = {}
        if due:
            link_index = build_link_index(self.store.list(EntityKind.CONTROL_LINK))
            hub_controls = self.store.list(EntityKind.CONTROL, {"owner_row_id": None})
            controls_by_id = {control.id: control for control in hub_controls}

        results: Dict[str, NetScores] = {}
        for row in rows:
            if row.id in due:
                results[row.id] = self._evaluate(row, link_index.get(row.id, []), controls_by_id)
            else:
                results[row.id] = self._entries[row.id].scores

        for gone in set(self._entries) - set(results):
            self._forget(gone)
        return results

    def invalidate(self, row_id: Optional[str] = None) -> None:
        """Mark one row (or every cached row) for recompute on next read."""
        if row_id is None:
            self._stale.update(self._entries)
        else:
            self._stale.add(row_id)

    def _evaluate(
        self,
        row: Row,
        links: Sequence[ControlLink],
        controls_by_id: Mapping[str, Control],
    ) -> NetScores:
        key = score_key(row.id, inputs_hash(row, links, controls_by_id))
        self._stale.discard(row.id)
        self._track(row.id, {link.control_id for link in links})

        entry = self._entries.get(row.id)
        if entry is not None and entry.key == key:
            return entry.scores

        scores = compute_net_scores(row, links, controls_by_id)
        self._entries[row.id] = _Entry(key, scores)
        self.recompute_count += 1
        logger.debug("Recomputed {} -> {}", key, scores.net_score)
        return scores

    def _track(self, row_id: str, control_ids: Set[str]) -> None:
        previous = self._controls_by_row.get(row_id, set())
        for control_id in previous - control_ids:
            self._rows_by_control.get(control_id, set()).discard(row_id)
        for control_id in control_ids - previous:
            self._rows_by_control.setdefault(control_id, set()).add(row_id)
        self._controls_by_row[row_id] = control_ids

    def _forget(self, row_id: str) -> None:
        self._entries.pop(row_id, None)
        self._stale.discard(row_id)
        self._track(row_id, set())
        self._controls_by_row.pop(row_id, None)

    def _on_mutation(self, event: MutationEvent) -> None:
        if event.kind is EntityKind.ROW:
            if event.mutation is MutationType.REMOVED:
                self._forget(event.entity_id)
            else:
                self._stale.add(event.entity_id)
        elif event.kind is EntityKind.CONTROL:
            if event.row_id is not None:
                self._stale.add(event.row_id)
            else:
                self._stale.update(self._rows_by_control.get(event.entity_id, ()))
        elif event.kind is EntityKind.CONTROL_LINK and event.row_id is not None:
            self._stale.add(event.row_id)

    def close(self) -> None:
        self.bus.unsubscribe(self._on_mutation)
