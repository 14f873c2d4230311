"""Risk/control table rows as the cross product of taxonomy leaves.

Rows are matched to existing ones by ``(risk_id, process_id)``: a kept pair
keeps its id, scores and controls and only refreshes its display names; new
pairs get fresh unscored rows; pairs whose leaves disappeared are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from riskreg.domain.models import DEFAULT_RISK_APPETITE, EntityKind, Row
from riskreg.logging_config import get_logger
from riskreg.store.base import EntityStore

logger = get_logger(name=__name__)


class TaxonomyNode(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    children: List["TaxonomyNode"] = Field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children


TaxonomyNode.model_rebuild()


def leaf_nodes(nodes: Iterable[TaxonomyNode]) -> List[TaxonomyNode]:
    """Childless nodes, depth-first in tree order."""
    leaves: List[TaxonomyNode] = []

    def traverse(node: TaxonomyNode) -> None:
        if node.is_leaf:
            leaves.append(node)
        else:
            for child in node.children:
                traverse(child)

    for node in nodes:
        traverse(node)
    return leaves


def regenerate_rows(
    risks: Iterable[TaxonomyNode],
    processes: Iterable[TaxonomyNode],
    existing: Iterable[Row] = (),
) -> List[Row]:
    existing_by_pair: Dict[Tuple[str, str], Row] = {row.pair_key: row for row in existing}
    leaf_processes = leaf_nodes(processes)
    rows: List[Row] = []

    for risk in leaf_nodes(risks):
        for process in leaf_processes:
            current = existing_by_pair.get((risk.id, process.id))
            if current is not None:
                rows.append(current.model_copy(update={"risk_name": risk.name, "process_name": process.name}))
            else:
                rows.append(
                    Row(
                        risk_id=risk.id,
                        process_id=process.id,
                        risk_name=risk.name,
                        process_name=process.name,
                        risk_appetite=DEFAULT_RISK_APPETITE,
                    )
                )
    return rows


@dataclass
class RowSyncResult:
    created: List[str] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)


def sync_rows(store: EntityStore, risks: List[TaxonomyNode], processes: List[TaxonomyNode]) -> RowSyncResult:
    """Bring the store's rows in line with the current taxonomies."""
    existing = {row.id: row for row in store.list(EntityKind.ROW)}
    target = regenerate_rows(risks, processes, existing.values())
    result = RowSyncResult()

    for row in target:
        previous = existing.pop(row.id, None)
        if previous is None:
            store.add(row)
            result.created.append(row.id)
            continue
        renamed = {
            name: getattr(row, name)
            for name in ("risk_name", "process_name")
            if getattr(row, name) != getattr(previous, name)
        }
        if renamed:
            store.apply_update(EntityKind.ROW, row.id, renamed)
        result.kept.append(row.id)

    for row_id in existing:
        store.remove(EntityKind.ROW, row_id)
        result.removed.append(row_id)

    logger.info(
        "Row sync: {} created, {} kept, {} removed",
        len(result.created), len(result.kept), len(result.removed),
    )
    return result
