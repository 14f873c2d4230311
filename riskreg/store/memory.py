"""In-memory entity store, used for demos, tests and single-process sessions."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from riskreg.domain.models import EntityKind, Row
from riskreg.errors import EntityNotFoundError, StoreWriteError
from riskreg.events import EventBus
from riskreg.logging_config import get_logger
from riskreg.store.base import EntityStore, EntityUpdate, merge_fields

logger = get_logger(name=__name__)


class InMemoryEntityStore(EntityStore):
    backend = "memory"

    def __init__(self, bus: Optional[EventBus] = None):
        super().__init__(bus)
        self._data: Dict[EntityKind, Dict[str, BaseModel]] = {kind: {} for kind in EntityKind}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find(self, kind: EntityKind, entity_id: str) -> Optional[BaseModel]:
        entity = self._data[kind].get(entity_id)
        if entity is None:
            return None
        if kind is EntityKind.ROW:
            return self._with_controls(entity)
        return entity.model_copy(deep=True)

    def get(self, kind: EntityKind, entity_id: str) -> BaseModel:
        entity = self.find(kind, entity_id)
        if entity is None:
            raise EntityNotFoundError(kind.value, entity_id)
        return entity

    def _list(self, kind: EntityKind, filters: Dict[str, Any]) -> List[BaseModel]:
        matches = [
            entity for entity in self._data[kind].values()
            if all(getattr(entity, name) == value for name, value in filters.items())
        ]
        if kind is EntityKind.ROW:
            return [self._with_controls(row) for row in matches]
        return [entity.model_copy(deep=True) for entity in matches]

    def _with_controls(self, row: BaseModel) -> Row:
        embedded = sorted(
            (c for c in self._data[EntityKind.CONTROL].values() if c.owner_row_id == row.id),
            key=lambda c: c.position,
        )
        return row.model_copy(update={"controls": [c.model_copy(deep=True) for c in embedded]}, deep=True)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _add(self, kind: EntityKind, entity: BaseModel) -> BaseModel:
        if entity.id in self._data[kind]:
            raise StoreWriteError(kind.value, entity.id, "already exists")

        if isinstance(entity, Row):
            controls = [
                control.model_copy(update={"owner_row_id": entity.id, "position": index}, deep=True)
                for index, control in enumerate(entity.controls)
            ]
            for control in controls:
                if control.id in self._data[EntityKind.CONTROL]:
                    raise StoreWriteError("control", control.id, "already exists")
            self._data[kind][entity.id] = entity.model_copy(update={"controls": []}, deep=True)
            for control in controls:
                self._data[EntityKind.CONTROL][control.id] = control
            return self._with_controls(entity)

        self._data[kind][entity.id] = entity.model_copy(deep=True)
        return entity.model_copy(deep=True)

    def _apply_batch(self, updates: List[EntityUpdate]) -> List[BaseModel]:
        # Stage every update first so a failure leaves the store untouched.
        staged: Dict[tuple, BaseModel] = {}
        results: List[BaseModel] = []
        for update in updates:
            key = (update.kind, update.entity_id)
            current = staged.get(key) or self._data[update.kind].get(update.entity_id)
            if current is None:
                raise EntityNotFoundError(update.kind.value, update.entity_id)
            new_entity = merge_fields(current, update.fields)
            staged[key] = new_entity
            results.append(new_entity)

        for (kind, entity_id), entity in staged.items():
            self._data[kind][entity_id] = entity

        return [
            self._with_controls(entity) if isinstance(entity, Row) else entity.model_copy(deep=True)
            for entity in results
        ]

    def _remove(self, kind: EntityKind, entity_id: str) -> List[BaseModel]:
        entity = self._data[kind].get(entity_id)
        if entity is None:
            raise EntityNotFoundError(kind.value, entity_id)

        removed: List[BaseModel] = []
        links = self._data[EntityKind.CONTROL_LINK]
        controls = self._data[EntityKind.CONTROL]

        if kind is EntityKind.ROW:
            for control_id in [c.id for c in controls.values() if c.owner_row_id == entity_id]:
                removed.append(controls.pop(control_id))
            for link_id in [l.id for l in links.values() if l.row_id == entity_id]:
                removed.append(links.pop(link_id))
        elif kind is EntityKind.CONTROL:
            for link_id in [l.id for l in links.values() if l.control_id == entity_id]:
                removed.append(links.pop(link_id))

        removed.insert(0, self._data[kind].pop(entity_id))
        logger.debug("Removed {} '{}' ({} cascaded)", kind.value, entity_id, len(removed) - 1)
        return removed

    def clear(self) -> None:
        for bucket in self._data.values():
            bucket.clear()
