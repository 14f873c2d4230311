"""Entity store interface shared by the in-memory and SQL backends.

Public methods validate input, delegate the write to the backend and then
publish a :class:`MutationEvent` per committed entity, so subscribers see
the same stream whichever backend was chosen at startup.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ValidationError

from riskreg.domain.models import ENTITY_TYPES, Control, ControlLink, EntityKind, Row, kind_of
from riskreg.errors import InvalidFieldValueError, UnknownFieldError
from riskreg.events import EventBus, MutationEvent, MutationType

# Never writable through apply_update: identity, relationship endpoints and
# the embedded control list (edited through the controls themselves).
_IMMUTABLE = {"id", "controls", "owner_row_id", "row_id", "control_id", "created_at"}


@dataclass(frozen=True)
class EntityUpdate:
    """One partial update inside an atomic batch."""

    kind: EntityKind
    entity_id: str
    fields: Dict[str, Any] = field(default_factory=dict)


def updatable_fields(kind: EntityKind) -> set[str]:
    return set(ENTITY_TYPES[kind].model_fields) - _IMMUTABLE


def check_fields(kind: EntityKind, fields: Mapping[str, Any]) -> None:
    allowed = updatable_fields(kind)
    for name in fields:
        if name not in allowed:
            raise UnknownFieldError(name, kind.value)


def merge_fields(entity: BaseModel, fields: Mapping[str, Any]) -> BaseModel:
    """Validated copy of ``entity`` with ``fields`` applied."""
    kind = kind_of(entity)
    check_fields(kind, fields)
    try:
        return type(entity).model_validate({**entity.model_dump(), **fields})
    except ValidationError as exc:
        error = exc.errors()[0]
        name = str(error["loc"][0]) if error.get("loc") else kind.value
        raise InvalidFieldValueError(name, fields.get(name), error["msg"]) from exc


def _row_id_of(entity: BaseModel) -> str | None:
    if isinstance(entity, Control):
        return entity.owner_row_id
    if isinstance(entity, ControlLink):
        return entity.row_id
    if isinstance(entity, Row):
        return entity.id
    return None


class EntityStore(ABC):
    """Holds rows, controls, control links and pending changes."""

    backend: str = "abstract"

    def __init__(self, bus: Optional[EventBus] = None):
        self.bus = bus or EventBus()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @abstractmethod
    def get(self, kind: EntityKind, entity_id: str) -> BaseModel:
        """Entity by id; raises EntityNotFoundError when absent.

        Rows come back with their embedded controls ordered by position.
        """

    @abstractmethod
    def find(self, kind: EntityKind, entity_id: str) -> Optional[BaseModel]:
        """Entity by id, or None."""

    def list(self, kind: EntityKind, filters: Optional[Mapping[str, Any]] = None) -> List[BaseModel]:
        """Entities whose attributes equal every value in ``filters``."""
        filters = dict(filters or {})
        allowed = set(ENTITY_TYPES[kind].model_fields)
        for name in filters:
            if name not in allowed:
                raise UnknownFieldError(name, kind.value)
        return self._list(kind, filters)

    @abstractmethod
    def _list(self, kind: EntityKind, filters: Dict[str, Any]) -> List[BaseModel]:
        ...

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, entity: BaseModel) -> BaseModel:
        """Insert a new entity. A row's embedded controls are inserted with it."""
        kind = kind_of(entity)
        stored = self._add(kind, entity)
        self._publish(kind, stored, MutationType.CREATED)
        if isinstance(stored, Row):
            for control in stored.controls:
                self._publish(EntityKind.CONTROL, control, MutationType.CREATED)
        return stored

    def apply_update(self, kind: EntityKind, entity_id: str, fields: Mapping[str, Any]) -> BaseModel:
        """Apply a partial update as a single commit and return the new entity."""
        check_fields(kind, fields)
        updated = self._apply_batch([EntityUpdate(kind, entity_id, dict(fields))])[0]
        self._publish(kind, updated, MutationType.UPDATED, tuple(fields))
        return updated

    def apply_batch(self, updates: Sequence[EntityUpdate]) -> List[BaseModel]:
        """Apply several partial updates atomically: all commit or none do."""
        for update in updates:
            check_fields(update.kind, update.fields)
        results = self._apply_batch(list(updates))
        for update, entity in zip(updates, results):
            self._publish(update.kind, entity, MutationType.UPDATED, tuple(update.fields))
        return results

    def remove(self, kind: EntityKind, entity_id: str) -> None:
        """Delete an entity.

        Removing a control drops its links; removing a row drops its
        embedded controls and its links.
        """
        removed = self._remove(kind, entity_id)
        for entity in removed:
            self._publish(kind_of(entity), entity, MutationType.REMOVED)

    @abstractmethod
    def _add(self, kind: EntityKind, entity: BaseModel) -> BaseModel:
        ...

    @abstractmethod
    def _apply_batch(self, updates: List[EntityUpdate]) -> List[BaseModel]:
        ...

    @abstractmethod
    def _remove(self, kind: EntityKind, entity_id: str) -> List[BaseModel]:
        """Delete and return every entity removed, cascades included."""

    def _publish(
        self,
        kind: EntityKind,
        entity: BaseModel,
        mutation: MutationType,
        fields: tuple = (),
    ) -> None:
        self.bus.publish(
            MutationEvent(
                kind=kind,
                entity_id=entity.id,
                mutation=mutation,
                fields=fields,
                row_id=_row_id_of(entity),
            )
        )

    def close(self) -> None:
        """Release backend resources."""
