"""SQLAlchemy-backed entity store.

Every public write runs in one session transaction: an atomic batch either
commits as a whole or is rolled back, and driver failures surface as
:class:`StoreWriteError` so callers can keep their drafts.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel
from sqlalchemy import Engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from riskreg.domain.models import ENTITY_TYPES, EntityKind, Row
from riskreg.errors import EntityNotFoundError, StoreWriteError, UnknownFieldError
from riskreg.events import EventBus
from riskreg.logging_config import get_logger
from riskreg.store.base import EntityStore, EntityUpdate, merge_fields
from riskreg.store.engine import create_database_engine, create_session_factory, init_database
from riskreg.store.tables import ControlLinkRecord, ControlRecord, PendingChangeRecord, RowRecord

logger = get_logger(name=__name__)

_RECORDS = {
    EntityKind.ROW: RowRecord,
    EntityKind.CONTROL: ControlRecord,
    EntityKind.CONTROL_LINK: ControlLinkRecord,
    EntityKind.PENDING_CHANGE: PendingChangeRecord,
}

_ORDERING = {
    EntityKind.CONTROL: (ControlRecord.position, ControlRecord.id),
    EntityKind.CONTROL_LINK: (ControlLinkRecord.created_at, ControlLinkRecord.id),
    EntityKind.PENDING_CHANGE: (PendingChangeRecord.submitted_at, PendingChangeRecord.id),
}


def _column_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _aware(value: Any) -> Any:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _columns(kind: EntityKind) -> List[str]:
    return list(_RECORDS[kind].__table__.columns.keys())


def _record_values(kind: EntityKind, entity: BaseModel) -> Dict[str, Any]:
    data = entity.model_dump(include=set(_columns(kind)))
    return {name: _column_value(value) for name, value in data.items()}


def _to_domain(kind: EntityKind, record: Any) -> BaseModel:
    data = {name: _aware(getattr(record, name)) for name in _columns(kind)}
    return ENTITY_TYPES[kind].model_validate(data)


class SqlEntityStore(EntityStore):
    backend = "sql"

    def __init__(self, engine: Engine, bus: Optional[EventBus] = None, create_tables: bool = True):
        super().__init__(bus)
        self.engine = engine
        self._session_factory = create_session_factory(engine)
        if create_tables:
            init_database(engine)

    @classmethod
    def from_url(cls, database_url: str, bus: Optional[EventBus] = None) -> "SqlEntityStore":
        return cls(create_database_engine(database_url), bus=bus)

    @contextmanager
    def _transaction(self, kind: str, entity_id: str | None) -> Iterator[Session]:
        try:
            with self._session_factory.begin() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Store write failed for {} '{}': {}", kind, entity_id, exc)
            raise StoreWriteError(kind, entity_id, exc.__class__.__name__) from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find(self, kind: EntityKind, entity_id: str) -> Optional[BaseModel]:
        with self._session_factory() as session:
            record = session.get(_RECORDS[kind], entity_id)
            if record is None:
                return None
            return self._load(session, kind, record)

    def get(self, kind: EntityKind, entity_id: str) -> BaseModel:
        entity = self.find(kind, entity_id)
        if entity is None:
            raise EntityNotFoundError(kind.value, entity_id)
        return entity

    def _list(self, kind: EntityKind, filters: Dict[str, Any]) -> List[BaseModel]:
        record_cls = _RECORDS[kind]
        stmt = select(record_cls)
        for name, value in filters.items():
            column = record_cls.__table__.columns.get(name)
            if column is None:
                raise UnknownFieldError(name, kind.value)
            stmt = stmt.where(column.is_(None) if value is None else column == _column_value(value))
        if kind in _ORDERING:
            stmt = stmt.order_by(*_ORDERING[kind])

        with self._session_factory() as session:
            records = session.scalars(stmt).all()
            return [self._load(session, kind, record) for record in records]

    def _load(self, session: Session, kind: EntityKind, record: Any) -> BaseModel:
        entity = _to_domain(kind, record)
        if kind is EntityKind.ROW:
            return self._with_controls(session, entity)
        return entity

    def _with_controls(self, session: Session, row: Row) -> Row:
        stmt = (
            select(ControlRecord)
            .where(ControlRecord.owner_row_id == row.id)
            .order_by(*_ORDERING[EntityKind.CONTROL])
        )
        controls = [_to_domain(EntityKind.CONTROL, record) for record in session.scalars(stmt)]
        return row.model_copy(update={"controls": controls})

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _add(self, kind: EntityKind, entity: BaseModel) -> BaseModel:
        record_cls = _RECORDS[kind]
        with self._transaction(kind.value, entity.id) as session:
            if session.get(record_cls, entity.id) is not None:
                raise StoreWriteError(kind.value, entity.id, "already exists")
            session.add(record_cls(**_record_values(kind, entity)))

            if isinstance(entity, Row):
                # No mapper relationship orders these inserts; the row must exist first.
                session.flush()
                for index, control in enumerate(entity.controls):
                    embedded = control.model_copy(update={"owner_row_id": entity.id, "position": index})
                    session.add(ControlRecord(**_record_values(EntityKind.CONTROL, embedded)))

            session.flush()
            return self._load(session, kind, session.get(record_cls, entity.id))

    def _apply_batch(self, updates: List[EntityUpdate]) -> List[BaseModel]:
        first = updates[0] if updates else None
        with self._transaction(
            first.kind.value if first else "batch", first.entity_id if first else None
        ) as session:
            touched = []
            for update in updates:
                record = session.get(_RECORDS[update.kind], update.entity_id)
                if record is None:
                    raise EntityNotFoundError(update.kind.value, update.entity_id)
                new_entity = merge_fields(_to_domain(update.kind, record), update.fields)
                for name, value in _record_values(update.kind, new_entity).items():
                    setattr(record, name, value)
                touched.append((update.kind, record))

            session.flush()
            return [self._load(session, kind, record) for kind, record in touched]

    def _remove(self, kind: EntityKind, entity_id: str) -> List[BaseModel]:
        with self._transaction(kind.value, entity_id) as session:
            record = session.get(_RECORDS[kind], entity_id)
            if record is None:
                raise EntityNotFoundError(kind.value, entity_id)

            cascaded: List[tuple] = []
            if kind is EntityKind.ROW:
                for control in session.scalars(select(ControlRecord).where(ControlRecord.owner_row_id == entity_id)):
                    cascaded.append((EntityKind.CONTROL, control))
                for link in session.scalars(select(ControlLinkRecord).where(ControlLinkRecord.row_id == entity_id)):
                    cascaded.append((EntityKind.CONTROL_LINK, link))
            elif kind is EntityKind.CONTROL:
                for link in session.scalars(select(ControlLinkRecord).where(ControlLinkRecord.control_id == entity_id)):
                    cascaded.append((EntityKind.CONTROL_LINK, link))

            removed = [_to_domain(kind, record)]
            for cascaded_kind, cascaded_record in cascaded:
                removed.append(_to_domain(cascaded_kind, cascaded_record))
                session.delete(cascaded_record)
            session.flush()
            session.delete(record)

        logger.debug("Removed {} '{}' ({} cascaded)", kind.value, entity_id, len(removed) - 1)
        return removed

    def close(self) -> None:
        self.engine.dispose()
