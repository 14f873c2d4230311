"""In-process publish/subscribe for entity mutations.

The entity store publishes one event per committed write; consumers such
as the score board subscribe instead of polling. Delivery is synchronous
and a failing subscriber never affects the writer or other subscribers.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Tuple

from riskreg.domain.models import EntityKind
from riskreg.logging_config import get_logger

logger = get_logger(name=__name__)


class MutationType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True)
class MutationEvent:
    kind: EntityKind
    entity_id: str
    mutation: MutationType
    fields: Tuple[str, ...] = ()
    # Row the entity hangs off, when it has one (embedded control, link).
    row_id: str | None = None


Subscriber = Callable[[MutationEvent], None]


class EventBus:
    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)
            logger.debug("Subscriber registered: {}", getattr(callback, "__qualname__", callback))

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def publish(self, event: MutationEvent) -> None:
        logger.debug(
            "Mutation {} {} {} fields={}",
            event.mutation.value, event.kind.value, event.entity_id, list(event.fields),
        )
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Subscriber {} failed on {} {}",
                    getattr(callback, "__qualname__", callback), event.kind.value, event.entity_id,
                )

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
