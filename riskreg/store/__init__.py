"""Entity store module.

One interface, two interchangeable backends:
- InMemoryEntityStore: process-local dictionaries
- SqlEntityStore: SQLAlchemy ORM over SQLite (or any SQLAlchemy URL)

The backend is picked once when the registry is built; callers only ever
see the EntityStore interface.
"""

from .base import EntityStore, EntityUpdate, updatable_fields
from .memory import InMemoryEntityStore
from .sql import SqlEntityStore

__all__ = [
    "EntityStore",
    "EntityUpdate",
    "InMemoryEntityStore",
    "SqlEntityStore",
    "updatable_fields",
]
