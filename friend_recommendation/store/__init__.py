from .base import ProfileStore
from .memory_store import InMemoryProfileStore
from .sql_store import SqlProfileStore

__all__ = ["ProfileStore", "InMemoryProfileStore", "SqlProfileStore"]
