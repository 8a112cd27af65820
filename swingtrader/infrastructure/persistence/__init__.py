"""
Persistence adapters.
"""

from .codecs import RecordCodec
from .entity_store import EntityStore
from .memory_store import InMemoryPersistence

__all__ = ["EntityStore", "InMemoryPersistence", "RecordCodec"]
