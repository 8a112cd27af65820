"""
Generic keyed record store.

One ``EntityStore[T]`` holds the encoded records of a single entity type.
Entities go in and come out through the store's codec, so callers always
receive fresh objects that do not alias what is stored.
"""

from collections.abc import Callable

from swingtrader.core.exceptions.engine import PersistenceError
from swingtrader.infrastructure.persistence.codecs import Record, RecordCodec


class EntityStore[T]:
    """Insertion-ordered store of encoded entities."""

    def __init__(self, codec: RecordCodec[T]):
        self._codec = codec
        self._records: dict[str, Record] = {}

    @property
    def entity(self) -> str:
        return self._codec.entity

    def __len__(self) -> int:
        return len(self._records)

    def insert(self, entity: T) -> T:
        """Store a new entity.

        Raises:
            PersistenceError: If an entity with the same key exists
        """
        key = self._codec.key(entity)
        if key in self._records:
            raise PersistenceError(f"create_{self.entity}", f"duplicate key {key}")
        self._records[key] = self._codec.to_record(entity)
        return self._codec.from_record(self._records[key])

    def update(self, entity: T) -> T:
        """Overwrite an existing entity.

        Raises:
            PersistenceError: If no entity with the key exists
        """
        key = self._codec.key(entity)
        if key not in self._records:
            raise PersistenceError(f"update_{self.entity}", f"unknown key {key}")
        self._records[key] = self._codec.to_record(entity)
        return self._codec.from_record(self._records[key])

    def get(self, key: str) -> T | None:
        record = self._records.get(key)
        return self._codec.from_record(record) if record is not None else None

    def find(self, predicate: Callable[[T], bool] | None = None) -> list[T]:
        """Decode all entities, optionally filtered, in insertion order."""
        entities = [self._codec.from_record(record) for record in self._records.values()]
        if predicate is None:
            return entities
        return [entity for entity in entities if predicate(entity)]
