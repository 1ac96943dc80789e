"""Destination store boundary: query/create/update of property records.

The engine only talks to the :class:`DestinationStore` protocol. Two local
implementations are provided: an in-memory store (tests, dry runs) and a
JSON-file store persisted with atomic writes.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Protocol

from ..core.json_io import read_json, write_json_atomic
from ..observability.loguru_config import get_logger

if TYPE_CHECKING:
    from .filters import Filter

__all__ = [
    "DestinationStore",
    "InMemoryDestinationStore",
    "JsonFileDestinationStore",
    "Record",
    "StoreError",
    "create_destination_store",
]

logger = get_logger("sync")


class StoreError(Exception):
    """Raised when a destination operation fails."""


@dataclass
class Record:
    """A destination record (one page/row of a collection).

    Attributes
    ----------
    id : str
        Record ID assigned by the store
    collection_id : str
        Collection (database) the record belongs to
    properties : dict
        Property values keyed by property name
    """

    id: str
    collection_id: str
    properties: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "collection_id": self.collection_id, "properties": dict(self.properties)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Record:
        return cls(
            id=str(data["id"]),
            collection_id=str(data["collection_id"]),
            properties=dict(data.get("properties") or {}),
        )


class DestinationStore(Protocol):
    """Async CRUD wrapper around the destination store."""

    async def query(self, collection_id: str, filter: Filter | None = None) -> list[Record]: ...

    async def create(self, collection_id: str, properties: Mapping[str, Any]) -> Record: ...

    async def update(self, record_id: str, properties: Mapping[str, Any]) -> Record: ...


class InMemoryDestinationStore:
    """Destination store held in process memory.

    Parameters
    ----------
    records
        Initial records keyed by collection id
    """

    def __init__(self, records: Mapping[str, list[Mapping[str, Any]]] | None = None) -> None:
        self._collections: dict[str, dict[str, Record]] = {}
        for collection_id, items in (records or {}).items():
            for properties in items:
                self._insert(collection_id, properties)

    def _insert(self, collection_id: str, properties: Mapping[str, Any], record_id: str | None = None) -> Record:
        record = Record(id=record_id or str(uuid.uuid4()), collection_id=collection_id, properties=dict(properties))
        self._collections.setdefault(collection_id, {})[record.id] = record
        return record

    def _find(self, record_id: str) -> Record:
        for records in self._collections.values():
            if record_id in records:
                return records[record_id]
        raise StoreError(f"Record not found: {record_id}")

    def records(self, collection_id: str) -> list[Record]:
        """All records of a collection in insertion order."""
        return list(self._collections.get(collection_id, {}).values())

    async def query(self, collection_id: str, filter: Filter | None = None) -> list[Record]:
        return [
            Record(id=record.id, collection_id=record.collection_id, properties=dict(record.properties))
            for record in self._collections.get(collection_id, {}).values()
            if filter is None or filter.matches(record.properties)
        ]

    async def create(self, collection_id: str, properties: Mapping[str, Any]) -> Record:
        record = self._insert(collection_id, properties)
        logger.debug("Record created", collection=collection_id, record_id=record.id)
        return Record(id=record.id, collection_id=collection_id, properties=dict(record.properties))

    async def update(self, record_id: str, properties: Mapping[str, Any]) -> Record:
        record = self._find(record_id)
        record.properties.update(properties)
        logger.debug("Record updated", collection=record.collection_id, record_id=record_id)
        return Record(id=record.id, collection_id=record.collection_id, properties=dict(record.properties))

    def to_dict(self) -> dict[str, Any]:
        return {
            collection_id: [record.to_dict() for record in records.values()]
            for collection_id, records in self._collections.items()
        }


class JsonFileDestinationStore(InMemoryDestinationStore):
    """Destination store persisted to a JSON file after every write.

    Parameters
    ----------
    path
        JSON file (created on first write)
    """

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self.path = Path(path)

        document = read_json(self.path, default={})
        if not isinstance(document, dict):
            raise StoreError(f"Store file {self.path} must contain a JSON object")

        for collection_id, items in document.get("collections", {}).items():
            for item in items:
                record = Record.from_dict({**item, "collection_id": collection_id})
                self._insert(collection_id, record.properties, record_id=record.id)

    def _flush(self) -> None:
        write_json_atomic(self.path, {"collections": self.to_dict()})

    async def create(self, collection_id: str, properties: Mapping[str, Any]) -> Record:
        record = await super().create(collection_id, properties)
        self._flush()
        return record

    async def update(self, record_id: str, properties: Mapping[str, Any]) -> Record:
        record = await super().update(record_id, properties)
        self._flush()
        return record


def create_destination_store(path: Path | str | None = None) -> InMemoryDestinationStore:
    """Factory: JSON-file store when a path is given, in-memory otherwise."""
    if path is None:
        return InMemoryDestinationStore()
    return JsonFileDestinationStore(path)
