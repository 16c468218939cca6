"""
Record catalog: lookup of a record's storage pointer and metadata.
"""

from typing import Dict, Iterable, Optional, Protocol, runtime_checkable

from .models import Record


@runtime_checkable
class RecordCatalog(Protocol):
    """Read-only lookup of record rows by identifier."""

    async def lookup(self, record_id: str) -> Optional[Record]:
        ...


class InMemoryRecordCatalog:
    """Dict-backed catalog for development and tests."""

    def __init__(self, records: Optional[Iterable[Record]] = None):
        self.records: Dict[str, Record] = {r.id: r for r in (records or ())}

    def add(self, record: Record) -> None:
        self.records[record.id] = record

    async def lookup(self, record_id: str) -> Optional[Record]:
        return self.records.get(record_id)
