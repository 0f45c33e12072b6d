"""
Record Store - ordered business collection with write-through persistence

All mutation goes through add / merge_enrichment / remove_at / clear. Every
mutating call hands the full collection to the key-value collaborator before
returning.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from pydantic import ValidationError

from src.db.kv_store import BUSINESS_DATA_KEY, KeyValueStore
from src.schemas import BusinessRecord, EnrichmentResult


RecordKey = Union[BusinessRecord, Tuple[str, str]]


@dataclass(frozen=True)
class AddResult:
    accepted: bool
    index: Optional[int] = None
    reason: Optional[str] = None  # "duplicate" | "incomplete"


class RecordStore:
    """In-memory ordered collection of BusinessRecords.

    Dedup key is (name, address): inserting a duplicate is rejected, not
    merged. Records are only removed by explicit user action.
    """

    def __init__(self, kv: KeyValueStore, records: Optional[List[BusinessRecord]] = None) -> None:
        self.kv = kv
        self._records: List[BusinessRecord] = list(records or [])

    @classmethod
    def load(cls, kv: KeyValueStore) -> "RecordStore":
        """Build the store from the persisted collection; malformed rows are skipped."""
        raw = kv.get([BUSINESS_DATA_KEY]).get(BUSINESS_DATA_KEY) or []
        records: List[BusinessRecord] = []
        skipped = 0
        if isinstance(raw, list):
            for item in raw:
                try:
                    records.append(BusinessRecord.model_validate(item))
                except ValidationError:
                    skipped += 1
        if skipped:
            print(f"⚠️  Skipped {skipped} malformed stored record(s)")
        return cls(kv, records)

    # -------------------------
    # Read access
    # -------------------------
    def all(self) -> Tuple[BusinessRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def latest(self) -> Optional[BusinessRecord]:
        return self._records[-1] if self._records else None

    def get(self, index: int) -> Optional[BusinessRecord]:
        if 0 <= index < len(self._records):
            return self._records[index]
        return None

    def find(self, key: RecordKey) -> Optional[BusinessRecord]:
        """Locate a record by stored reference or by (name, address)."""
        if isinstance(key, BusinessRecord):
            for rec in self._records:
                if rec is key:
                    return rec
            key = key.dedup_key
        for rec in self._records:
            if rec.dedup_key == key:
                return rec
        return None

    def contains(self, record: BusinessRecord) -> bool:
        return any(rec.dedup_key == record.dedup_key for rec in self._records)

    # -------------------------
    # Mutation
    # -------------------------
    def add(self, record: BusinessRecord) -> AddResult:
        if not record.name:
            return AddResult(accepted=False, reason="incomplete")
        if self.contains(record):
            return AddResult(accepted=False, reason="duplicate")
        self._records.append(record)
        self._persist()
        return AddResult(accepted=True, index=len(self._records) - 1)

    def merge_enrichment(self, key: RecordKey, result: EnrichmentResult) -> Optional[BusinessRecord]:
        """Overwrite the enrichment fields of the matching record in place.

        The record may have been deleted while its website was being fetched;
        in that case nothing is written and None is returned.
        """
        target = self.find(key)
        if target is None:
            name = key.name if isinstance(key, BusinessRecord) else key[0]
            print(f"⚠️  Enrichment dropped: {name!r} is no longer stored")
            return None
        target.apply_enrichment(result)
        self._persist()
        return target

    def remove_at(self, index: int) -> Optional[BusinessRecord]:
        if not 0 <= index < len(self._records):
            return None
        removed = self._records.pop(index)
        self._persist()
        return removed

    def clear(self) -> int:
        count = len(self._records)
        self._records = []
        self._persist()
        return count

    def _persist(self) -> None:
        self.kv.set({BUSINESS_DATA_KEY: [rec.to_storage() for rec in self._records]})
