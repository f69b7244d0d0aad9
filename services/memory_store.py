# services/memory_store.py
import copy
import itertools
import uuid
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Dict, List, Optional

from models.journal_entry import JournalEntryItem, JournalEntryRecord, normalize_record, utc_now_iso
from services.journal_store import (
    DEFAULT_LIST_LIMIT,
    JournalNotFoundError,
    JournalStore,
    clamp_limit,
)


class InMemoryJournalStore(JournalStore):
    """Process-local journal store for development and tests"""

    def __init__(self):
        self._lock = RLock()
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._sequence = itertools.count()

    def put_document(self, document: Dict[str, Any]) -> str:
        """Store a raw document as-is, e.g. a legacy flat record"""
        doc = copy.deepcopy(document)
        doc.setdefault("id", uuid.uuid4().hex)
        doc.setdefault("createdAt", datetime.now(timezone.utc))
        with self._lock:
            doc["_seq"] = next(self._sequence)
            self._documents[doc["id"]] = doc
        return doc["id"]

    async def create(self, item: JournalEntryItem) -> str:
        return self.put_document({
            "timestamp": utc_now_iso(),
            "entries": [item.to_document()],
        })

    async def append(self, journal_id: str, item: JournalEntryItem) -> None:
        with self._lock:
            doc = self._documents.get(journal_id)
            if doc is None:
                raise JournalNotFoundError(journal_id)
            if doc.get("entries") is None:
                doc["entries"] = [
                    entry.to_document() for entry in normalize_record(doc).entries
                ]
            doc["entries"].append(item.to_document())

    def _ordered(self) -> List[Dict[str, Any]]:
        with self._lock:
            docs = [copy.deepcopy(doc) for doc in self._documents.values()]
        return sorted(docs, key=lambda d: (d["createdAt"], d["_seq"]), reverse=True)

    async def get(self, journal_id: str) -> Optional[JournalEntryRecord]:
        with self._lock:
            doc = self._documents.get(journal_id)
            if doc is None:
                return None
            doc = copy.deepcopy(doc)
        return normalize_record(doc)

    async def get_latest(self) -> Optional[JournalEntryRecord]:
        docs = self._ordered()
        return normalize_record(docs[0]) if docs else None

    async def list(self, limit: int = DEFAULT_LIST_LIMIT) -> List[JournalEntryRecord]:
        return [normalize_record(doc) for doc in self._ordered()[:clamp_limit(limit)]]
