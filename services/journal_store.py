# services/journal_store.py
from abc import ABC, abstractmethod
from typing import List, Optional

from models.journal_entry import JournalEntryItem, JournalEntryRecord

DEFAULT_LIST_LIMIT = 50


class JournalStoreError(RuntimeError):
    """Base class for journal persistence failures"""
    pass


class StoreWriteError(JournalStoreError):
    pass


class StoreReadError(JournalStoreError):
    pass


class JournalNotFoundError(JournalStoreError):
    def __init__(self, journal_id: str):
        super().__init__(f"Journal entry not found: {journal_id}")
        self.journal_id = journal_id


class JournalStore(ABC):
    """Async contract shared by every journal record backend"""

    @abstractmethod
    async def create(self, item: JournalEntryItem) -> str:
        """Create a record seeded with ``item`` and return its id"""

    @abstractmethod
    async def append(self, journal_id: str, item: JournalEntryItem) -> None:
        """Append ``item`` to an existing record; never creates one"""

    @abstractmethod
    async def get(self, journal_id: str) -> Optional[JournalEntryRecord]: ...

    @abstractmethod
    async def get_latest(self) -> Optional[JournalEntryRecord]: ...

    @abstractmethod
    async def list(self, limit: int = DEFAULT_LIST_LIMIT) -> List[JournalEntryRecord]: ...


def clamp_limit(limit: int) -> int:
    return max(0, min(int(limit), DEFAULT_LIST_LIMIT))
