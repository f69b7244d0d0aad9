# services/database_service.py
"""
MySQL-backed journal store.

Records live in a single ``journal_entries`` table on the Google Cloud SQL
instance. The item list is a JSON column so appends can be done with one
atomic ``UPDATE ... JSON_ARRAY_APPEND`` statement; concurrent appends to the
same record are serialized by the row lock instead of a read-modify-write.
"""

import asyncio
import json
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

import pymysql
import pymysql.cursors

from models.journal_entry import JournalEntryItem, JournalEntryRecord, normalize_record, utc_now_iso
from services.journal_store import (
    DEFAULT_LIST_LIMIT,
    JournalNotFoundError,
    JournalStore,
    StoreReadError,
    StoreWriteError,
    clamp_limit,
)

logger = logging.getLogger(__name__)

# Legacy rows predate the entries column and keep a single item in the flat columns
CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS journal_entries (
    seq BIGINT NOT NULL AUTO_INCREMENT PRIMARY KEY,
    entry_id VARCHAR(64) NOT NULL UNIQUE,
    created_at TIMESTAMP(6) NOT NULL DEFAULT CURRENT_TIMESTAMP(6),
    `timestamp` VARCHAR(40) NULL,
    entries JSON NULL,
    transcription TEXT NULL,
    summary TEXT NULL,
    audio_length INT NULL,
    metadata JSON NULL,
    INDEX idx_journal_created_at (created_at)
) CHARACTER SET utf8mb4
"""

SELECT_COLUMNS = (
    "entry_id, created_at, `timestamp`, entries, "
    "transcription, summary, audio_length, metadata"
)

# Appending to a legacy row first lifts its flat item into the list
APPEND_SQL = """
UPDATE journal_entries
SET entries = JSON_ARRAY_APPEND(
    COALESCE(entries, JSON_ARRAY(JSON_OBJECT(
        'timestamp', COALESCE(`timestamp`, DATE_FORMAT(created_at, '%%Y-%%m-%%dT%%H:%%i:%%s.%%fZ')),
        'transcription', COALESCE(transcription, ''),
        'summary', summary,
        'audioLength', COALESCE(audio_length, 0),
        'metadata', COALESCE(metadata, JSON_OBJECT())
    ))),
    '$', CAST(%s AS JSON)
)
WHERE entry_id = %s
"""


def _load_json(value: Any) -> Any:
    if value is None or isinstance(value, (list, dict)):
        return value
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    return json.loads(value)


class DatabaseService(JournalStore):
    """Handles all database operations for journal entries"""

    def __init__(self, db_config: Dict[str, Any], connect: Callable[..., Any] = pymysql.connect):
        self.db_config = db_config
        self._connect = connect

    def get_connection(self):
        """Create database connection"""
        return self._connect(**self.db_config)

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    # ==================== SCHEMA ====================

    def ensure_schema(self) -> None:
        """Create the journal table when it does not exist yet"""
        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.execute(CREATE_TABLE_SQL)
            conn.commit()
        finally:
            conn.close()

    # ==================== WRITES ====================

    def _insert(self, item: JournalEntryItem) -> str:
        entry_id = f"entry-{uuid.uuid4()}"
        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                sql = """
                INSERT INTO journal_entries (entry_id, `timestamp`, entries)
                VALUES (%s, %s, %s)
                """
                cursor.execute(sql, (entry_id, utc_now_iso(), json.dumps([item.to_document()])))
            conn.commit()
            return entry_id
        finally:
            conn.close()

    async def create(self, item: JournalEntryItem) -> str:
        try:
            entry_id = await self._run(self._insert, item)
        except pymysql.MySQLError as e:
            logger.exception("Error saving journal entry")
            raise StoreWriteError(f"Failed to save journal entry: {e}") from e
        logger.info(f"Journal entry saved with ID: {entry_id}")
        return entry_id

    def _append(self, journal_id: str, item: JournalEntryItem) -> int:
        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                affected = cursor.execute(APPEND_SQL, (json.dumps(item.to_document()), journal_id))
            conn.commit()
            return affected
        finally:
            conn.close()

    async def append(self, journal_id: str, item: JournalEntryItem) -> None:
        try:
            affected = await self._run(self._append, journal_id, item)
        except pymysql.MySQLError as e:
            logger.exception(f"Error appending to journal entry {journal_id}")
            raise StoreWriteError(f"Failed to append to journal entry: {e}") from e
        if not affected:
            raise JournalNotFoundError(journal_id)
        logger.info(f"Appended item to journal entry {journal_id}")

    # ==================== READS ====================

    def _fetch(self, sql: str, params: tuple) -> List[Dict[str, Any]]:
        conn = self.get_connection()
        try:
            with conn.cursor(pymysql.cursors.DictCursor) as cursor:
                cursor.execute(sql, params)
                return list(cursor.fetchall())
        finally:
            conn.close()

    def _row_to_document(self, row: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": row["entry_id"],
            "createdAt": row.get("created_at"),
            "timestamp": row.get("timestamp"),
            "entries": _load_json(row.get("entries")),
            "transcription": row.get("transcription"),
            "summary": row.get("summary"),
            "audioLength": row.get("audio_length"),
            "metadata": _load_json(row.get("metadata")),
        }

    async def _select(self, sql: str, params: tuple) -> List[JournalEntryRecord]:
        try:
            rows = await self._run(self._fetch, sql, params)
            return [normalize_record(self._row_to_document(row)) for row in rows]
        except (pymysql.MySQLError, ValueError) as e:
            logger.exception("Error fetching journal entries")
            raise StoreReadError(f"Failed to fetch journal entries: {e}") from e

    async def get(self, journal_id: str) -> Optional[JournalEntryRecord]:
        sql = f"SELECT {SELECT_COLUMNS} FROM journal_entries WHERE entry_id = %s"
        records = await self._select(sql, (journal_id,))
        return records[0] if records else None

    async def get_latest(self) -> Optional[JournalEntryRecord]:
        sql = f"SELECT {SELECT_COLUMNS} FROM journal_entries ORDER BY created_at DESC, seq DESC LIMIT 1"
        try:
            records = await self._select(sql, ())
        except StoreReadError:
            # Same outcome as an empty table for the latest-or-new read path
            return None
        return records[0] if records else None

    async def list(self, limit: int = DEFAULT_LIST_LIMIT) -> List[JournalEntryRecord]:
        sql = f"SELECT {SELECT_COLUMNS} FROM journal_entries ORDER BY created_at DESC, seq DESC LIMIT %s"
        return await self._select(sql, (clamp_limit(limit),))
