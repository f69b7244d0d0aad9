from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class JournalEntryRequest(BaseModel):
    audioData: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class TranscriptionResult(BaseModel):
    text: str = ""
    duration: Optional[int] = None
    language: Optional[str] = None
    summary: Optional[str] = None
    error: Optional[str] = None


class JournalEntryItem(BaseModel):
    """One transcribed audio submission inside a journal record"""
    model_config = ConfigDict(populate_by_name=True)

    timestamp: str = Field(default_factory=utc_now_iso)
    transcription: str = ""
    summary: Optional[str] = None
    audio_length: int = Field(default=0, alias="audioLength")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class JournalEntryRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    timestamp: Optional[str] = None
    entries: List[JournalEntryItem] = Field(default_factory=list)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# Fields a flat, pre-"entries" record kept at the top level
LEGACY_ITEM_FIELDS = ("timestamp", "transcription", "summary", "audioLength", "metadata")


def _iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat().replace("+00:00", "Z")
    return str(value)


def normalize_record(document: Dict[str, Any]) -> JournalEntryRecord:
    """
    Decode a stored document into the current record shape.

    Older documents stored a single item flat on the record itself. Those
    are lifted into a one-item ``entries`` list so callers never see the
    legacy layout.
    """
    entries = document.get("entries")
    if entries is None:
        legacy_item = {
            field: document[field]
            for field in LEGACY_ITEM_FIELDS
            if document.get(field) is not None
        }
        if "timestamp" not in legacy_item and document.get("createdAt") is not None:
            legacy_item["timestamp"] = _iso(document["createdAt"])
        entries = [legacy_item]

    return JournalEntryRecord(
        id=str(document["id"]),
        created_at=_iso(document.get("createdAt")),
        timestamp=_iso(document.get("timestamp")),
        entries=[JournalEntryItem.model_validate(entry) for entry in entries],
    )
