# routes/journal.py
"""
Journal routes.

Ingestion: validate the base64 WebM payload, transcribe it, then create a
new journal record or append to an existing one. Reads are thin wrappers
around the journal store.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from models.journal_entry import JournalEntryItem, JournalEntryRequest
from services.audio_validation import decode_audio, is_valid_webm
from services.journal_store import JournalStore
from services.whisper_service import TranscriptionService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_journal_store(request: Request) -> JournalStore:
    return request.app.state.journal_store


def get_transcription_service(request: Request) -> TranscriptionService:
    return request.app.state.transcription_service


def _error(status_code: int, error: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"error": error, "message": message})


async def process_journal_entry(
    entry: JournalEntryRequest,
    store: JournalStore,
    transcriber: TranscriptionService,
    journal_id: Optional[str] = None
) -> dict:
    """
    Validate, transcribe and persist one audio submission.

    Creates a new record when ``journal_id`` is None, otherwise appends to
    that record. A failed transcription is still persisted with an empty
    transcript; the error is reported in the response.
    """
    logger.info("Received journal entry request")

    if not entry.audioData:
        logger.error("Missing audio data in request")
        raise _error(400, "Missing audio data", "Audio data is required")

    if not is_valid_webm(entry.audioData):
        logger.error("Invalid audio format - WebM required")
        raise _error(400, "Invalid audio format", "Audio data must be in WebM format (base64 encoded)")

    audio = decode_audio(entry.audioData)
    logger.info(f"Audio format validation passed: {len(audio)} bytes, metadata={entry.metadata}")

    transcription = await transcriber.transcribe(audio)
    if transcription.error:
        logger.warning(f"Transcription failed, storing empty transcript: {transcription.error}")

    item = JournalEntryItem(
        transcription=transcription.text,
        summary=transcription.summary,
        audio_length=len(audio),
        metadata=entry.metadata or {}
    )

    if journal_id is None:
        journal_id = await store.create(item)
        message = "Journal entry created successfully"
    else:
        await store.append(journal_id, item)
        message = "Journal entry appended successfully"

    logger.info(f"Journal entry processed successfully: {journal_id}")

    response = {
        "success": True,
        "message": message,
        "timestamp": item.timestamp,
        "format": "webm",
        "transcription": transcription.model_dump(exclude_none=True),
        "journalId": journal_id
    }
    if entry.metadata is not None:
        response["metadata"] = entry.metadata
    return response


# ==================== INGESTION ====================

@router.post("")
async def create_entry(
    entry: JournalEntryRequest,
    store: JournalStore = Depends(get_journal_store),
    transcriber: TranscriptionService = Depends(get_transcription_service)
):
    return await process_journal_entry(entry, store, transcriber)


@router.post("/new")
async def create_new_journal(
    entry: JournalEntryRequest,
    store: JournalStore = Depends(get_journal_store),
    transcriber: TranscriptionService = Depends(get_transcription_service)
):
    return await process_journal_entry(entry, store, transcriber)


@router.post("/{journal_id}/append")
async def append_entry(
    journal_id: str,
    entry: JournalEntryRequest,
    store: JournalStore = Depends(get_journal_store),
    transcriber: TranscriptionService = Depends(get_transcription_service)
):
    return await process_journal_entry(entry, store, transcriber, journal_id=journal_id)


# ==================== READS ====================

@router.get("")
async def list_entries(store: JournalStore = Depends(get_journal_store)):
    records = await store.list()
    return [record.to_document() for record in records]


@router.get("/latest")
async def get_latest_entry(store: JournalStore = Depends(get_journal_store)):
    record = await store.get_latest()
    if record is None:
        raise _error(404, "Not Found", "No journal entries found")
    return record.to_document()


@router.get("/latest-or-new")
async def get_latest_or_new_entry(store: JournalStore = Depends(get_journal_store)):
    """Return the latest journal record, creating an empty one if none exists"""
    record = await store.get_latest()
    if record is not None:
        return record.to_document()

    placeholder = JournalEntryItem(
        transcription="",
        audio_length=0,
        metadata={"type": "journal"}
    )
    journal_id = await store.create(placeholder)
    logger.info(f"Created placeholder journal entry {journal_id}")

    record = await store.get(journal_id)
    if record is None:
        logger.error(f"Placeholder journal entry {journal_id} missing right after creation")
        raise _error(500, "Internal Server Error", "Failed to load newly created journal entry")
    return record.to_document()


@router.get("/{journal_id}")
async def get_entry(journal_id: str, store: JournalStore = Depends(get_journal_store)):
    record = await store.get(journal_id)
    if record is None:
        raise _error(404, "Not Found", f"Journal entry not found: {journal_id}")
    return record.to_document()
