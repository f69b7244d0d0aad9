import base64

from fastapi.testclient import TestClient

from main import create_app
from models.journal_entry import TranscriptionResult
from services.journal_store import StoreReadError, StoreWriteError
from services.memory_store import InMemoryJournalStore

WEBM_BYTES = bytes([0x1A, 0x45, 0xDF, 0xA3, 0x00, 0x00])
WEBM_B64 = base64.b64encode(WEBM_BYTES).decode("ascii")


class _FakeTranscriber:
    def __init__(self, text: str = "I felt calm today.", summary: str = "- Felt calm", error: str = None) -> None:
        self.text = text
        self.summary = summary
        self.error = error
        self.calls = []

    async def transcribe(self, audio: bytes) -> TranscriptionResult:
        self.calls.append(audio)
        if self.error:
            return TranscriptionResult(text="", duration=len(audio), error=self.error)
        return TranscriptionResult(text=self.text, duration=len(audio), language="en", summary=self.summary)


class _FailingStore(InMemoryJournalStore):
    async def create(self, item):
        raise StoreWriteError("disk on fire")


class _BrokenReadStore(InMemoryJournalStore):
    async def list(self, limit=50):
        raise StoreReadError("read broke")


class _VanishingStore(InMemoryJournalStore):
    async def get(self, journal_id):
        return None


def _client(store=None, transcriber=None) -> TestClient:
    app = create_app(
        journal_store=store if store is not None else InMemoryJournalStore(),
        transcription_service=transcriber if transcriber is not None else _FakeTranscriber(),
    )
    return TestClient(app)


def test_root_and_health() -> None:
    client = _client()
    assert client.get("/").json() == {"message": "Welcome to the Serenity Echo Server!"}
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "message": "Server is healthy"}


def test_echo_returns_body() -> None:
    client = _client()
    body = {"hello": "world", "nested": {"n": [1, 2, 3]}}
    response = client.post("/echo", json=body)
    assert response.status_code == 200
    assert response.json() == body


def test_create_then_fetch_round_trip() -> None:
    store = InMemoryJournalStore()
    client = _client(store=store)

    response = client.post("/journal", json={"audioData": WEBM_B64, "metadata": {"type": "test"}})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["format"] == "webm"
    assert payload["metadata"] == {"type": "test"}
    assert payload["journalId"]
    assert payload["transcription"] == {
        "text": "I felt calm today.",
        "duration": 6,
        "language": "en",
        "summary": "- Felt calm",
    }

    record = client.get(f"/journal/{payload['journalId']}")
    assert record.status_code == 200
    entries = record.json()["entries"]
    assert len(entries) == 1
    assert entries[0]["audioLength"] == 6
    assert entries[0]["transcription"] == "I felt calm today."
    assert entries[0]["summary"] == "- Felt calm"
    assert entries[0]["metadata"] == {"type": "test"}


def test_journal_new_creates_separate_records() -> None:
    client = _client()
    first = client.post("/journal/new", json={"audioData": WEBM_B64}).json()["journalId"]
    second = client.post("/journal/new", json={"audioData": WEBM_B64}).json()["journalId"]

    assert first != second
    assert len(client.get("/journal").json()) == 2


def test_invalid_audio_format_rejected() -> None:
    transcriber = _FakeTranscriber()
    client = _client(transcriber=transcriber)
    audio = base64.b64encode(b"\x00\x00\x00\x00").decode("ascii")

    response = client.post("/journal", json={"audioData": audio})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid audio format"
    assert "message" in response.json()
    assert transcriber.calls == []


def test_missing_audio_rejected() -> None:
    client = _client()
    response = client.post("/journal", json={})
    assert response.status_code == 400
    assert response.json()["error"] == "Missing audio data"
    assert response.json()["message"] == "Audio data is required"


def test_transcription_failure_still_persists_entry() -> None:
    client = _client(transcriber=_FakeTranscriber(error="whisper unavailable"))

    response = client.post("/journal", json={"audioData": WEBM_B64})

    assert response.status_code == 200
    payload = response.json()
    assert payload["transcription"]["text"] == ""
    assert payload["transcription"]["error"] == "whisper unavailable"
    entries = client.get(f"/journal/{payload['journalId']}").json()["entries"]
    assert entries[0]["transcription"] == ""
    assert "summary" not in entries[0]


def test_append_grows_entries_in_order() -> None:
    store = InMemoryJournalStore()
    transcriber = _FakeTranscriber(text="one")
    client = _client(store=store, transcriber=transcriber)
    journal_id = client.post("/journal", json={"audioData": WEBM_B64}).json()["journalId"]

    for text in ("two", "three"):
        transcriber.text = text
        response = client.post(f"/journal/{journal_id}/append", json={"audioData": WEBM_B64})
        assert response.status_code == 200
        assert response.json()["journalId"] == journal_id

    entries = client.get(f"/journal/{journal_id}").json()["entries"]
    assert [e["transcription"] for e in entries] == ["one", "two", "three"]


def test_append_to_unknown_id_is_not_found_and_creates_nothing() -> None:
    client = _client()

    response = client.post("/journal/entry-missing/append", json={"audioData": WEBM_B64})

    assert response.status_code == 404
    assert response.json()["error"] == "Not Found"
    assert client.get("/journal").json() == []


def test_store_write_error_returns_500() -> None:
    client = _client(store=_FailingStore())

    response = client.post("/journal", json={"audioData": WEBM_B64})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal Server Error", "message": "disk on fire"}


def test_get_unknown_id_returns_404() -> None:
    response = _client().get("/journal/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error"] == "Not Found"


def test_latest_returns_404_then_most_recent() -> None:
    client = _client()
    assert client.get("/journal/latest").status_code == 404

    client.post("/journal", json={"audioData": WEBM_B64})
    second = client.post("/journal", json={"audioData": WEBM_B64}).json()["journalId"]

    response = client.get("/journal/latest")
    assert response.status_code == 200
    assert response.json()["id"] == second


def test_latest_or_new_creates_placeholder_once() -> None:
    store = InMemoryJournalStore()
    client = _client(store=store)

    first = client.get("/journal/latest-or-new")
    assert first.status_code == 200
    record = first.json()
    assert record["entries"] == [{
        "timestamp": record["entries"][0]["timestamp"],
        "transcription": "",
        "audioLength": 0,
        "metadata": {"type": "journal"},
    }]

    second = client.get("/journal/latest-or-new")
    assert second.json() == record
    assert len(client.get("/journal").json()) == 1


def test_cors_allows_local_client_only() -> None:
    client = _client()
    allowed = client.options(
        "/journal",
        headers={"Origin": "http://localhost:3001", "Access-Control-Request-Method": "POST"},
    )
    assert allowed.headers["access-control-allow-origin"] == "http://localhost:3001"

    denied = client.get("/health", headers={"Origin": "http://evil.example"})
    assert "access-control-allow-origin" not in denied.headers


def test_oversized_body_rejected() -> None:
    app = create_app(
        journal_store=InMemoryJournalStore(),
        transcription_service=_FakeTranscriber(),
        max_body_bytes=16,
    )
    response = TestClient(app).post("/journal", json={"audioData": WEBM_B64 * 10})
    assert response.status_code == 413
    assert response.json()["error"] == "Payload Too Large"


def test_create_without_metadata_omits_key() -> None:
    response = _client().post("/journal", json={"audioData": WEBM_B64})
    assert response.status_code == 200
    assert "metadata" not in response.json()


def test_line_wrapped_audio_is_accepted() -> None:
    payload = WEBM_BYTES[:4] + bytes(100)
    client = _client()

    response = client.post("/journal", json={"audioData": base64.encodebytes(payload).decode("ascii")})

    assert response.status_code == 200
    entries = client.get(f"/journal/{response.json()['journalId']}").json()["entries"]
    assert entries[0]["audioLength"] == 104


def test_non_string_audio_is_invalid_request() -> None:
    response = _client().post("/journal", json={"audioData": 123})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"
    assert "audioData" in response.json()["message"]


def test_list_read_error_returns_500() -> None:
    response = _client(store=_BrokenReadStore()).get("/journal")
    assert response.status_code == 500
    assert response.json() == {"error": "Internal Server Error", "message": "read broke"}


def test_latest_or_new_fails_when_created_record_cannot_be_read() -> None:
    response = _client(store=_VanishingStore()).get("/journal/latest-or-new")
    assert response.status_code == 500
    assert response.json() == {
        "error": "Internal Server Error",
        "message": "Failed to load newly created journal entry",
    }


def test_echo_unserializable_body_returns_500() -> None:
    response = _client().post(
        "/echo",
        content=b'{"value": NaN}',
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 500
    assert response.json()["error"] == "Internal Server Error"


def test_echo_rejects_malformed_bodies() -> None:
    client = _client()
    for body in (b'{"a": "\xff"}', b"{not json"):
        response = client.post("/echo", content=body, headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid JSON"
