import logging
import os
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from routes import journal
from services.config import Settings, load_settings, resolve_log_level
from services.database_service import DatabaseService
from services.journal_store import JournalNotFoundError, JournalStore, JournalStoreError
from services.memory_store import InMemoryJournalStore
from services.whisper_service import TranscriptionService

load_dotenv()

logging.basicConfig(level=resolve_log_level(os.getenv("LOG_LEVEL")))
logger = logging.getLogger(__name__)

DEFAULT_MAX_BODY_BYTES = 50 * 1024 * 1024

# Development-time allowlist for the local web client
CORS_ORIGINS = ["http://localhost:3001", "http://127.0.0.1:3001"]


def build_journal_store(settings: Settings) -> JournalStore:
    if settings.JOURNAL_STORE == "memory":
        logger.warning("Using in-memory journal store; entries are lost on restart")
        return InMemoryJournalStore()
    store = DatabaseService(settings.db_config)
    store.ensure_schema()
    return store


def build_transcription_service(settings: Settings) -> TranscriptionService:
    return TranscriptionService.from_api_key(
        settings.OPENAI_API_KEY,
        transcribe_model=settings.OPENAI_TRANSCRIBE_MODEL,
        summary_model=settings.OPENAI_SUMMARY_MODEL
    )


def _error_body(error: str, message: str) -> dict:
    return {"error": error, "message": message}


def create_app(
    journal_store: Optional[JournalStore] = None,
    transcription_service: Optional[TranscriptionService] = None,
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
) -> FastAPI:
    """
    Build the application.

    Services passed in are used as-is; anything missing is built from the
    environment at startup, which fails when credentials are absent.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.journal_store is None or app.state.transcription_service is None:
            settings = load_settings()
            logging.getLogger().setLevel(settings.LOG_LEVEL)
            app.state.max_body_bytes = settings.MAX_BODY_BYTES
            if app.state.journal_store is None:
                app.state.journal_store = build_journal_store(settings)
            if app.state.transcription_service is None:
                app.state.transcription_service = build_transcription_service(settings)

        for route in app.routes:
            logger.info(f"{route.path} → {route.name}")
        yield

    app = FastAPI(title="Serenity Echo", lifespan=lifespan)
    app.state.journal_store = journal_store
    app.state.transcription_service = transcription_service
    app.state.max_body_bytes = max_body_bytes

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > request.app.state.max_body_bytes:
            return JSONResponse(
                status_code=413,
                content=_error_body("Payload Too Large", "Request body exceeds the allowed size"),
            )
        return await call_next(request)

    # Added last so it wraps every response, including 413s
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # ==================== ERROR ENVELOPE ====================

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if isinstance(exc.detail, dict) and "error" in exc.detail:
            content = exc.detail
        else:
            content = _error_body(HTTPStatus(exc.status_code).phrase, str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        return JSONResponse(status_code=400, content=_error_body("Invalid request", errors))

    @app.exception_handler(JournalNotFoundError)
    async def not_found_handler(request: Request, exc: JournalNotFoundError):
        logger.warning(str(exc))
        return JSONResponse(status_code=404, content=_error_body("Not Found", str(exc)))

    @app.exception_handler(JournalStoreError)
    async def store_error_handler(request: Request, exc: JournalStoreError):
        logger.error(f"Journal store failure on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content=_error_body("Internal Server Error", str(exc)))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content=_error_body("Internal Server Error", "Unexpected server error"))

    # ==================== BASIC ROUTES ====================

    @app.get("/")
    async def root():
        return {"message": "Welcome to the Serenity Echo Server!"}

    @app.get("/health")
    async def health():
        return {"status": "healthy", "message": "Server is healthy"}

    @app.post("/echo")
    async def echo(request: Request):
        """Return whatever JSON body was sent"""
        logger.info("Received echo request")
        logger.info(f"Request Headers: {dict(request.headers)}")
        try:
            body = await request.json()
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError both land here
            raise HTTPException(status_code=400, detail=_error_body("Invalid JSON", str(e)))
        logger.info(f"Request Body: {body}")

        try:
            response = JSONResponse(content=body)
        except (TypeError, ValueError) as e:
            logger.error(f"Error in echo endpoint: {e}")
            return JSONResponse(status_code=500, content=_error_body("Internal Server Error", str(e)))
        logger.info("Echo response sent successfully")
        return response

    app.include_router(journal.router, prefix="/journal")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = load_settings()
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
