# services/config.py
"""
Environment configuration for the journal backend.

Values come from the process environment (after loading a local .env file)
and are read once at startup. Missing credentials are fatal.
"""

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or malformed"""
    pass


def _getenv_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return default if value is None or value == "" else value


def _getenv_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def resolve_log_level(value: Optional[str], default: str = "INFO") -> str:
    """Map a LOG_LEVEL value onto a known level name, falling back to the default"""
    level = (value or "").strip().upper()
    return level if level in LOG_LEVELS else default


def _getenv_opt_str(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return value


@dataclass(frozen=True)
class Settings:
    OPENAI_API_KEY: str
    OPENAI_TRANSCRIBE_MODEL: str
    OPENAI_SUMMARY_MODEL: str
    JOURNAL_STORE: str
    GOOGLE_SQL_HOST: Optional[str]
    GOOGLE_SQL_PORT: int
    GOOGLE_SQL_USER: Optional[str]
    GOOGLE_SQL_PASSWORD: Optional[str]
    GOOGLE_SQL_DATABASE: Optional[str]
    PORT: int
    MAX_BODY_BYTES: int
    LOG_LEVEL: str

    @property
    def db_config(self) -> dict:
        return {
            'host': self.GOOGLE_SQL_HOST,
            'port': self.GOOGLE_SQL_PORT,
            'user': self.GOOGLE_SQL_USER,
            'password': self.GOOGLE_SQL_PASSWORD,
            'database': self.GOOGLE_SQL_DATABASE,
            'charset': 'utf8mb4',
            # TIMESTAMP columns come back naive; pin the session to UTC
            'init_command': "SET time_zone = '+00:00'"
        }


def load_settings() -> Settings:
    """Read settings from the environment, failing fast on missing credentials"""
    load_dotenv()

    journal_store = _getenv_str("JOURNAL_STORE", "mysql").strip().lower()
    if journal_store not in ("mysql", "memory"):
        raise ConfigError(f"JOURNAL_STORE must be 'mysql' or 'memory', got {journal_store!r}")

    missing: List[str] = []
    if not _getenv_opt_str("OPENAI_API_KEY"):
        missing.append("OPENAI_API_KEY")
    if journal_store == "mysql":
        for name in ("GOOGLE_SQL_HOST", "GOOGLE_SQL_USER", "GOOGLE_SQL_PASSWORD", "GOOGLE_SQL_DATABASE"):
            if not _getenv_opt_str(name):
                missing.append(name)

    log_level = _getenv_str("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    return Settings(
        OPENAI_API_KEY=os.environ["OPENAI_API_KEY"],
        OPENAI_TRANSCRIBE_MODEL=_getenv_str("OPENAI_TRANSCRIBE_MODEL", "whisper-1"),
        OPENAI_SUMMARY_MODEL=_getenv_str("OPENAI_SUMMARY_MODEL", "gpt-3.5-turbo"),
        JOURNAL_STORE=journal_store,
        GOOGLE_SQL_HOST=_getenv_opt_str("GOOGLE_SQL_HOST"),
        GOOGLE_SQL_PORT=_getenv_int("GOOGLE_SQL_PORT", 3306),
        GOOGLE_SQL_USER=_getenv_opt_str("GOOGLE_SQL_USER"),
        GOOGLE_SQL_PASSWORD=_getenv_opt_str("GOOGLE_SQL_PASSWORD"),
        GOOGLE_SQL_DATABASE=_getenv_opt_str("GOOGLE_SQL_DATABASE"),
        PORT=_getenv_int("PORT", 3000),
        MAX_BODY_BYTES=_getenv_int("MAX_BODY_BYTES", 50 * 1024 * 1024),
        LOG_LEVEL=log_level,
    )
