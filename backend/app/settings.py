from __future__ import annotations

import os
from dataclasses import dataclass


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class Settings:
    app_env: str
    persistence_enabled: bool
    persistence_db_path: str
    database_url: str
    auth_enabled: bool
    jwt_secret: str
    jwt_algorithm: str
    session_cookie_name: str
    sign_in_path: str
    openai_api_key: str
    openai_model: str
    openai_temperature: float
    openai_max_tokens: int
    ai_max_retries: int
    ai_retry_delay_seconds: float
    ai_request_timeout_seconds: float


def load_settings() -> Settings:
    persistence_db_path = os.getenv("PERSISTENCE_DB_PATH", "data/prospect_ai.sqlite3").strip()
    database_url = os.getenv("DATABASE_URL", "").strip()
    if not database_url:
        database_url = f"sqlite:///{persistence_db_path.replace(chr(92), '/')}"
    sign_in_path = os.getenv("SIGN_IN_PATH", "/login").strip() or "/login"
    if not sign_in_path.startswith("/"):
        sign_in_path = f"/{sign_in_path}"
    return Settings(
        app_env=os.getenv("APP_ENV", "development"),
        persistence_enabled=_bool_env("PERSISTENCE_ENABLED", True),
        persistence_db_path=persistence_db_path,
        database_url=database_url,
        auth_enabled=_bool_env("AUTH_ENABLED", False),
        jwt_secret=os.getenv("JWT_SECRET", "dev-only-secret-change-in-prod").strip(),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256").strip(),
        session_cookie_name=os.getenv("SESSION_COOKIE_NAME", "session_token").strip(),
        sign_in_path=sign_in_path,
        openai_api_key=os.getenv("OPENAI_API_KEY", "").strip(),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4").strip() or "gpt-4",
        openai_temperature=max(0.0, min(2.0, _float_env("OPENAI_TEMPERATURE", 0.7))),
        openai_max_tokens=max(1, _int_env("OPENAI_MAX_TOKENS", 1000)),
        ai_max_retries=max(1, _int_env("AI_MAX_RETRIES", 3)),
        ai_retry_delay_seconds=max(0.0, _float_env("AI_RETRY_DELAY_SECONDS", 1.0)),
        ai_request_timeout_seconds=max(1.0, _float_env("AI_REQUEST_TIMEOUT_SECONDS", 60.0)),
    )
