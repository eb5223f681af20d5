from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./corpora.db"
    DATABASE_BUSY_TIMEOUT: float = 30  # seconds a SQLite writer waits for the lock

    # Backend
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 8000
    APP_DEBUG: bool = True
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    SLOW_REQUEST_MS: float = 1000

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False  # JSON lines in production, colored console in dev
    LOG_SQL: bool = False

    # Auth
    JWT_SECRET_KEY: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # AI provider (any OpenAI-compatible chat completions endpoint)
    AI_API_KEY: str | None = None
    AI_MODEL_ID: str = "gpt-4"
    AI_BASE_URL: str | None = None
    AI_TIMEOUT_SECONDS: float = 300
    AI_MAX_RETRIES: int = 2
    AI_PARSE_RETRY_DELAY: float = 1.0
    AI_NETWORK_RETRY_DELAY: float = 2.0
    AI_TEMPERATURE: float = 0.3
    AI_MAX_TOKENS: int = 4000
    AI_JSON_MODE: bool = True
    AI_TOOL_TIMEOUT_SECONDS: float = 60
    AI_TARGET_LANGUAGE: str = "Chinese"  # summary, translation and meanings


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
