# app/core/config.py
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import PostgresDsn, computed_field


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables (or a .env file).
    Pydantic validates the types.
    """
    model_config = SettingsConfigDict(
        env_file=".env", env_ignore_case=True, extra="ignore"
    )

    # --- Database ---
    POSTGRES_USER: str = "onquiz"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_DB: str = "onquiz"
    POSTGRES_PORT: int = 5432
    # Full URL override (e.g. sqlite:///./onquiz.db for local runs and tests)
    SQLALCHEMY_DATABASE_URL: Optional[str] = None

    # --- JWT Settings ---
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12

    # --- AI gateway (OpenAI compatible chat completions) ---
    AI_GATEWAY_URL: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    AI_API_KEY: str = ""
    AI_MODEL: str = "google/gemini-2.5-flash"
    # None means no client-side timeout
    AI_TIMEOUT_SECONDS: Optional[float] = None

    # --- Document storage ---
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024

    # --- Quiz defaults ---
    DEFAULT_PASS_SCORE: int = 70
    CATEGORY_SUGGESTION_CHAR_LIMIT: int = 8000
    # Idle wizard sessions are dropped after this long
    WIZARD_SESSION_IDLE_SECONDS: int = 60 * 60

    # --- Logging ---
    LOG_DIR: str = "logs"

    FRONTEND_URL: str = "http://localhost:5173"

    @computed_field
    @property
    def DATABASE_URI(self) -> str:
        """
        SQLAlchemy connection URI. The explicit override wins; otherwise the
        postgres DSN is assembled from the individual settings.
        """
        if self.SQLALCHEMY_DATABASE_URL:
            return self.SQLALCHEMY_DATABASE_URL
        dsn = PostgresDsn.build(
            scheme="postgresql+psycopg2",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )
        return str(dsn)


# Single settings instance used across the application.
settings = Settings()
