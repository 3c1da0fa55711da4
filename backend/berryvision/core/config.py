import warnings
from typing import Annotated, Any, Literal

from pydantic import (
    AnyUrl,
    BeforeValidator,
    PostgresDsn,
    computed_field,
    model_validator,
)
from pydantic_core import MultiHostUrl
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Use top level .env file (one level above ./backend/)
        env_file="../.env",
        env_ignore_empty=True,
        extra="ignore",
    )
    PROJECT_NAME: str = "BerryVision"
    API_V1_STR: str = "/api"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    # Either a full DATABASE_URL (sqlite for local runs) or the POSTGRES_* parts.
    DATABASE_URL: str | None = None
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "berryvision"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return str(
            MultiHostUrl.build(
                scheme="postgresql+psycopg",
                username=self.POSTGRES_USER,
                password=self.POSTGRES_PASSWORD,
                host=self.POSTGRES_SERVER,
                port=self.POSTGRES_PORT,
                path=self.POSTGRES_DB,
            )
        )

    # OpenAI-compatible provider
    OPENAI_API_KEY: str = ""
    LLM_BASE_URL: str | None = None
    MODEL_DEFAULT: str = "gpt-4o"
    MODEL_VISION: str = "gpt-4o"
    MODEL_RAG: str = "gpt-4-turbo-preview"
    EMBEDDING_MODEL: str = "text-embedding-ada-002"

    CHROMA_PERSIST_DIR: str = "./chroma_db"
    UPLOAD_DIR: str = "./uploads"
    UPLOAD_URL_PREFIX: str = "/uploads"
    MAX_UPLOAD_BYTES: int = 12 * 1024 * 1024

    ADMIN_REPORT_EMAIL: str = "admin@berryvision.ai"

    # Growth trend alerting
    GROWTH_SLOW_MIN_DAYS: int = 7
    GROWTH_SLOW_CRITICAL_RATE: float = -5.0

    @property
    def ai_enabled(self) -> bool:
        return bool(self.OPENAI_API_KEY)

    @model_validator(mode="after")
    def _warn_missing_api_key(self) -> Self:
        if not self.OPENAI_API_KEY and self.ENVIRONMENT != "local":
            warnings.warn(
                "OPENAI_API_KEY is empty, AI-assisted analysis will be skipped.",
                stacklevel=1,
            )
        return self


settings = Settings()  # type: ignore
