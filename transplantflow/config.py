"""Load configuration from environment (e.g. .env)."""
from typing import List
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# asyncpg does not support libpq params like sslmode; strip them and use connect_args for SSL
ASYNCPG_UNSUPPORTED_QUERY_KEYS = frozenset({"sslmode", "ssl_mode"})


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "TransplantFlow API"
    app_version: str = "1.0.0"
    environment: str = "production"
    debug: bool = False
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173"

    # Server (for run script; uvicorn CLI can override with --port)
    host: str = "0.0.0.0"
    port: int = 8000

    # Record store: "sql" (PostgreSQL) or "memory" (process-local, for demos and tests)
    record_store_backend: str = "sql"
    database_url: str = "postgresql+asyncpg://localhost:5432/transplantflow_db"

    # Debounce tiers (seconds)
    local_commit_delay_seconds: float = 0.5
    partner_sync_delay_seconds: float = 1.5

    # Azure OpenAI (summaries, report extraction)
    azure_openai_endpoint: str = ""
    azure_openai_key: str = ""
    azure_openai_deployment: str = "gpt-4o"
    azure_openai_api_version: str = "2024-02-15-preview"

    # Azure Document Intelligence (report OCR)
    azure_doc_intel_endpoint: str = ""
    azure_doc_intel_key: str = ""

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
    log_file: str = "logs/app.log"

    @field_validator("debug", mode="before")
    @classmethod
    def parse_bool(cls, v):
        """Parse boolean from string."""
        if isinstance(v, str):
            return v.lower() in ("true", "1", "yes")
        return bool(v)

    @property
    def cors_origins_list(self) -> List[str]:
        return [item.strip() for item in self.cors_origins.split(",") if item.strip()]

    @property
    def database_url_async(self) -> str:
        url = self.database_url
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    def async_engine_url_and_connect_args(self) -> tuple[str, dict]:
        parsed = urlparse(self.database_url_async)
        query = parse_qs(parsed.query, keep_blank_values=True)
        sslmode = None
        for key in list(query.keys()):
            if key.lower() in ASYNCPG_UNSUPPORTED_QUERY_KEYS:
                vals = query.pop(key)
                if vals and sslmode is None:
                    sslmode = vals[0]
        url = urlunparse(parsed._replace(query=urlencode(query, doseq=True)))
        connect_args = {}
        if sslmode and str(sslmode).lower() in ("require", "verify-ca", "verify-full"):
            connect_args["ssl"] = True
        return url, connect_args


def get_settings() -> Settings:
    return Settings()
