from __future__ import annotations

from typing import Literal, Optional

from pydantic import AnyUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=False,
        extra="ignore",
    )

    SUPABASE_URL: Optional[AnyUrl] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    APP_ENV: str = "local"
    FRONTEND_CORS_ORIGINS: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"],
    )

    # Document store
    STORE_BACKEND: Literal["supabase", "memory"] = "supabase"
    DOCUMENTS_TABLE: str = "documents"
    COMMIT_BATCH_RPC: str = "commit_document_batch"
    MAX_BATCH_OPERATIONS: int = Field(default=500, ge=1)
    IN_QUERY_MAX_VALUES: int = Field(default=30, ge=1)
    CACHE_MAX_DOCUMENTS: int = Field(default=10_000, ge=0)

    # Partnerships
    INVITE_CODE_MAX_ATTEMPTS: int = Field(default=10, ge=1)

    def validate_store(self) -> list[str]:
        """Return configuration errors for the selected store backend."""
        errors: list[str] = []
        if self.STORE_BACKEND == "supabase":
            if not self.SUPABASE_URL:
                errors.append("SUPABASE_URL is required")
            if not self.SUPABASE_SERVICE_ROLE_KEY:
                errors.append("SUPABASE_SERVICE_ROLE_KEY is required")
        return errors


settings = Settings()
