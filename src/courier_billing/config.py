"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="CB_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Courier Billing API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root logging level.")

    storage_backend: Literal["auto", "supabase", "memory"] = Field(
        default="auto",
        description="Document store to use. 'auto' picks Supabase when credentials are set.",
    )
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=("http://localhost:3000", "http://127.0.0.1:3000"),
        description="Permitted web origins for browser clients (CORS).",
    )

    home_state: str = Field(
        default="Delhi",
        description="State of the billing branch; same-state customers get CGST/SGST, others IGST.",
    )
    global_customer_code: str = Field(
        default="ALL",
        description="Customer code used by surcharge settings that apply to every customer.",
    )
    missing_surcharge_policy: Literal["reject", "zero"] = Field(
        default="reject",
        description="What the invoice build does when no fuel/tax setting is effective.",
    )
    reference_cache_ttl_seconds: float = Field(
        default=30.0,
        ge=0.0,
        description="Lifetime of cached zone and surcharge tables.",
    )
    ledger_max_retries: int = Field(default=5, ge=0)
    ledger_backoff_seconds: float = Field(default=0.01, ge=0.0)
    invoice_prefix: str = "INV"
    receipt_prefix: str = "RCPT"

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        return str(value or "INFO").strip().upper()


settings = Settings()
