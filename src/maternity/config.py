from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class Settings:
    """Centralized application settings.

    Environment variables are read once here so that services and routers can
    depend on typed attributes instead of calling os.getenv directly.
    """

    # Optional database configuration for SQL-backed repositories.
    database_url: Optional[str] = os.getenv("DATABASE_URL")
    use_sql_repos: bool = os.getenv("USE_SQL_REPOS", "false").lower() == "true"

    # Directory where uploaded medical record files are stored.
    record_upload_dir: Path = Path(os.getenv("RECORD_UPLOAD_DIR", "uploads/records"))
    max_upload_bytes: int = int(os.getenv("MAX_UPLOAD_BYTES", str(20 * 1024 * 1024)))

    # Basic API authentication configuration.
    # When ENABLE_API_AUTH=true, protected endpoints require a valid API key.
    enable_api_auth: bool = os.getenv("ENABLE_API_AUTH", "false").lower() == "true"
    # Comma-separated list of allowed API keys when auth is enabled.
    api_keys: Optional[str] = os.getenv("API_KEYS")

    # Comma-separated origins; "*" is only meant for local development.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")

    # Risk assessment LLM backend: "demo" (default) or "llm".
    risk_llm_backend: str = os.getenv("RISK_LLM_BACKEND", "demo")
    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4.1-mini")

    # Kick-count sessions older than this window are ignored by the
    # threshold assessment.
    risk_window_hours: int = int(os.getenv("RISK_WINDOW_HOURS", "24"))

    # Appointment slot length in minutes.
    slot_duration_minutes: int = int(os.getenv("SLOT_DURATION_MINUTES", "30"))

    # Lifetime of generated QR/referral link codes. 0 disables expiry.
    link_code_ttl_hours: int = int(os.getenv("LINK_CODE_TTL_HOURS", "72"))


settings = Settings()
