"""
Runtime configuration

Values come from the environment (and an optional .env file). The resulting
AppConfig is immutable and handed to the app factory; nothing else reads
os.environ directly.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class AppConfig:
    database_url: Optional[str] = None
    database_name: str = "storefront"
    admin_api_key: Optional[str] = None
    public_base_url: str = "http://localhost:8000"
    settings_doc_id: str = "NILGIRIS_SETTINGS"
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    default_language: str = "en"

    @classmethod
    def from_env(cls) -> "AppConfig":
        load_dotenv()
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            database_url=os.getenv("DATABASE_URL") or None,
            database_name=os.getenv("DATABASE_NAME", "storefront"),
            admin_api_key=os.getenv("ADMIN_API_KEY") or None,
            public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/"),
            settings_doc_id=os.getenv("SETTINGS_DOC_ID", "NILGIRIS_SETTINGS"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            default_language=os.getenv("DEFAULT_LANGUAGE", "en"),
        )
