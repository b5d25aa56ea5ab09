"""
Configuration management.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    cors_origins: list[str] = field(default_factory=lambda: _env_list("CORS_ORIGINS") or ["*"])

    # Storage backend: "memory" (JSON file) or "supabase"
    store_backend: str = field(default_factory=lambda: os.getenv("STORE_BACKEND", "memory").lower())
    data_dir: str = field(default_factory=lambda: os.getenv("DATA_DIR", "./data"))

    # Supabase
    supabase_url: Optional[str] = field(default_factory=lambda: os.getenv("SUPABASE_URL"))
    supabase_key: Optional[str] = field(
        default_factory=lambda: os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_ANON_KEY")
    )
    storage_bucket: str = field(default_factory=lambda: os.getenv("STORAGE_BUCKET", "property-media"))

    # Notifications
    telegram_bot_token: Optional[str] = field(default_factory=lambda: os.getenv("TELEGRAM_BOT_TOKEN"))
    telegram_chat_id: Optional[str] = field(default_factory=lambda: os.getenv("TELEGRAM_CHAT_ID"))

    # Uploads
    request_timeout: int = field(default_factory=lambda: int(os.getenv("REQUEST_TIMEOUT", "30")))
    upload_max_attempts: int = field(default_factory=lambda: int(os.getenv("UPLOAD_MAX_ATTEMPTS", "3")))
    upload_base_delay: float = field(
        default_factory=lambda: float(os.getenv("UPLOAD_BASE_DELAY", "0.5"))
    )
    upload_max_delay: float = field(default_factory=lambda: float(os.getenv("UPLOAD_MAX_DELAY", "8.0")))

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    @property
    def uses_supabase(self) -> bool:
        return self.store_backend == "supabase"

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    @property
    def listings_path(self) -> str:
        return os.path.join(self.data_dir, "listings.json")

    @property
    def uploads_dir(self) -> str:
        return os.path.join(self.data_dir, "uploads")

    def to_dict(self) -> dict:
        """Convert config to dictionary (secrets omitted)."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "log_level": self.log_level,
            "store_backend": self.store_backend,
            "data_dir": self.data_dir,
            "supabase_configured": bool(self.supabase_url and self.supabase_key),
            "storage_bucket": self.storage_bucket,
            "telegram_enabled": self.telegram_enabled,
            "request_timeout": self.request_timeout,
            "upload_max_attempts": self.upload_max_attempts,
        }
