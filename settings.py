import os
from typing import List, Optional

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value if value else default


def _getenv_bool(name: str, default: bool = False) -> bool:
    raw = _getenv(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "y", "on"}


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Settings:
    """Runtime configuration read from environment variables."""

    def __init__(self) -> None:
        self.database_url = _getenv("DATABASE_URL", "sqlite:///./records.db") or "sqlite:///./records.db"
        self.db_auto_create = _getenv_bool("DB_AUTO_CREATE", default=True)
        self.max_upload_bytes = _getenv_int("MAX_UPLOAD_BYTES", 2 * 1024 * 1024)
        self.cors_allow_origins = _getenv("CORS_ALLOW_ORIGINS")
        self.log_dir = _getenv("LOG_DIR", os.path.join(BASE_DIR, "logs")) or os.path.join(BASE_DIR, "logs")
        self.log_level = (_getenv("LOG_LEVEL", "INFO") or "INFO").upper()
        self.schema_config_path = _getenv("SCHEMA_CONFIG_PATH")
        self.host = _getenv("HOST", "0.0.0.0") or "0.0.0.0"
        self.port = _getenv_int("PORT", 8000)

    def resolved_cors_origins(self) -> List[str]:
        raw = self.cors_allow_origins
        if raw is None or raw.strip() == "*":
            return ["*"]
        return [o.strip() for o in raw.split(",") if o.strip()]


settings = Settings()
