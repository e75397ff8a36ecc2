# permit_backend/config.py
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker


class Settings(BaseSettings):
    # --- Database ---
    database_url: str = "sqlite:///permit_backend/permits_dev.db"

    # --- Security / JWT ---
    jwt_secret: str = "dev-secret-please-change"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24  # 24 hours

    # --- CORS ---
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:5174"]

    # --- Logging ---
    log_level: str = "INFO"
    log_json: bool = False

    # --- Notification dispatch ---
    # Grace period before the first read-back, then a fixed retry budget with fixed backoff.
    notification_grace_seconds: float = 0.5
    notification_retry_attempts: int = 3
    notification_retry_backoff_seconds: float = 0.3
    gcash_qr_code_url: str = "/images/gcash-qr-code.png"

    # --- Documents ---
    documents_bucket: str = "permit-documents"

    # --- Workflow ---
    strict_status_transitions: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

# Ensure path directory exists (for SQLite)
if settings.database_url.startswith("sqlite:///"):
    db_path = Path(settings.database_url.replace("sqlite:///", ""))
    db_path.parent.mkdir(parents=True, exist_ok=True)

# --- SQLAlchemy setup ---
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False}
    if settings.database_url.startswith("sqlite")
    else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()
