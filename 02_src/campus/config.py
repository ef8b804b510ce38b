"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "campus.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"
DEFAULT_ATTACHMENTS_DIR = DATA_DIR / "attachments"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

MB = 1024 * 1024

PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def resolve_attachments_dir(env_value: PathLike | None = None) -> Path:
    """Resolve ATTACHMENTS_DIR to an absolute path."""
    if not env_value:
        return DEFAULT_ATTACHMENTS_DIR

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _env_list(name: str, default: list[str]) -> list[str]:
    value = os.getenv(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Settings:
    """Runtime settings read from the environment."""

    database_url: str | None = None
    log_level: str = "INFO"
    session_secret: str | None = None
    session_ttl_minutes: int = 60 * 12
    mahroom_threshold: float = 75.0
    tasdiq_threshold: float = 85.0
    student_max_attachment_bytes: int = 20 * MB
    max_attachment_bytes: int = 100 * MB
    attachments_dir: Path = DEFAULT_ATTACHMENTS_DIR
    audit_log_enabled: bool = True
    api_host: str = "localhost"
    api_port: int = 8000
    cors_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:3000"]
    )

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            session_secret=os.getenv("SESSION_SECRET"),
            session_ttl_minutes=int(os.getenv("SESSION_TTL_MINUTES", str(60 * 12))),
            mahroom_threshold=_env_float("MAHROOM_THRESHOLD", 75.0),
            tasdiq_threshold=_env_float("TASDIQ_THRESHOLD", 85.0),
            student_max_attachment_bytes=int(
                _env_float("STUDENT_MAX_ATTACHMENT_MB", 20) * MB
            ),
            max_attachment_bytes=int(_env_float("MAX_ATTACHMENT_MB", 100) * MB),
            attachments_dir=resolve_attachments_dir(os.getenv("ATTACHMENTS_DIR")),
            audit_log_enabled=_env_bool("AUDIT_LOG_ENABLED", True),
            api_host=os.getenv("API_HOST", "localhost"),
            api_port=int(os.getenv("API_PORT", "8000")),
            cors_origins=_env_list("CORS_ORIGINS", ["http://localhost:3000"]),
        )
