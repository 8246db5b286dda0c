import os
from functools import lru_cache
from pathlib import Path


RECURRENCE_MODES = ("lazy", "eager")


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        recurrence_horizon_days: int,
        recurrence_mode: str,
        log_level: str,
        default_user_id: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.recurrence_horizon_days = recurrence_horizon_days
        self.recurrence_mode = recurrence_mode
        self.log_level = log_level
        self.default_user_id = default_user_id


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINTRACK_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "fintrack.db"
    database_url = os.getenv("FINTRACK_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("FINTRACK_TIMEZONE", "America/Sao_Paulo")
    recurrence_horizon_days = int(
        os.getenv("FINTRACK_RECURRENCE_HORIZON_DAYS", "365")
    )
    if recurrence_horizon_days <= 0:
        raise ValueError("FINTRACK_RECURRENCE_HORIZON_DAYS must be positive")
    recurrence_mode = os.getenv("FINTRACK_RECURRENCE_MODE", "lazy").lower()
    if recurrence_mode not in RECURRENCE_MODES:
        raise ValueError(f"Unsupported recurrence mode: {recurrence_mode}")
    log_level = os.getenv("FINTRACK_LOG_LEVEL", "INFO").upper()
    default_user_id = int(os.getenv("FINTRACK_DEFAULT_USER_ID", "1"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        recurrence_horizon_days=recurrence_horizon_days,
        recurrence_mode=recurrence_mode,
        log_level=log_level,
        default_user_id=default_user_id,
    )
