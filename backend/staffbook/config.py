# backend/staffbook/config.py

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repository root


class Settings(BaseSettings):
    database_url: str = "sqlite:///./staffbook.db"
    redis_url: str | None = None

    # Operating timezone of the business (IANA name). Availability is
    # evaluated in this zone only; when unset every check fails closed.
    business_timezone: str | None = None

    slot_step_minutes: int = 15
    lock_timeout_ms: int = 5000

    google_client_id: str = ""
    google_client_secret: str = ""
    google_timeout_seconds: float = 10.0

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


@lru_cache
def get_settings() -> Settings:
    return Settings()
