import os
from functools import lru_cache

from pydantic import BaseModel, Field


class Settings(BaseModel):
    FUND_HTTP_TIMEOUT_SEC: float = Field(default=5.0, ge=3.0, le=5.0)
    FUND_REFRESH_CONCURRENCY: int = Field(default=5, ge=1)
    FUND_WS_HEARTBEAT_SEC: float = Field(default=30.0, gt=0)
    FUND_WS_WRITE_TIMEOUT_SEC: float = Field(default=5.0, gt=0)
    FUND_TIMEZONE: str = "Asia/Shanghai"

    @classmethod
    def from_env(cls) -> "Settings":
        raw = {
            "FUND_HTTP_TIMEOUT_SEC": os.getenv("FUND_HTTP_TIMEOUT_SEC"),
            "FUND_REFRESH_CONCURRENCY": os.getenv("FUND_REFRESH_CONCURRENCY"),
            "FUND_WS_HEARTBEAT_SEC": os.getenv("FUND_WS_HEARTBEAT_SEC"),
            "FUND_WS_WRITE_TIMEOUT_SEC": os.getenv("FUND_WS_WRITE_TIMEOUT_SEC"),
            "FUND_TIMEZONE": (os.getenv("FUND_TIMEZONE") or "").strip(),
        }
        # unset or blank variables fall back to field defaults
        return cls.model_validate({k: v for k, v in raw.items() if v not in (None, "")})


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
