# kas/config.py
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: Optional[str] = None
    DB_ECHO: bool = Field(False)
    DB_POOL_SIZE: int = Field(20)
    DB_MAX_OVERFLOW: int = Field(0)
    DB_POOL_TIMEOUT_SECONDS: float = Field(10.0)
    DB_POOL_RECYCLE_SECONDS: int = Field(1800)

    HOST: str = Field("0.0.0.0")
    PORT: int = Field(8080)

    APP_ENV: str = Field("development")
    LOG_LEVEL: str = Field("INFO")
    LOG_JSON: bool = Field(False)

    # Calendar used to derive date_partition from submittime
    REPORT_TIMEZONE: str = Field("UTC")

    LEVEL_HIGH_THRESHOLD: int = Field(5)
    LEVEL_MID_THRESHOLD: int = Field(3)

    HEARTBEAT_INTERVAL_SECONDS: float = Field(30.0)
    WS_SEND_TIMEOUT_SECONDS: float = Field(5.0)

    # Comma-separated origins. localhost/127.0.0.1 on any port are always allowed.
    CORS_ALLOWED_ORIGINS: str = Field("http://localhost:5173")
    CORS_CREDENTIALS: bool = Field(True)

    CLASS_DATA_FILE: Optional[str] = None
    DEFAULT_HEADTEACHER_FORMAT: str = Field("{classNum}班班主任")

    model_config = {
        "env_file": ".env",
        "extra": "allow",
    }

    @property
    def effective_database_url(self) -> str:
        db_url = self.DATABASE_URL or "sqlite+aiosqlite:///./kas.db"
        # Ensure asyncpg is used
        if db_url.startswith("postgresql://"):
            db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return db_url

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() == "development"

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ALLOWED_ORIGINS.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
