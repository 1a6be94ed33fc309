import logging
import os
from pathlib import Path
from typing import ClassVar, Union

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings

log_format = logging.Formatter("%(asctime)s : %(levelname)s - %(message)s")

# root logger
root_logger = logging.getLogger()
root_logger.setLevel(logging.INFO)

# standard stream handler
stream_handler = logging.StreamHandler()
stream_handler.setFormatter(log_format)
root_logger.addHandler(stream_handler)

logger = logging.getLogger(__name__)

# Optional .env file; the process environment always wins
env_path = Path(os.getenv("GYMBOOK_ENV_FILE", ".env"))
if env_path.exists():
    load_dotenv(dotenv_path=env_path)
    logger.info(f"Loaded environment from {env_path}")
else:
    logger.info(f"No .env file at {env_path}, using process environment")


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"

    # Supabase Configuration
    SUPABASE_URL: str = Field(
        default_factory=lambda: os.getenv("SUPABASE_URL"),
        description="Supabase project URL"
    )
    SUPABASE_KEY: str = Field(
        default_factory=lambda: os.getenv("SUPABASE_KEY"),
        description="Supabase service role key used for RPCs and token checks"
    )

    # Database Configuration
    DATABASE_URL: str = Field(
        default_factory=lambda: os.getenv("DATABASE_URL"),
        description="Supabase Postgres URL (postgresql+asyncpg://...)"
    )

    # Server Configuration
    SERVER_HOST: AnyHttpUrl = "https://localhost"
    SERVER_PORT: int = 8001
    BACKEND_CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    def assemble_cors_origins(cls, v: Union[str, list[str]]) -> list[str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, list):
            return v
        elif isinstance(v, str):
            return [v]
        raise ValueError(v)

    # Booking
    # Course dates and start times are wall-clock times in this zone
    GYM_TIMEZONE: str = "Europe/Berlin"
    CREDIT_UPDATE_MAX_RETRIES: int = 3
    UPCOMING_COURSE_DAYS: int = 10

    PROJECT_NAME: str = "gym-booking-api"

    Config: ClassVar[ConfigDict] = ConfigDict(arbitrary_types_allowed=True)


settings = Settings()

# Validate required settings
if not settings.SUPABASE_URL:
    raise ValueError("SUPABASE_URL environment variable is required")
if not settings.SUPABASE_KEY:
    raise ValueError("SUPABASE_KEY environment variable is required")
if not settings.DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required")
