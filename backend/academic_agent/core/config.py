"""
Application settings

Loaded from ACADEMIC_AGENT_* environment variables (and a .env file when present).
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_DIR = Path(__file__).resolve().parent.parent.parent

DEFAULT_MAX_ITERATIONS = 7

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """Runtime configuration for the academic agent backend"""

    model_config = SettingsConfigDict(
        env_prefix="ACADEMIC_AGENT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="Academic Agent", description="Application name")
    log_level: LogLevel = Field(default="INFO", description="Logging level")

    database_url: str = Field(
        default=f"sqlite:///{BACKEND_DIR / 'data' / 'academic_agent.db'}",
        description="SQLAlchemy URL for academic records and chat sessions",
    )
    ai_config_path: Path = Field(
        default=BACKEND_DIR / "AI-Config.json",
        description="JSON file holding the model provider configuration",
    )

    agent_name: str = Field(default="AcademicAgent", description="Name used in status events")
    max_iterations: int = Field(
        default=DEFAULT_MAX_ITERATIONS,
        ge=1,
        description="Hard cap on tool-calling iterations per query",
    )
    persona: Optional[str] = Field(
        default=None,
        description="System directive override; the built-in persona is used when unset",
    )

    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"],
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
