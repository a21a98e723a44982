"""Backend configuration."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the workflow editing backend."""

    storage_dir: Path = Field(
        default=Path.home() / ".workflow-builder" / "workflows",
        description="Directory holding saved workflow JSON files",
    )
    autosave_delay_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Quiet period after the last edit before the workflow is saved",
    )
    autosave_enabled: bool = Field(
        default=True,
        description="Save edits automatically after the quiet period",
    )
    max_history: int = Field(
        default=100,
        gt=0,
        description="Undo snapshots kept per session",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://localhost:3000",
            "http://127.0.0.1:5173",
        ],
        description="Origins allowed to call the API from a browser",
    )
    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8765, gt=0, description="Bind port")

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_",
        env_file=".env",
        extra="ignore",
    )


def get_settings() -> Settings:
    """Read settings from the environment (fresh on every call)."""
    return Settings()
