"""Configuration management for Ticketflow."""

from typing import Literal
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class DatabaseConfig(BaseSettings):
    """Database configuration."""

    database_path: Path = Field(
        default=Path("data/ticketflow.db"),
        validation_alias="TICKETFLOW_DB_PATH",
        description="Path to SQLite database holding tickets and activity events",
    )

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True, extra="ignore")


class WorkflowConfig(BaseSettings):
    """Workflow engine configuration."""

    critical_path_limit: int = Field(
        default=5,
        ge=1,
        description="Default number of critical paths returned",
    )
    barycenter_sweeps: int = Field(
        default=4,
        ge=0,
        description="Forward/backward barycenter sweeps during graph layout",
    )
    system_actor: str = Field(
        default="st",
        description="Actor name recorded for automatic transitions",
    )

    model_config = SettingsConfigDict(env_prefix="WORKFLOW_", extra="ignore")


class Settings(BaseSettings):
    """Main settings combining all configurations."""

    # Sub-configurations
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    workflow: WorkflowConfig = Field(default_factory=WorkflowConfig)

    # General settings
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from environment and files."""
        # Load dotenv explicitly so nested configs see the values too
        from dotenv import load_dotenv
        load_dotenv()
        return cls()


# Global settings instance
settings = None


def get_settings() -> Settings:
    """Get or create global settings instance."""
    global settings
    if settings is None:
        settings = Settings.load()
    return settings


def reload_settings():
    """Reload settings from environment."""
    global settings
    settings = Settings.load()
    return settings
