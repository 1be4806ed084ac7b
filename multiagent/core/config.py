"""Backend configuration settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from dotenv import load_dotenv
from typing import List

# Load environment variables from .env file
load_dotenv()


class BackendSettings(BaseSettings):
    """API server and remote agent configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # API Settings
    api_port: int = Field(default=8000, description="API server port")
    api_workers: int = Field(default=4, description="Number of API workers")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Root logging level")

    # CORS Settings
    cors_origins: List[str] = Field(
        default=["http://localhost:4200", "http://localhost:3000", "http://127.0.0.1:4200"],
        description="Allowed CORS origins"
    )

    # Remote agent endpoints
    agent_base_url: str = Field(
        default="http://127.0.0.1:5001",
        description="Base URL the agent endpoints are served under"
    )
    planner_endpoint: str = Field(default="multiAgentPlanner")
    executor_endpoint: str = Field(default="multiAgentExecutor")
    multi_executor_endpoint: str = Field(default="multiAgentMultiTaskExecutor")
    verifier_endpoint: str = Field(default="multiAgentVerifier")
    critic_endpoint: str = Field(default="multiAgentCritic")
    agent_timeout_seconds: float = Field(
        default=540.0,
        description="Transport timeout for a single agent call"
    )

    # Orchestration defaults
    skip_critique_default: bool = Field(
        default=False,
        description="Skip the critique phase when a request does not say"
    )

    # Tool catalog
    tool_catalog_path: str = Field(default="tools.yaml")


def get_settings() -> BackendSettings:
    """Get backend settings from the environment."""
    return BackendSettings()


settings = get_settings()
