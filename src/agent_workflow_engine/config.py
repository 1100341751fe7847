"""Configuration for the workflow engine.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Each concern has its own prefix (`WORKFLOW_LLM_`, `WORKFLOW_BACKEND_`,
`WORKFLOW_EXECUTOR_`); top-level settings use `WORKFLOW_`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from agent_workflow_engine.logging import configure_logging


class LLMConfig(BaseSettings):
    """Configuration for direct LLM providers."""

    provider: Literal["openai"] = Field(
        default="openai",
        description="LLM provider to use",
    )
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model to use",
    )
    openai_temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="Temperature for OpenAI model",
    )

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_LLM_",
        env_file=".env",
        extra="ignore",
    )


class BackendConfig(BaseSettings):
    """Configuration for the stateful session backend."""

    base_url: str = Field(
        default="http://127.0.0.1:4096",
        description="Base URL of the session backend HTTP API",
    )
    model: str = Field(
        default="openai/gpt-4o-mini",
        description="Default model, in the form 'provider/model'",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for individual HTTP requests",
    )

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_BACKEND_",
        env_file=".env",
        extra="ignore",
    )


class ExecutorConfig(BaseSettings):
    """Configuration for prompt executors."""

    kind: Literal["llm", "polling", "tools"] = Field(
        default="llm",
        description="Which prompt executor drives workflow steps",
    )
    poll_interval_seconds: float = Field(
        default=0.5,
        gt=0,
        description="Interval between history polls",
    )
    poll_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Overall ceiling for waiting on a single reply",
    )
    submit_attempts: int = Field(
        default=5,
        ge=1,
        description="Prompt submission attempts before giving up",
    )
    submit_retry_delay_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Delay between prompt submission attempts",
    )
    max_tool_steps: int = Field(
        default=10,
        ge=1,
        description="Maximum backend turns in the tool-calling loop",
    )
    tool_modules: str = Field(
        default="agent_workflow_engine.tools.fs",
        description="Comma-separated modules whose register_tools(registry) provides tools",
    )

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_EXECUTOR_",
        env_file=".env",
        extra="ignore",
    )

    def parsed_tool_modules(self) -> list[str]:
        return [m.strip() for m in self.tool_modules.split(",") if m.strip()]


class WorkflowSettings(BaseSettings):
    """Main settings for running workflows."""

    log_level: str = Field(
        default="INFO",
        description="Root logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug logging for this package",
    )
    default_agent: str = Field(
        default="build",
        description="Agent used by steps that do not name one",
    )
    workflows_path: Path = Field(
        default=Path("workflows"),
        description="Directory holding workflow definition JSON files",
    )
    state_path: Path = Field(
        default=Path(".workflow-state"),
        description="Directory where run scopes and run records are persisted",
    )

    llm: LLMConfig = Field(default_factory=LLMConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_",
        env_file=".env",
        extra="ignore",
    )

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        configure_logging(self.log_level)

        if self.debug:
            logging.getLogger("agent_workflow_engine").setLevel(logging.DEBUG)

    def state_file_for(self, run_id: str) -> Path:
        """Path where the scope of a run is persisted."""

        return self.state_path / "runs" / f"{run_id}.json"

    @property
    def runs_index_file(self) -> Path:
        """Path where run records are persisted."""

        return self.state_path / "runs.json"
