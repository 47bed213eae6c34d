"""Configuration for the streaming client.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Settings for the streaming client.

    Environment variables:
    - AGENT_STREAM_API_URL                   (optional)
    - LOG_LEVEL                              (optional)
    - AGENT_STREAM_MOCK                      (optional)
    - AGENT_STREAM_MOCK_DELAY_SECONDS        (optional)
    - AGENT_STREAM_CONNECT_TIMEOUT_SECONDS   (optional)
    - AGENT_STREAM_READ_TIMEOUT_SECONDS      (optional)
    - AGENT_STREAM_DEBUG                     (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `ClientSettings(_env_file=path_to_env)`.
    """

    api_base_url: str = Field(
        default="http://localhost:8000/api",
        validation_alias="AGENT_STREAM_API_URL",
        description="Base URL of the agent backend API (the chat stream lives at /chat/stream)",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    mock_stream: bool = Field(
        default=False,
        validation_alias="AGENT_STREAM_MOCK",
        description="Replay the built-in mock script instead of calling the backend",
    )
    mock_delay_seconds: float = Field(
        default=0.02,
        ge=0,
        validation_alias="AGENT_STREAM_MOCK_DELAY_SECONDS",
        description="Pause between mock events; 0 replays without pausing",
    )

    connect_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        validation_alias="AGENT_STREAM_CONNECT_TIMEOUT_SECONDS",
        description="Timeout for connecting and sending the request",
    )
    read_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        validation_alias="AGENT_STREAM_READ_TIMEOUT_SECONDS",
        description="Maximum silence between two chunks of the event stream",
    )

    debug: bool = Field(
        default=False,
        validation_alias="AGENT_STREAM_DEBUG",
        description="Ask the backend to run the turn in debug mode",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _normalise_api_base_url(self) -> ClientSettings:
        url = self.api_base_url.strip().rstrip("/")
        if not url.startswith(("http://", "https://")):
            raise ValueError("AGENT_STREAM_API_URL must be an http(s) URL")
        self.api_base_url = url
        return self
