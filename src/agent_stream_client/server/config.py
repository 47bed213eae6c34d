"""Configuration for the mock backend server."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    mock_delay_seconds: float = Field(
        default=0.02,
        ge=0,
        validation_alias="AGENT_STREAM_SERVER_MOCK_DELAY_SECONDS",
        description="Pause between streamed mock events; 0 streams without pausing",
    )

    # Dev-friendly CORS for a browser UI. Override via AGENT_STREAM_CORS_ORIGINS=...
    cors_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        validation_alias="AGENT_STREAM_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
