"""
Settings and configuration for the Meetings MCP bridge.
"""

from services.common.settings import (
    AliasChoices,
    BaseSettings,
    Field,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    meetings_base: str = Field(
        default="http://localhost:5556/api/meetings",
        description="Base URL of the upstream meetings REST backend",
        validation_alias=AliasChoices("MEETINGS_BASE"),
    )

    mcp_host: str = Field(
        default="0.0.0.0",
        description="Interface the HTTP server binds to",
        validation_alias=AliasChoices("MCP_HOST"),
    )
    mcp_port: int = Field(
        default=4000,
        description="Port the HTTP server listens on",
        validation_alias=AliasChoices("MCP_PORT"),
    )
    mcp_path: str = Field(
        default="/mcp",
        description="Path of the MCP streamable HTTP endpoint",
        validation_alias=AliasChoices("MCP_PATH"),
    )
    mcp_json_response: bool = Field(
        default=False,
        description="Answer POST requests with plain JSON instead of an SSE stream",
        validation_alias=AliasChoices("MCP_JSON_RESPONSE"),
    )
    max_body_bytes: int = Field(
        default=1024 * 1024,
        description="Largest accepted request body on the MCP endpoint",
        validation_alias=AliasChoices("MAX_BODY_BYTES"),
    )

    # Backend client
    http_timeout_ms: int = Field(
        default=10000,
        description="Timeout for each backend HTTP attempt, in milliseconds",
        validation_alias=AliasChoices("HTTP_TIMEOUT_MS"),
    )
    http_max_retries: int = Field(
        default=1,
        description="Immediate retries after a transport-level backend failure",
        validation_alias=AliasChoices("HTTP_MAX_RETRIES"),
    )

    default_offset: str = Field(
        default="-03:00",
        description="UTC offset applied to date-only and offset-less input",
        validation_alias=AliasChoices("DEFAULT_OFFSET"),
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias=AliasChoices("LOG_LEVEL"),
    )
    log_format: str = Field(
        default="json",
        description="Log format (json or text)",
        validation_alias=AliasChoices("LOG_FORMAT"),
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.meetings_base = self.meetings_base.rstrip("/")


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
