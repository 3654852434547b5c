"""
Configuration options classes for mailtap.

This module provides strongly-typed option classes for the CDP connection
and for target selection, with validation via Pydantic.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .defaults import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_DISCOVERY_TIMEOUT,
    DEFAULT_EXCLUDE_URL_CONTAINS,
    DEFAULT_HANDSHAKE_TIMEOUT,
    DEFAULT_HOST,
    DEFAULT_MAX_MESSAGE_SIZE,
    DEFAULT_PING_INTERVAL,
    DEFAULT_PING_TIMEOUT,
    DEFAULT_PORT,
    DEFAULT_TARGET_TYPE,
)


class ConnectionOptions(BaseModel):
    """Where the debugging host lives and how long to wait for it."""

    host: str = Field(DEFAULT_HOST, description="Debugging host")
    port: int = Field(DEFAULT_PORT, ge=1, le=65535, description="Debugging port")
    discovery_timeout: float = Field(
        DEFAULT_DISCOVERY_TIMEOUT, gt=0, description="HTTP discovery timeout in seconds"
    )
    handshake_timeout: float = Field(
        DEFAULT_HANDSHAKE_TIMEOUT, gt=0, description="WebSocket handshake timeout in seconds"
    )
    command_timeout: Optional[float] = Field(
        DEFAULT_COMMAND_TIMEOUT,
        description="Default per-command timeout in seconds, None waits forever",
    )
    max_message_size: int = Field(DEFAULT_MAX_MESSAGE_SIZE, gt=0)
    ping_interval: Optional[float] = Field(DEFAULT_PING_INTERVAL)
    ping_timeout: Optional[float] = Field(DEFAULT_PING_TIMEOUT)

    @field_validator("command_timeout", "ping_interval", "ping_timeout", mode="before")
    @classmethod
    def parse_optional_seconds(cls, v: Any) -> Any:
        """Accept "none"/"null"/"" as no timeout (env and INI-ish sources)."""
        if isinstance(v, str) and v.strip().lower() in ("", "none", "null"):
            return None
        return v

    @field_validator("command_timeout", "ping_interval", "ping_timeout")
    @classmethod
    def validate_positive(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("must be positive or None")
        return v

    @property
    def discovery_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class TargetOptions(BaseModel):
    """Which discovered target `connect()` attaches to."""

    url_contains: Optional[str] = Field(
        None, description="Substring the target URL must contain"
    )
    exclude_url_contains: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_URL_CONTAINS),
        description="Substrings that disqualify a target URL",
    )
    target_type: Optional[str] = Field(
        DEFAULT_TARGET_TYPE, description="Required target type, e.g. 'page'"
    )

    @field_validator("exclude_url_contains", mode="before")
    @classmethod
    def parse_exclusions(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v


class MailtapConfig(BaseModel):
    """Main configuration container for mailtap."""

    connection: ConnectionOptions = Field(default_factory=ConnectionOptions)
    target: TargetOptions = Field(default_factory=TargetOptions)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return self.model_dump(exclude_none=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MailtapConfig":
        """Create from dictionary."""
        return cls.model_validate(data)


__all__ = ["ConnectionOptions", "TargetOptions", "MailtapConfig"]
