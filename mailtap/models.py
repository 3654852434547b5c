"""
Core data models for mailtap.

Snapshots returned by the DevTools HTTP discovery endpoints. They are
immutable and re-fetched on every discovery call.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Target(BaseModel):
    """A debuggable target listed by ``/json``.

    Targets without a ``webSocketDebuggerUrl`` are listed but cannot be
    attached to (usually because another client already holds them).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    title: str = ""
    url: str = ""
    type: str = "other"
    description: str = ""
    web_socket_debugger_url: Optional[str] = Field(
        default=None, alias="webSocketDebuggerUrl"
    )
    devtools_frontend_url: Optional[str] = Field(
        default=None, alias="devtoolsFrontendUrl"
    )

    @property
    def is_attachable(self) -> bool:
        """Whether a WebSocket can be opened to this target."""
        return bool(self.web_socket_debugger_url)

    @property
    def is_page(self) -> bool:
        return self.type == "page"


class BrowserVersion(BaseModel):
    """Browser metadata from ``/json/version``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    browser: str = Field(default="", alias="Browser")
    protocol_version: str = Field(default="", alias="Protocol-Version")
    user_agent: str = Field(default="", alias="User-Agent")
    v8_version: str = Field(default="", alias="V8-Version")
    webkit_version: str = Field(default="", alias="WebKit-Version")
    web_socket_debugger_url: Optional[str] = Field(
        default=None, alias="webSocketDebuggerUrl"
    )


__all__ = ["Target", "BrowserVersion"]
