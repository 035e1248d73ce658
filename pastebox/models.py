"""
Pydantic models for paste records and responses.
"""
from datetime import datetime
from typing import Optional, Union
from pydantic import BaseModel, Field

URL_CONTENT_TYPE = "url"


class Paste(BaseModel):
    """A stored paste."""
    id: str = Field(..., description="Capability id (13 base36 chars)")
    slug: str = Field(..., description="Public path segment")
    content: Union[str, bytes] = Field(..., description="Text or raw bytes")
    content_type: str = Field(..., description="MIME type or 'url'")
    expires_at: datetime = Field(..., description="Sunset, timezone-aware UTC")
    secret_hash: Optional[str] = Field(None, description="sha256 of the shared secret (secret mode)")

    @property
    def is_redirect(self) -> bool:
        return self.content_type == URL_CONTENT_TYPE

    @property
    def is_text(self) -> bool:
        return self.content_type.startswith("text/")

    def text(self) -> str:
        """Content as text, decoding stored bytes as UTF-8."""
        if isinstance(self.content, str):
            return self.content
        return self.content.decode("utf-8", errors="replace")


class PasteCreated(BaseModel):
    """Result of a successful create."""
    id: str = Field(..., description="Capability id")
    slug: str = Field(..., description="Public path segment")
    sunset: datetime = Field(..., description="Expiry timestamp")
    secret: Optional[str] = Field(None, description="Shared secret (secret mode only)")


class ClassifiedContent(BaseModel):
    """Inbound payload after classification."""
    content: Union[str, bytes]
    content_type: str


class HealthCheck(BaseModel):
    """Schema for health check response."""
    ok: bool = Field(..., description="Is the application healthy?")


def format_sunset(moment: datetime) -> str:
    """ISO 8601 with millisecond precision and a Z suffix."""
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
