"""Data models for the ASRAN offline cache service."""

import json
from datetime import UTC, datetime
from enum import Enum
from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel, Field, field_validator
from sqlmodel import SQLModel, Field as SQLField

# Bodies are stored decoded, so these no longer describe them.
DROPPED_RESPONSE_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding", "connection"})


class WorkerState(str, Enum):
    """Lifecycle states of a cache controller."""

    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVE = "active"
    REDUNDANT = "redundant"


class InterceptedRequest(BaseModel):
    """An outgoing request seen by the interception hook."""

    method: str = Field(default="GET", description="HTTP method")
    url: str = Field(..., description="Absolute request URL")
    destination: str = Field(default="", description="Request destination, 'document' for navigations")
    headers: dict[str, str] = Field(default_factory=dict, description="Request headers")
    body: bytes = Field(default=b"", description="Request body")

    @field_validator("method")
    @classmethod
    def normalize_method(cls, v: str) -> str:
        """Methods compare upper-case."""
        return v.upper()

    @classmethod
    def get(cls, url: str, destination: str = "") -> "InterceptedRequest":
        """Build a plain GET request."""
        return cls(method="GET", url=url, destination=destination)

    @property
    def scheme(self) -> str:
        return urlsplit(self.url).scheme.lower()

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def is_navigation(self) -> bool:
        """Whether the request loads a full document."""
        return self.destination == "document"


class StoredResponse(BaseModel):
    """Snapshot of a response kept in a cache partition."""

    url: str = Field(..., description="Request URL the response is stored under")
    status_code: int = Field(..., description="HTTP status code")
    headers: list[tuple[str, str]] = Field(default_factory=list, description="Response headers")
    body: bytes = Field(default=b"", description="Decoded response body")
    stored_at: datetime = Field(default_factory=lambda: datetime.now(UTC), description="When the entry was written")

    @classmethod
    def from_response(cls, url: str, response: httpx.Response) -> "StoredResponse":
        """Snapshot an already-read response."""
        headers = [
            (key, value)
            for key, value in response.headers.multi_items()
            if key.lower() not in DROPPED_RESPONSE_HEADERS
        ]
        return cls(url=url, status_code=response.status_code, headers=headers, body=response.content)

    def to_response(self) -> httpx.Response:
        """Rebuild a fresh response object from the snapshot."""
        return httpx.Response(
            self.status_code,
            headers=self.headers,
            content=self.body,
            request=httpx.Request("GET", self.url),
        )

    def headers_json(self) -> str:
        return json.dumps(self.headers)


class CachePartitionRecord(SQLModel, table=True):
    """A named cache partition in the SQLite backend."""

    __tablename__ = "cache_partitions" # type: ignore

    name: str = SQLField(primary_key=True, description="Partition name, e.g. asran-v1.0.0")
    created_at: datetime = SQLField(description="When the partition was opened for the first time")


class CacheEntry(SQLModel, table=True):
    """A stored response in the SQLite backend."""

    __tablename__ = "cache_entries" # type: ignore

    cache_name: str = SQLField(primary_key=True, description="Owning partition name")
    url: str = SQLField(primary_key=True, description="Request URL (GET only)")
    status_code: int = SQLField(description="HTTP status code")
    headers: str = SQLField(description="JSON encoded header list")
    body: bytes = SQLField(description="Decoded response body")
    stored_at: datetime = SQLField(description="When the entry was last written")


class NotificationAction(BaseModel):
    """A button shown on a notification."""

    action: str
    title: str
    icon: str | None = None


class NotificationOptions(BaseModel):
    """Display options for a notification."""

    body: str
    icon: str | None = None
    badge: str | None = None
    tag: str | None = None
    require_interaction: bool = False
    actions: list[NotificationAction] = Field(default_factory=list)


class Notification(BaseModel):
    """A notification shown by the host runtime."""

    title: str
    options: NotificationOptions
    shown_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    closed: bool = False

    def close(self) -> None:
        self.closed = True
