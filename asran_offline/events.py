"""Event bus and lifecycle event types delivered to a cache controller."""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Callable

from .logging_config import get_logger
from .models import InterceptedRequest, Notification

logger = get_logger(__name__)

EVENT_KINDS = (
    "install",
    "activate",
    "fetch",
    "message",
    "push",
    "notificationclick",
    "sync",
    "periodicsync",
)


class ReplyChannel:
    """One end of a message channel used to answer a message."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()

    def post_message(self, payload: Any) -> None:
        self._queue.put_nowait(payload)

    async def receive(self, timeout: float | None = None) -> Any:
        return await asyncio.wait_for(self._queue.get(), timeout=timeout)

    def empty(self) -> bool:
        return self._queue.empty()


@dataclass
class InstallEvent:
    kind = "install"


@dataclass
class ActivateEvent:
    kind = "activate"


@dataclass
class FetchEvent:
    request: InterceptedRequest
    kind = "fetch"


@dataclass
class MessageEvent:
    data: Any
    ports: list[ReplyChannel] = field(default_factory=list)
    kind = "message"

    @property
    def message_type(self) -> str | None:
        if isinstance(self.data, dict):
            return self.data.get("type")
        return None


@dataclass
class PushEvent:
    data: str | None = None
    kind = "push"


@dataclass
class NotificationClickEvent:
    notification: Notification
    action: str = ""
    kind = "notificationclick"


@dataclass
class SyncEvent:
    tag: str
    kind = "sync"


@dataclass
class PeriodicSyncEvent:
    tag: str
    kind = "periodicsync"


class EventBus:
    """Registry mapping event kinds to handlers."""

    def __init__(self) -> None:
        self.event_handlers: dict[str, list[Callable]] = {kind: [] for kind in EVENT_KINDS}

    def subscribe(self, event_kind: str, handler: Callable) -> None:
        """Add a handler for a specific event kind."""
        if event_kind not in self.event_handlers:
            raise ValueError(f"Unknown event kind: {event_kind}")
        self.event_handlers[event_kind].append(handler)

    async def dispatch(self, event_kind: str, event: Any) -> list[Any]:
        """Run every handler for an event in order and collect their results.

        Handler errors propagate to the dispatcher's caller.
        """
        if event_kind not in self.event_handlers:
            raise ValueError(f"Unknown event kind: {event_kind}")

        results = []
        for handler in self.event_handlers[event_kind]:
            result = handler(event)
            if inspect.isawaitable(result):
                result = await result
            results.append(result)
        return results
