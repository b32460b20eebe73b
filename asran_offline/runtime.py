"""Host runtime services the controller talks to: clients and notifications."""

from typing import Protocol

from .logging_config import get_logger
from .models import Notification, NotificationOptions

logger = get_logger(__name__)


class Clients(Protocol):
    """Windows controlled by the cache controller."""

    def count(self) -> int:
        ...

    async def claim(self) -> None:
        """Take control of every current client."""
        ...

    async def open_window(self, url: str) -> None:
        ...


class Notifications(Protocol):
    """Notification display API."""

    async def show_notification(self, title: str, options: NotificationOptions) -> Notification:
        ...


class LocalClients:
    """Client registry for a single-process host."""

    def __init__(self) -> None:
        self.connected = 0
        self.claimed = False
        self.opened_windows: list[str] = []

    def connect(self) -> None:
        self.connected += 1

    def disconnect(self) -> None:
        self.connected = max(0, self.connected - 1)

    def count(self) -> int:
        return self.connected

    async def claim(self) -> None:
        self.claimed = True
        logger.debug(f"[SW] Claimed {self.connected} clients")

    async def open_window(self, url: str) -> None:
        logger.info(f"[SW] Opening window: {url}")
        self.opened_windows.append(url)


class LocalNotifications:
    """Keeps shown notifications in memory and logs them."""

    def __init__(self, max_items: int = 50) -> None:
        self.max_items = max_items
        self.shown: list[Notification] = []

    async def show_notification(self, title: str, options: NotificationOptions) -> Notification:
        notification = Notification(title=title, options=options)
        self.shown.append(notification)
        del self.shown[:-self.max_items]
        logger.info(f"[SW] Notification shown: {title} - {options.body}")
        return notification


class HostRuntime:
    """Bundle of the host services a controller needs."""

    def __init__(self, clients: Clients | None = None, notifications: Notifications | None = None) -> None:
        self.clients = clients if clients is not None else LocalClients()
        self.notifications = notifications if notifications is not None else LocalNotifications()
