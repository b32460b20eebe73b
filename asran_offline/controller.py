"""Offline cache controller and the registration that drives its lifecycle."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from .config import CacheConfig
from .dispatcher import StrategyDispatcher
from .errors import BulkCacheInitError
from .events import (
    ActivateEvent,
    EventBus,
    FetchEvent,
    InstallEvent,
    MessageEvent,
    NotificationClickEvent,
    PeriodicSyncEvent,
    PushEvent,
    ReplyChannel,
    SyncEvent,
)
from .logging_config import get_logger
from .models import InterceptedRequest, Notification, NotificationAction, NotificationOptions, WorkerState
from .network import NetworkClient
from .partitions import PartitionManager
from .runtime import HostRuntime
from .storage import CacheStorage
from .tasks import BackgroundTasks

logger = get_logger(__name__)


class OfflineCacheController:
    """Intercepts requests and keeps the static and API partitions fresh."""

    def __init__(
        self,
        config: CacheConfig,
        storage: CacheStorage,
        network: NetworkClient,
        runtime: HostRuntime | None = None,
    ) -> None:
        """Initialize the controller."""
        self.config = config
        self.storage = storage
        self.network = network
        self.runtime = runtime if runtime is not None else HostRuntime()

        self.state = WorkerState.PARSED
        self.background = BackgroundTasks()
        self.partitions = PartitionManager(config, storage, network)
        self.dispatcher = StrategyDispatcher(config, storage, network, self.background)

        self.bus: EventBus | None = None
        self.skip_waiting_requested = False
        self._skip_waiting_hook: Callable[[], Awaitable[None]] | None = None

    @property
    def version(self) -> str:
        """Current partition-version identifier."""
        return self.config.static_cache_name

    def register(self, bus: EventBus) -> None:
        """Subscribe the lifecycle handlers on an event bus."""
        bus.subscribe("install", self.on_install)
        bus.subscribe("activate", self.on_activate)
        bus.subscribe("fetch", self.on_fetch)
        bus.subscribe("message", self.on_message)
        bus.subscribe("push", self.on_push)
        bus.subscribe("notificationclick", self.on_notification_click)
        bus.subscribe("sync", self.on_sync)
        bus.subscribe("periodicsync", self.on_periodic_sync)
        self.bus = bus

    def set_skip_waiting_hook(self, hook: Callable[[], Awaitable[None]]) -> None:
        self._skip_waiting_hook = hook

    async def skip_waiting(self) -> None:
        """Ask to be activated without waiting for old clients to close."""
        self.skip_waiting_requested = True
        if self.state == WorkerState.INSTALLED and self._skip_waiting_hook is not None:
            await self._skip_waiting_hook()

    async def on_install(self, event: InstallEvent) -> None:
        """Pre-cache both partitions; the static one must succeed completely."""
        logger.info("[SW] Install event")
        self.state = WorkerState.INSTALLING

        static_result, api_result = await asyncio.gather(
            self.partitions.initialize_static_partition(),
            self.partitions.initialize_api_partition(),
            return_exceptions=True,
        )
        if isinstance(api_result, BaseException):
            logger.error(f"[SW] Caching API endpoints failed: {api_result}")
        if isinstance(static_result, BaseException):
            self.state = WorkerState.REDUNDANT
            raise static_result

        self.state = WorkerState.INSTALLED

        if self.config.skip_waiting_on_install:
            # Force the waiting controller to become the active one
            await self.skip_waiting()

    async def on_activate(self, event: ActivateEvent) -> None:
        """Delete stale partitions and take control of the clients."""
        logger.info("[SW] Activate event")
        self.state = WorkerState.ACTIVATING

        await self.partitions.prune_stale_partitions(self.config.expected_cache_names)
        await self.runtime.clients.claim()

        self.state = WorkerState.ACTIVE

    async def on_fetch(self, event: FetchEvent) -> httpx.Response | None:
        return await self.dispatcher.dispatch(event.request)

    async def on_message(self, event: MessageEvent) -> Any:
        """Answer messages from the page."""
        logger.info(f"[SW] Message received: {event.data}")

        if event.message_type == "SKIP_WAITING":
            await self.skip_waiting()
            return None

        if event.message_type == "GET_VERSION":
            reply = {"version": self.version}
            if event.ports:
                event.ports[0].post_message(reply)
            return reply

        return None

    async def on_push(self, event: PushEvent) -> Notification:
        """Show a notification for a push message."""
        logger.info("[SW] Push message received")
        notification = self.config.notification

        options = NotificationOptions(
            body=event.data if event.data else notification.default_body,
            icon=notification.icon,
            badge=notification.badge,
            tag=notification.tag,
            require_interaction=False,
            actions=[
                NotificationAction(action="view", title="보기", icon="/icons/action-view.png"),
                NotificationAction(action="dismiss", title="닫기", icon="/icons/action-dismiss.png"),
            ],
        )
        return await self.runtime.notifications.show_notification(notification.title, options)

    async def on_notification_click(self, event: NotificationClickEvent) -> None:
        logger.info(f"[SW] Notification click: {event.action}")

        event.notification.close()

        if event.action == "view":
            await self.runtime.clients.open_window(self.config.home_url)

    async def on_sync(self, event: SyncEvent) -> None:
        logger.info(f"[SW] Background sync: {event.tag}")

        if event.tag == self.config.background_sync_tag:
            await self.handle_background_sync()

    async def handle_background_sync(self) -> None:
        # No offline actions are queued yet, the hook only reports
        logger.info("[SW] Performing background sync")

    async def on_periodic_sync(self, event: PeriodicSyncEvent) -> int | None:
        logger.info(f"[SW] Periodic sync: {event.tag}")

        if event.tag == self.config.periodic_sync_tag:
            return await self.partitions.refresh_api_partition()
        return None

    async def close(self) -> None:
        """Cancel background work."""
        await self.background.close()

    async def get_stats(self) -> dict:
        """Get controller statistics."""
        return {
            "version": self.version,
            "state": self.state.value,
            "skip_waiting_requested": self.skip_waiting_requested,
            "background_tasks": self.background.get_stats(),
            "cache": await self.partitions.get_stats(),
        }


class Registration:
    """Holds the installing, waiting and active controllers."""

    def __init__(self, runtime: HostRuntime | None = None) -> None:
        self.runtime = runtime if runtime is not None else HostRuntime()
        self.installing: OfflineCacheController | None = None
        self.waiting: OfflineCacheController | None = None
        self.active: OfflineCacheController | None = None

    async def register(self, controller: OfflineCacheController) -> OfflineCacheController:
        """Install a controller and activate it when nothing holds it back.

        A failed install leaves the previously active controller in charge and
        re-raises BulkCacheInitError.
        """
        bus = EventBus()
        controller.register(bus)
        controller.set_skip_waiting_hook(lambda: self._activate(controller))

        self.installing = controller
        try:
            await bus.dispatch("install", InstallEvent())
        except BulkCacheInitError as e:
            logger.error(f"[SW] Install of {controller.version} failed: {e}")
            controller.state = WorkerState.REDUNDANT
            await controller.close()
            raise
        finally:
            if self.installing is controller:
                self.installing = None

        if controller.state == WorkerState.INSTALLED:
            if self.waiting is not None and self.waiting is not controller:
                self.waiting.state = WorkerState.REDUNDANT
                await self.waiting.close()
            self.waiting = controller
            if self.active is None or self.runtime.clients.count() == 0:
                await self._activate(controller)
            else:
                logger.info(f"[SW] {controller.version} installed, waiting for clients to close")

        return controller

    async def _activate(self, controller: OfflineCacheController) -> None:
        if controller.state != WorkerState.INSTALLED:
            return

        if self.waiting is not None and self.waiting is not controller:
            logger.info(f"[SW] Waiting {self.waiting.version} replaced by {controller.version}")
            self.waiting.state = WorkerState.REDUNDANT
            await self.waiting.close()
        self.waiting = None

        previous = self.active
        if previous is not None and previous is not controller:
            logger.info(f"[SW] {previous.version} superseded by {controller.version}")
            previous.state = WorkerState.REDUNDANT
            await previous.close()

        await controller.bus.dispatch("activate", ActivateEvent())
        self.active = controller

    async def clients_closed(self) -> None:
        """Activate a waiting controller once no client is left."""
        if self.waiting is not None and self.runtime.clients.count() == 0:
            await self._activate(self.waiting)

    async def handle_fetch(self, request: InterceptedRequest) -> httpx.Response | None:
        """Interception hook: a response, or None to let the request through."""
        if self.active is None:
            return None

        for response in await self.active.bus.dispatch("fetch", FetchEvent(request)):
            if response is not None:
                return response
        return None

    async def post_message(self, data: Any, to_waiting: bool = False) -> Any:
        """Send a message and return the reply posted on its channel, if any."""
        target = self.waiting if to_waiting else self.active
        if target is None:
            return None

        channel = ReplyChannel()
        await target.bus.dispatch("message", MessageEvent(data, [channel]))
        if channel.empty():
            return None
        return await channel.receive()

    async def push(self, data: str | None = None) -> list[Notification]:
        if self.active is None:
            return []
        return await self.active.bus.dispatch("push", PushEvent(data))

    async def notification_click(self, notification: Notification, action: str = "") -> None:
        if self.active is None:
            return
        await self.active.bus.dispatch("notificationclick", NotificationClickEvent(notification, action))

    async def sync(self, tag: str) -> None:
        """Fire a one-off background sync; errors are logged, never raised."""
        if self.active is None:
            return
        try:
            await self.active.bus.dispatch("sync", SyncEvent(tag))
        except Exception as e:
            logger.error(f"[SW] Background sync {tag} failed: {e}")

    async def periodic_sync(self, tag: str) -> None:
        """Fire a periodic sync; errors are logged, never raised."""
        if self.active is None:
            return
        try:
            await self.active.bus.dispatch("periodicsync", PeriodicSyncEvent(tag))
        except Exception as e:
            logger.error(f"[SW] Periodic sync {tag} failed: {e}")

    async def close(self) -> None:
        for controller in (self.installing, self.waiting, self.active):
            if controller is not None:
                await controller.close()

    async def get_stats(self) -> dict:
        return {
            "active": await self.active.get_stats() if self.active else None,
            "waiting": self.waiting.version if self.waiting else None,
            "clients": self.runtime.clients.count(),
        }
