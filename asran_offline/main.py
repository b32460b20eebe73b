"""FastAPI gateway that puts the offline cache controller in front of the storefront."""

from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import Body, FastAPI, Query, Request
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel

from .config import CacheConfig, Settings, settings
from .controller import OfflineCacheController, Registration
from .errors import BulkCacheInitError, NetworkFetchError
from .logging_config import get_logger, setup_logging
from .models import DROPPED_RESPONSE_HEADERS, InterceptedRequest
from .network import NetworkClient
from .runtime import HostRuntime
from .scheduler import PeriodicSyncScheduler
from .storage import create_storage

logger = get_logger(__name__)

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class PushPayload(BaseModel):
    """Body of a push trigger."""

    data: str | None = None


def build_intercepted_request(config: CacheConfig, request: Request, body: bytes) -> InterceptedRequest:
    """Turn an incoming gateway request into a request against the origin."""
    target = request.url.path
    if request.url.query:
        target += f"?{request.url.query}"

    destination = request.headers.get("sec-fetch-dest", "")
    if not destination and request.headers.get("sec-fetch-mode") == "navigate":
        destination = "document"

    return InterceptedRequest(
        method=request.method,
        url=config.resolve(target),
        destination=destination,
        headers=dict(request.headers),
        body=body,
    )


def to_gateway_response(response: httpx.Response) -> Response:
    """Convert an httpx response into a Starlette response."""
    headers = {
        key: value for key, value in response.headers.items()
        if key.lower() not in DROPPED_RESPONSE_HEADERS
    }
    return Response(content=response.content, status_code=response.status_code, headers=headers)


def create_app(
    app_settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    configure_logging: bool = True,
) -> FastAPI:
    """Create the gateway application."""
    app_settings = app_settings if app_settings is not None else settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan."""
        if configure_logging:
            setup_logging(app_settings.debug)

        logger.info("Starting ASRAN offline cache gateway...")

        # Initialize components
        config = CacheConfig.from_settings(app_settings)
        storage = create_storage(app_settings.cache_backend, app_settings.cache_db_path)
        network = NetworkClient(config.origin, timeout=app_settings.fetch_timeout_sec, transport=transport)
        runtime = HostRuntime()
        registration = Registration(runtime)
        controller = OfflineCacheController(config, storage, network, runtime)

        try:
            await registration.register(controller)
        except BulkCacheInitError as e:
            logger.error(f"Offline cache not installed, passing requests through: {e}")

        scheduler = PeriodicSyncScheduler(
            registration,
            app_settings.periodic_sync_interval_sec,
            tag=config.periodic_sync_tag,
        )
        await scheduler.start()

        app.state.config = config
        app.state.network = network
        app.state.registration = registration
        app.state.scheduler = scheduler

        logger.info("ASRAN offline cache gateway started successfully")

        yield

        # Cleanup
        logger.info("Shutting down ASRAN offline cache gateway...")
        await scheduler.stop()
        await registration.close()
        await network.close()
        logger.info("ASRAN offline cache gateway shutdown complete")

    app = FastAPI(
        title="ASRAN Offline Cache Gateway",
        description="Offline caching and network fallback in front of the ASRAN storefront",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.get("/__sw/health")
    async def health_check():
        """Health check endpoint."""
        registration: Registration = app.state.registration
        return {
            "status": "healthy",
            "service": "asran-offline",
            "controller": registration.active.version if registration.active else None,
        }

    @app.get("/__sw/status")
    async def get_status():
        """Get controller and scheduler statistics."""
        registration: Registration = app.state.registration
        return {
            "registration": await registration.get_stats(),
            "periodic_sync": app.state.scheduler.get_stats(),
        }

    @app.post("/__sw/message")
    async def post_message(
        message: dict[str, Any] = Body(...),
        to_waiting: bool = Query(False, description="Deliver to the waiting controller"),
    ):
        """Post a message to the controller and return its reply."""
        reply = await app.state.registration.post_message(message, to_waiting=to_waiting)
        return reply if reply is not None else {}

    @app.post("/__sw/sync/{tag}")
    async def trigger_sync(tag: str):
        """Fire a one-off background sync."""
        await app.state.registration.sync(tag)
        return {"status": "success", "tag": tag}

    @app.post("/__sw/push")
    async def trigger_push(payload: PushPayload):
        """Deliver a push message and report the notifications shown."""
        notifications = await app.state.registration.push(payload.data)
        return {"notifications": [n.model_dump(mode="json") for n in notifications]}

    @app.api_route("/{path:path}", methods=PROXY_METHODS)
    async def intercept(request: Request, path: str):
        """Route every other request through the controller."""
        config: CacheConfig = app.state.config
        intercepted = build_intercepted_request(config, request, await request.body())

        response = await app.state.registration.handle_fetch(intercepted)
        if response is not None:
            return to_gateway_response(response)

        # Not intercepted, forward to the origin untouched
        try:
            response = await app.state.network.fetch(intercepted)
        except NetworkFetchError as e:
            logger.warning(f"Pass-through request failed: {e}")
            return PlainTextResponse("Bad gateway", status_code=502)
        return to_gateway_response(response)

    return app


app = create_app()


def run() -> None:
    """Run the gateway with uvicorn."""
    import uvicorn

    uvicorn.run(
        "asran_offline.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
