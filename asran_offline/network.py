"""Network fetch primitive used by the caching strategies."""

import httpx

from .errors import NetworkFetchError
from .logging_config import get_logger
from .models import InterceptedRequest

# Set up logging
logger = get_logger(__name__)

# Headers that describe the client connection rather than the request
HOP_BY_HOP_HEADERS = frozenset({"host", "connection", "keep-alive", "transfer-encoding", "upgrade", "content-length"})


class NetworkClient:
    """Thin wrapper around httpx that turns transport failures into NetworkFetchError."""

    def __init__(
        self,
        origin: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the network client."""
        self.origin = origin.rstrip("/")
        self.timeout = timeout

        logger.info(f"Initializing network client for origin: {self.origin}")

        self.client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    def resolve(self, url: str) -> str:
        """Resolve a path against the origin."""
        if url.startswith(("http://", "https://")):
            return url
        return f"{self.origin}/{url.lstrip('/')}"

    def _log_response(self, response: httpx.Response) -> None:
        """Log HTTP response details."""
        logger.debug(f"HTTP response: {response.status_code} {response.reason_phrase}")
        logger.debug(f"Response URL: {response.url}")
        if response.history:
            logger.debug("Redirect chain:")
            for hist_response in response.history:
                logger.debug(f"  {hist_response.status_code} -> {hist_response.url}")

    async def fetch(self, request: InterceptedRequest | str) -> httpx.Response:
        """Fetch a request from the network.

        Any HTTP status is a successful fetch; only failures to get a response
        at all (connection errors, timeouts) raise NetworkFetchError.
        """
        if isinstance(request, str):
            request = InterceptedRequest.get(self.resolve(request))

        headers = {
            key: value for key, value in request.headers.items()
            if key.lower() not in HOP_BY_HOP_HEADERS
        }
        logger.debug(f"HTTP {request.method} request to: {request.url}")

        try:
            response = await self.client.request(
                request.method,
                request.url,
                headers=headers,
                content=request.body or None,
            )
        except httpx.HTTPError as e:
            logger.debug(f"HTTP {request.method} {request.url} failed: {e!r}")
            raise NetworkFetchError(request.url, type(e).__name__) from e

        self._log_response(response)
        return response

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
