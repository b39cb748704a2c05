"""
Shared plumbing for the external service clients.

Wraps httpx.AsyncClient with:
- a per-service concurrency cap (asyncio.Semaphore)
- a per-call timeout from ServiceSettings
- mapping of transport failures and HTTP statuses onto
  ServiceTransientError / ServicePermanentError
"""

import asyncio
import logging
from typing import Any, Callable, Optional

import httpx

from ...config.services import ServiceSettings
from ..errors import ServicePermanentError, ServiceTransientError, classify_status

logger = logging.getLogger(__name__)

# Max characters of an error body carried into exception messages
ERROR_SNIPPET_LIMIT = 300


class ServiceClient:
    """Base class for async HTTP service adapters."""

    service_name = "service"
    auth_scheme = "Bearer"

    def __init__(
        self,
        settings: ServiceSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._semaphore = asyncio.Semaphore(settings.max_concurrent)
        headers = {}
        if settings.api_key:
            headers["Authorization"] = f"{self.auth_scheme} {settings.api_key}"
        self._client = httpx.AsyncClient(
            base_url=settings.base_url,
            headers=headers,
            timeout=settings.timeout_s,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def _request(
        self, method: str, path: str, authenticated: bool = True, **kwargs: Any
    ) -> httpx.Response:
        """
        Send one request under the concurrency cap.

        With authenticated=False the API key header is left off, for URLs
        that point away from the service (e.g. a CDN).

        Raises:
            ServiceTransientError: timeouts, connection errors, 429 and 5xx
            ServicePermanentError: any other 4xx
        """
        async with self._semaphore:
            try:
                request = self._client.build_request(method, path, **kwargs)
                if not authenticated:
                    request.headers.pop("Authorization", None)
                response = await self._client.send(request)
            except httpx.TimeoutException as e:
                raise ServiceTransientError(f"{method} {path} timed out: {e}", self.service_name) from e
            except httpx.TransportError as e:
                raise ServiceTransientError(f"{method} {path} failed: {e}", self.service_name) from e

        error_cls = classify_status(response.status_code)
        if error_cls is not None:
            snippet = response.text[:ERROR_SNIPPET_LIMIT]
            logger.debug(
                f"{self.service_name} {method} {path} returned {response.status_code}: {snippet}"
            )
            raise error_cls(
                f"{method} {path} returned error: {snippet}",
                self.service_name,
                status_code=response.status_code,
            )
        return response

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> dict:
        response = await self._request(method, path, **kwargs)
        try:
            data = response.json()
        except ValueError as e:
            raise ServicePermanentError(
                f"{method} {path} returned a non-JSON body", self.service_name, response.status_code
            ) from e
        if not isinstance(data, dict):
            raise ServicePermanentError(
                f"{method} {path} returned {type(data).__name__}, expected an object",
                self.service_name,
                response.status_code,
            )
        return data

    def _require(self, data: dict, key: str, path: str) -> Any:
        """Fetch a required response field or fail permanently."""
        value = data.get(key)
        if value is None:
            raise ServicePermanentError(f"{path} response missing '{key}'", self.service_name)
        return value

    def _number(self, value: Any, key: str, path: str, cast: Callable[[Any], Any] = float) -> Any:
        """Convert a numeric response field or fail permanently."""
        try:
            return cast(value)
        except (TypeError, ValueError) as e:
            raise ServicePermanentError(
                f"{path} response has non-numeric '{key}': {value!r}", self.service_name
            ) from e

    def _is_same_host(self, url: str) -> bool:
        """True for relative URLs and URLs on the service's own host."""
        host = httpx.URL(url).host
        return not host or host == self._client.base_url.host
