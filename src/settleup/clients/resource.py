"""Typed request/response wrapper over httpx."""

import logging
from functools import lru_cache
from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from ..exceptions import HTTPStatusError, InvalidResponseError, TransportFailureError
from ..models import ServiceCheck

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def _adapter(response_type: Any) -> TypeAdapter:
    return TypeAdapter(response_type)


class ResourceClient:
    """Client for one service, addressed through its gateway prefix."""

    PREFIX = ""

    def __init__(
        self,
        base_url: str,
        prefix: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client. The host comes from configuration only."""
        self.prefix = (self.PREFIX if prefix is None else prefix).rstrip("/")
        self.base_url = base_url.rstrip("/") + self.prefix
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict | None = None,
        response_type: Any = None,
    ) -> Any:
        """
        Send a request and parse the response body.

        Args:
            method: HTTP method
            path: Path relative to the service prefix
            json: Optional JSON body
            response_type: Type to validate the body against (e.g. list[Group]).
                If None, the body is ignored.

        Returns:
            The validated body, or None for 204/empty responses

        Raises:
            TransportFailureError: The service could not be reached
            HTTPStatusError: Non-2xx status, message is "HTTP <status>: <body>"
            InvalidResponseError: The body did not match response_type
        """
        logger.debug(f"{method} {self.prefix}{path} body={json}")
        try:
            response = await self.client.request(method, path, json=json)
        except httpx.TransportError as e:
            logger.error(f"{method} {self.prefix}{path} failed: {e!r}")
            raise TransportFailureError(str(e) or type(e).__name__) from e

        if not response.is_success:
            logger.error(f"{method} {self.prefix}{path} -> {response.status_code}")
            logger.error(f"Response body: {response.text}")
            raise HTTPStatusError(response.status_code, response.text)

        if response_type is None or response.status_code == 204 or not response.content:
            return None

        try:
            return _adapter(response_type).validate_json(response.content)
        except ValidationError as e:
            raise InvalidResponseError(
                f"Unexpected response from {method} {self.prefix}{path}: {e}"
            ) from e

    async def probe(self, name: str, path: str) -> ServiceCheck:
        """
        Probe an endpoint (health, API docs) without raising.

        Args:
            name: Label for the check
            path: Path relative to the service prefix

        Returns:
            The check outcome
        """
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.get(path)
        except httpx.HTTPError as e:
            logger.warning(f"Service check {name} failed: {e!r}")
            return ServiceCheck(name=name, url=url, ok=False, error=str(e) or repr(e))

        if not response.is_success:
            logger.warning(f"Service check {name} returned {response.status_code}")
            return ServiceCheck(
                name=name, url=url, ok=False, error=str(response.status_code)
            )
        return ServiceCheck(name=name, url=url, ok=True)
