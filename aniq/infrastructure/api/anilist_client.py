"""Concrete implementation of the GraphQLTransport interface using httpx.

Hides the specifics of the HTTP client and translates httpx failures into
the domain error taxonomy so that the rate governor can classify them.
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx

from aniq.domain.errors import DecodeError, HttpError, TransportError
from aniq.domain.interfaces.reachability import ReachabilityProbe
from aniq.domain.interfaces.transport import GraphQLTransport, TransportResponse
from aniq.domain.models.common import GraphQLQuery, GraphQLVariables

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://graphql.anilist.co"
DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_REACHABILITY_URL = "https://1.1.1.1/cdn-cgi/trace"
DEFAULT_REACHABILITY_TIMEOUT_SECONDS = 3.0


def _error_message(body: Any, fallback: str) -> str:
    """Pulls the first GraphQL error message out of a response body."""
    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return str(errors[0].get("message", fallback))
    return fallback


class AniListClient(GraphQLTransport):
    """GraphQL transport for AniList."""

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initializes the client.

        Args:
            api_url: GraphQL endpoint.
            timeout: Per-request timeout in seconds; bounds every call.
            client: Optional preconfigured httpx client (tests use MockTransport).
        """
        self.api_url = api_url
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        logger.info(f"AniListClient initialized for endpoint: {api_url}")

    async def request(self, query: GraphQLQuery, variables: Optional[GraphQLVariables] = None) -> TransportResponse:
        payload: Dict[str, Any] = {"query": query, "variables": variables or {}}
        start_time = time.perf_counter()
        try:
            response = await self._client.post(self.api_url, json=payload)
        except httpx.TransportError as e:
            # Timeouts, connection resets and blocked responses have no status.
            raise TransportError(f"Network error contacting {self.api_url}: {type(e).__name__}: {e}") from e
        latency_ms = (time.perf_counter() - start_time) * 1000

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            message = _error_message(body, response.reason_phrase or "request failed")
            raise HttpError(response.status_code, message, headers=response.headers)

        if not isinstance(body, dict):
            raise DecodeError(f"Response from {self.api_url} was not a JSON object.")
        data = body.get("data")
        if not isinstance(data, dict):
            raise DecodeError(_error_message(body, "Response did not contain a data block."))
        if body.get("errors"):
            logger.warning(f"GraphQL response contained errors: {_error_message(body, 'unknown')}")

        return TransportResponse(
            data=data,
            status=response.status_code,
            headers=response.headers,
            latency_ms=latency_ms,
        )

    async def aclose(self) -> None:
        await self._client.aclose()


class HttpReachabilityProbe(ReachabilityProbe):
    """Checks general internet reachability with a HEAD request."""

    def __init__(
        self,
        url: str = DEFAULT_REACHABILITY_URL,
        timeout: float = DEFAULT_REACHABILITY_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._client = client

    async def is_reachable(self) -> bool:
        try:
            if self._client is not None:
                await self._client.head(self.url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    await client.head(self.url)
        except httpx.HTTPError as e:
            logger.debug(f"Reachability check against {self.url} failed: {e}")
            return False
        # Any response at all means the network is up.
        return True
