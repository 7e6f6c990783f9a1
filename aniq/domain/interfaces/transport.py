"""Interface for the network transport that talks to the GraphQL endpoint.

The transport knows nothing about rate limiting. It returns decoded payloads
plus response metadata, or raises from the `aniq.domain.errors` taxonomy
(`HttpError`, `TransportError`, `DecodeError`).
"""

import abc
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..models.common import GraphQLQuery, GraphQLVariables, ResponseHeaders


@dataclass
class TransportResponse:
    """Decoded `data` block of a GraphQL response plus HTTP metadata."""
    data: Dict[str, Any]
    status: int = 200
    headers: ResponseHeaders = field(default_factory=dict)
    latency_ms: Optional[float] = None


class GraphQLTransport(abc.ABC):
    """Abstract Base Class for issuing GraphQL requests."""

    @abc.abstractmethod
    async def request(self, query: GraphQLQuery, variables: Optional[GraphQLVariables] = None) -> TransportResponse:
        """Sends one GraphQL request.

        Raises:
            HttpError: Non-success status; carries status and headers.
            TransportError: No HTTP status was obtained.
            DecodeError: The body was not a GraphQL response.
        """
        pass

    async def aclose(self) -> None:
        """Releases network resources."""
        pass
