"""Single chokepoint for every outbound API call.

Wraps the GraphQL transport with the rate governor: marks burst windows,
feeds response headers back into the budget and converts throttling
failures into `ThrottlingError`. Nothing is retried here; retry policy
belongs to the question assembler.
"""

import logging
import time
from typing import Any, Dict, Optional

from aniq.domain.errors import ThrottlingError
from aniq.domain.events.api_events import (
    ApiCallFailed,
    ApiCallInitiated,
    ApiCallSucceeded,
    ApiCallThrottled,
    dispatch_event,
)
from aniq.domain.interfaces.transport import GraphQLTransport
from aniq.domain.models.common import GraphQLQuery, GraphQLVariables
from aniq.infrastructure.resilience.rate_governor import RateGovernor

logger = logging.getLogger(__name__)


class RequestExecutor:
    """Runs GraphQL operations through the rate governor."""

    def __init__(self, transport: GraphQLTransport, governor: RateGovernor):
        self.transport = transport
        self.governor = governor

    async def execute(
        self,
        operation: str,
        query: GraphQLQuery,
        variables: Optional[GraphQLVariables] = None,
    ) -> Dict[str, Any]:
        """Executes one operation and returns the decoded `data` block.

        Args:
            operation: Operation name, used for logging and events.
            query: GraphQL document.
            variables: GraphQL variables.

        Raises:
            ThrottlingError: The governor classified the failure as throttling.
            Exception: Any other failure, propagated unchanged.
        """
        # Always attempt the request, even inside a pause window.
        self.governor.on_attempt_start()
        remaining = self.governor.status().remaining
        logger.debug(f"Making {operation} request. Remaining estimate: {remaining}")
        dispatch_event(ApiCallInitiated(operation=operation, remaining_estimate=remaining))

        start_time = time.perf_counter()
        try:
            response = await self.transport.request(query, variables)
        except Exception as e:
            classified = await self.governor.classify_failure(e)
            if isinstance(classified, ThrottlingError):
                dispatch_event(ApiCallThrottled(
                    operation=operation,
                    retry_after_seconds=classified.retry_after_seconds,
                    reset_timestamp=classified.reset_timestamp,
                ))
                raise classified from e
            logger.warning(f"{operation} failed: {type(e).__name__}: {e}")
            dispatch_event(ApiCallFailed(operation=operation, error_type=type(e).__name__, error_message=str(e)))
            raise

        latency_ms = response.latency_ms
        if latency_ms is None:
            latency_ms = (time.perf_counter() - start_time) * 1000
        self.governor.on_success(response.headers)
        dispatch_event(ApiCallSucceeded(
            operation=operation,
            latency_ms=latency_ms,
            remaining_estimate=self.governor.status().remaining,
        ))
        return response.data
