"""Interface for the lightweight network reachability check.

Used only to tell a genuine outage apart from a throttling response that
reached us disguised as a network error.
"""

import abc


class ReachabilityProbe(abc.ABC):

    @abc.abstractmethod
    async def is_reachable(self) -> bool:
        """Best-effort check; must not raise."""
        pass
