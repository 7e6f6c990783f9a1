"""Adaptive rate governor for the AniList API.

Tracks a per-minute request budget and an optional pause window, and turns
the many ways AniList signals throttling into one `ThrottlingError`.

The governor is advisory: it never blocks a call. Every call is attempted and
only an actual (or heuristically detected) 429 stops the caller. Budget state
exists so that callers and the UI can back off proactively if they want to.

Two quirks of the upstream service shape this module:

* The `x-ratelimit-remaining` header is computed against an advertised limit
  of 90/min while 30/min is enforced, so the header is corrected by a fixed
  offset before use.
* Some 429 responses arrive without CORS headers and surface as bare
  network errors. While a burst is in progress and the network is otherwise
  reachable, such errors are reinterpreted as throttling.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from aniq.domain.errors import HttpError, ThrottlingError, TransportError
from aniq.domain.interfaces.reachability import ReachabilityProbe
from aniq.domain.models.common import ResponseHeaders

logger = logging.getLogger(__name__)

# AniList advertises 90 requests/minute but currently enforces 30.
DEFAULT_MAX_PER_MINUTE = 30
DEFAULT_LOW_WATER_MARK = 6
DEFAULT_WINDOW_SECONDS = 60
DEFAULT_REMAINING_HEADER_OFFSET = 60
DEFAULT_RESET_BUFFER_SECONDS = 0.1
DEFAULT_RETRY_AFTER_SECONDS = 60

REMAINING_HEADER = "x-ratelimit-remaining"
RESET_HEADER = "x-ratelimit-reset"
RETRY_AFTER_HEADER = "retry-after"


@dataclass
class RateState:
    """Mutable budget state. Only the governor touches it."""
    remaining: Optional[int]
    window_start: Optional[float] = None
    pause_until: Optional[float] = None


@dataclass(frozen=True)
class GovernorStatus:
    """Read-only snapshot for display."""
    remaining: Optional[int]
    pause_until: Optional[float]

    @property
    def is_paused(self) -> bool:
        return self.pause_until is not None


def _read_header(headers: ResponseHeaders, name: str) -> Optional[str]:
    value = headers.get(name)
    if value is not None:
        return value
    # Plain dicts are case-sensitive; httpx.Headers is not.
    for key, candidate in headers.items():
        if key.lower() == name:
            return candidate
    return None


def _read_int_header(headers: ResponseHeaders, name: str) -> Optional[int]:
    raw = _read_header(headers, name)
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        logger.warning(f"Ignoring malformed {name} header: {raw!r}")
        return None


class RateGovernor:
    """Owns the process-wide request budget.

    All state changes go through the public operations below and happen
    under a lock, so concurrent fetchers never lose an update. Budget resets
    are scheduled as cancellable callbacks on the running event loop; their
    deadlines are also recorded so that a timer that never fires (no loop,
    loop closed) is applied lazily on the next interaction.
    """

    def __init__(
        self,
        max_per_minute: int = DEFAULT_MAX_PER_MINUTE,
        low_water_mark: int = DEFAULT_LOW_WATER_MARK,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        remaining_header_offset: int = DEFAULT_REMAINING_HEADER_OFFSET,
        reset_buffer_seconds: float = DEFAULT_RESET_BUFFER_SECONDS,
        reachability_probe: Optional[ReachabilityProbe] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initializes the governor with a full budget.

        Args:
            max_per_minute: Requests the server actually allows per window.
            low_water_mark: Remaining count at which callers may back off.
            window_seconds: Length of the server's rate window.
            remaining_header_offset: Subtracted from the remaining header.
            reset_buffer_seconds: Safety margin added to pause timers.
            reachability_probe: Used to disambiguate transport failures.
            clock: Wall-clock source in epoch seconds (injectable for tests).
        """
        if max_per_minute <= 0 or window_seconds <= 0:
            raise ValueError("Max requests and window must be positive.")

        self.max_per_minute = max_per_minute
        self.low_water_mark = low_water_mark
        self.window_seconds = window_seconds
        self.remaining_header_offset = remaining_header_offset
        self.reset_buffer_seconds = reset_buffer_seconds
        self.reachability_probe = reachability_probe
        self._clock = clock

        self._state = RateState(remaining=max_per_minute)
        self._lock = threading.Lock()
        self._fallback_reset_at: Optional[float] = None
        self._fallback_handle: Optional[asyncio.TimerHandle] = None
        self._pause_handle: Optional[asyncio.TimerHandle] = None
        logger.info(f"RateGovernor initialized: {max_per_minute} requests / {window_seconds} seconds")

    # --- Public operations ---

    def on_attempt_start(self) -> None:
        """Marks the start of a burst window when the budget is full."""
        with self._lock:
            self._apply_expired_locked()
            if self._state.remaining == self.max_per_minute:
                self._state.window_start = self._clock()
                logger.debug(f"Starting new burst window at {self._state.window_start:.0f}")

    def on_success(self, headers: ResponseHeaders) -> None:
        """Updates the budget from response headers, then counts the call."""
        with self._lock:
            self._apply_expired_locked()
            header_remaining = _read_int_header(headers, REMAINING_HEADER)
            if header_remaining is not None:
                self._state.remaining = max(0, header_remaining - self.remaining_header_offset)
                logger.debug(
                    f"Updated remaining requests: {self._state.remaining} (Header: {header_remaining})"
                )

            self._cancel_fallback_locked()
            if self._state.pause_until is None:
                self._fallback_reset_at = self._clock() + self.window_seconds
                self._fallback_handle = self._schedule(self.window_seconds, self._fire_fallback_reset)

            if self._state.remaining is not None:
                self._state.remaining = max(0, self._state.remaining - 1)
                logger.debug(f"Decremented remaining count: {self._state.remaining}")

    def on_throttled(self, retry_after_seconds: int, reset_timestamp: int) -> ThrottlingError:
        """Enters a pause window and returns the signal to raise upward."""
        with self._lock:
            self._state.pause_until = self._clock() + retry_after_seconds
            self._cancel_fallback_locked()
            self._cancel_pause_locked()
            self._pause_handle = self._schedule(
                retry_after_seconds + self.reset_buffer_seconds, self._fire_pause_end
            )
        logger.warning(f"Rate limit pause for {retry_after_seconds}s (reset at {reset_timestamp})")
        return ThrottlingError(retry_after_seconds, reset_timestamp)

    async def classify_failure(self, error: Exception) -> Exception:
        """Decides whether a failed call was throttled.

        Returns:
            A `ThrottlingError` (pause already applied) when the failure is
            throttling, otherwise the original error unchanged.
        """
        if isinstance(error, HttpError):
            if error.status == 429:
                retry_seconds, reset_timestamp = self._retry_window_from_headers(error.headers)
                logger.debug(f"Received 429. Waiting for {retry_seconds}s (reset at {reset_timestamp})")
                return self.on_throttled(retry_seconds, reset_timestamp)
            return error

        if isinstance(error, TransportError):
            with self._lock:
                window_start = self._state.window_start
                bursting = self._state.remaining is not None and window_start is not None
            if not bursting:
                return error
            if self.reachability_probe is not None and await self.reachability_probe.is_reachable():
                reset_timestamp = int(window_start + self.window_seconds)
                retry_seconds = max(1, reset_timestamp - int(self._clock()))
                logger.warning(
                    f"Network error during a burst while the internet is reachable; "
                    f"treating as a blocked 429 and pausing for {retry_seconds}s."
                )
                error_signal = self.on_throttled(retry_seconds, reset_timestamp)
                error_signal.__cause__ = error
                return error_signal
            logger.warning("Network error and reachability check failed; not treating as rate limit.")
            return error

        return error

    def status(self) -> GovernorStatus:
        with self._lock:
            self._apply_expired_locked()
            return GovernorStatus(remaining=self._state.remaining, pause_until=self._state.pause_until)

    def is_low(self) -> bool:
        """True when the remaining budget is at or under the low-water mark."""
        snapshot = self.status()
        return snapshot.remaining is not None and snapshot.remaining <= self.low_water_mark

    def cancel_timers(self) -> None:
        """Cancels pending reset callbacks; deadlines still apply lazily."""
        with self._lock:
            self._cancel_fallback_locked(keep_deadline=True)
            self._cancel_pause_locked()

    # --- Internals ---

    def _retry_window_from_headers(self, headers: ResponseHeaders) -> Tuple[int, int]:
        now = int(self._clock())
        reset_timestamp = _read_int_header(headers, RESET_HEADER)
        if reset_timestamp is not None:
            return max(1, reset_timestamp - now), reset_timestamp
        retry_seconds = _read_int_header(headers, RETRY_AFTER_HEADER)
        if retry_seconds is None:
            retry_seconds = DEFAULT_RETRY_AFTER_SECONDS
        return retry_seconds, now + retry_seconds

    def _schedule(self, delay: float, callback: Callable[[], None]) -> Optional[asyncio.TimerHandle]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; budget reset will be applied lazily.")
            return None
        return loop.call_later(delay, callback)

    def _cancel_fallback_locked(self, keep_deadline: bool = False) -> None:
        if self._fallback_handle is not None:
            self._fallback_handle.cancel()
            self._fallback_handle = None
        if not keep_deadline:
            self._fallback_reset_at = None

    def _cancel_pause_locked(self) -> None:
        if self._pause_handle is not None:
            self._pause_handle.cancel()
            self._pause_handle = None

    def _restore_budget_locked(self) -> None:
        self._state.remaining = self.max_per_minute
        self._state.window_start = None

    def _apply_expired_locked(self) -> None:
        now = self._clock()
        pause_until = self._state.pause_until
        if pause_until is not None and now >= pause_until + self.reset_buffer_seconds:
            logger.info("Rate limit pause elapsed; budget restored.")
            self._state.pause_until = None
            self._restore_budget_locked()
            self._cancel_pause_locked()
        if self._fallback_reset_at is not None and now >= self._fallback_reset_at:
            self._restore_budget_locked()
            self._cancel_fallback_locked()

    def _fire_fallback_reset(self) -> None:
        with self._lock:
            self._fallback_handle = None
            self._fallback_reset_at = None
            if self._state.pause_until is None:
                logger.debug(f"Resetting request count after {self.window_seconds}s timer.")
                self._restore_budget_locked()

    def _fire_pause_end(self) -> None:
        with self._lock:
            self._pause_handle = None
            self._state.pause_until = None
            self._restore_budget_locked()
        logger.info("Rate limit pause ended; budget restored.")
