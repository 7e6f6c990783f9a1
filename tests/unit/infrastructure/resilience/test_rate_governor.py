import asyncio
import random
import threading
import time

import pytest

from aniq.domain.errors import DecodeError, HttpError, ThrottlingError, TransportError
from aniq.infrastructure.resilience.rate_governor import RateGovernor


@pytest.fixture
def governor(fake_clock, reachable_probe):
    return RateGovernor(reachability_probe=reachable_probe, clock=fake_clock)


# --- Budget bookkeeping ---

def test_starts_with_full_budget(governor: RateGovernor):
    snapshot = governor.status()
    assert snapshot.remaining == 30
    assert snapshot.pause_until is None
    assert not snapshot.is_paused


def test_success_applies_header_offset_then_counts_the_call(governor: RateGovernor):
    governor.on_success({"x-ratelimit-remaining": "89"})
    # 89 - 60 = 29, minus this call
    assert governor.status().remaining == 28


def test_header_lookup_is_case_insensitive(governor: RateGovernor):
    governor.on_success({"X-RateLimit-Remaining": "70"})
    assert governor.status().remaining == 9


@pytest.mark.parametrize("header_value", ["10", "60", "61", "0"])
def test_remaining_never_negative(governor: RateGovernor, header_value: str):
    for _ in range(3):
        governor.on_success({"x-ratelimit-remaining": header_value})
        assert governor.status().remaining >= 0


def test_success_without_header_just_decrements(governor: RateGovernor):
    governor.on_success({})
    governor.on_success({})
    assert governor.status().remaining == 28


def test_malformed_header_is_ignored(governor: RateGovernor):
    governor.on_success({"x-ratelimit-remaining": "lots"})
    assert governor.status().remaining == 29


def test_is_low_at_low_water_mark(governor: RateGovernor):
    governor.on_success({"x-ratelimit-remaining": "67"})  # 7, then 6
    assert governor.is_low()


def test_fallback_reset_restores_budget_after_window(governor: RateGovernor, fake_clock):
    governor.on_success({"x-ratelimit-remaining": "65"})
    assert governor.status().remaining == 4

    fake_clock.advance(59)
    assert governor.status().remaining == 4
    fake_clock.advance(1)
    assert governor.status().remaining == 30


def test_attempt_start_marks_window_only_when_budget_full(governor: RateGovernor, fake_clock):
    governor.on_attempt_start()
    started = governor._state.window_start
    assert started == fake_clock.now

    governor.on_success({})
    fake_clock.advance(5)
    governor.on_attempt_start()
    assert governor._state.window_start == started


# --- Throttling classification ---

@pytest.mark.asyncio
async def test_429_uses_reset_header_exactly(governor: RateGovernor, fake_clock):
    now = int(fake_clock.now)
    error = HttpError(429, "Too Many Requests", headers={"x-ratelimit-reset": str(now + 30)})

    result = await governor.classify_failure(error)

    assert isinstance(result, ThrottlingError)
    assert result.retry_after_seconds == 30
    assert result.reset_timestamp == now + 30
    assert governor.status().pause_until == fake_clock.now + 30


@pytest.mark.asyncio
async def test_429_reset_in_the_past_waits_at_least_one_second(governor: RateGovernor, fake_clock):
    now = int(fake_clock.now)
    error = HttpError(429, "Too Many Requests", headers={"x-ratelimit-reset": str(now - 5)})

    result = await governor.classify_failure(error)

    assert result.retry_after_seconds == 1
    assert result.reset_timestamp == now - 5


@pytest.mark.asyncio
async def test_429_falls_back_to_retry_after(governor: RateGovernor, fake_clock):
    now = int(fake_clock.now)
    result = await governor.classify_failure(HttpError(429, "slow down", headers={"Retry-After": "45"}))

    assert isinstance(result, ThrottlingError)
    assert result.retry_after_seconds == 45
    assert result.reset_timestamp == now + 45


@pytest.mark.asyncio
async def test_429_without_headers_defaults_to_sixty_seconds(governor: RateGovernor, fake_clock):
    result = await governor.classify_failure(HttpError(429, "slow down"))

    assert isinstance(result, ThrottlingError)
    assert result.retry_after_seconds == 60
    assert result.reset_timestamp == int(fake_clock.now) + 60


@pytest.mark.asyncio
async def test_pause_lasts_until_retry_plus_buffer(governor: RateGovernor, fake_clock):
    await governor.classify_failure(HttpError(429, "slow down", headers={"retry-after": "30"}))

    fake_clock.advance(30)
    assert governor.status().is_paused

    fake_clock.advance(0.2)
    snapshot = governor.status()
    assert not snapshot.is_paused
    assert snapshot.remaining == 30


@pytest.mark.asyncio
async def test_other_http_errors_pass_through_unchanged(governor: RateGovernor):
    error = HttpError(500, "Internal Server Error")
    assert await governor.classify_failure(error) is error
    assert not governor.status().is_paused


@pytest.mark.asyncio
async def test_network_error_during_burst_is_treated_as_throttling(governor: RateGovernor, fake_clock, reachable_probe):
    governor.on_attempt_start()
    window_start = fake_clock.now
    fake_clock.advance(20)

    result = await governor.classify_failure(TransportError("Failed to fetch"))

    assert isinstance(result, ThrottlingError)
    assert result.reset_timestamp == int(window_start + 60)
    assert result.retry_after_seconds == 40
    assert isinstance(result.__cause__, TransportError)
    assert reachable_probe.calls == 1
    assert governor.status().is_paused


@pytest.mark.asyncio
async def test_network_error_while_offline_is_propagated(fake_clock, unreachable_probe):
    governor = RateGovernor(reachability_probe=unreachable_probe, clock=fake_clock)
    governor.on_attempt_start()
    error = TransportError("Failed to fetch")

    assert await governor.classify_failure(error) is error
    assert unreachable_probe.calls == 1
    assert not governor.status().is_paused


@pytest.mark.asyncio
async def test_network_error_outside_burst_skips_probe(governor: RateGovernor, reachable_probe):
    error = TransportError("Failed to fetch")

    assert await governor.classify_failure(error) is error
    assert reachable_probe.calls == 0


@pytest.mark.asyncio
async def test_network_error_without_probe_is_propagated(fake_clock):
    governor = RateGovernor(clock=fake_clock)
    governor.on_attempt_start()
    error = TransportError("Failed to fetch")

    assert await governor.classify_failure(error) is error


@pytest.mark.asyncio
async def test_unrelated_errors_pass_through(governor: RateGovernor):
    error = DecodeError("bad shape")
    assert await governor.classify_failure(error) is error


def test_success_during_pause_keeps_pause(governor: RateGovernor, fake_clock):
    governor.on_throttled(30, int(fake_clock.now) + 30)
    governor.on_success({"x-ratelimit-remaining": "80"})

    snapshot = governor.status()
    assert snapshot.is_paused
    assert snapshot.remaining == 19


# --- Timers on a running loop ---

@pytest.mark.asyncio
async def test_new_fallback_timer_replaces_pending_one():
    governor = RateGovernor()
    governor.on_success({})
    first = governor._fallback_handle
    governor.on_success({})

    assert first is not None and first.cancelled()
    assert governor._fallback_handle is not first
    governor.cancel_timers()


@pytest.mark.asyncio
async def test_pause_timer_restores_budget_when_it_fires():
    governor = RateGovernor(reset_buffer_seconds=0.01, clock=time.time)
    governor.on_success({"x-ratelimit-remaining": "61"})
    governor.on_throttled(0, int(time.time()))
    assert governor._pause_handle is not None

    await asyncio.sleep(0.05)

    assert governor._pause_handle is None
    assert governor._state.pause_until is None
    assert governor._state.remaining == 30


@pytest.mark.asyncio
async def test_throttle_cancels_pending_fallback_timer(governor: RateGovernor, fake_clock):
    governor.on_success({})
    fallback = governor._fallback_handle
    governor.on_throttled(10, int(fake_clock.now) + 10)

    assert fallback.cancelled()
    governor.cancel_timers()


def test_rejects_non_positive_budget():
    with pytest.raises(ValueError):
        RateGovernor(max_per_minute=0)


# --- Concurrent and arbitrary call sequences ---

@pytest.mark.parametrize("max_per_minute", [30, 10_000])
def test_concurrent_successes_lose_no_updates(fake_clock, max_per_minute: int):
    governor = RateGovernor(max_per_minute=max_per_minute, clock=fake_clock)
    thread_count, calls_per_thread = 8, 250
    start = threading.Barrier(thread_count)

    def worker():
        start.wait()
        for _ in range(calls_per_thread):
            governor.on_success({})

    threads = [threading.Thread(target=worker) for _ in range(thread_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert governor.status().remaining == max(0, max_per_minute - thread_count * calls_per_thread)


def test_concurrent_successes_and_throttles_keep_budget_valid(fake_clock):
    governor = RateGovernor(clock=fake_clock)
    start = threading.Barrier(6)
    errors = []

    def succeed():
        start.wait()
        for n in range(200):
            governor.on_success({"x-ratelimit-remaining": str(90 - n % 91)})

    def throttle():
        start.wait()
        for _ in range(200):
            errors.append(governor.on_throttled(45, int(fake_clock()) + 45))

    threads = [threading.Thread(target=succeed) for _ in range(4)]
    threads += [threading.Thread(target=throttle) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    snapshot = governor.status()
    assert snapshot.remaining is not None and snapshot.remaining >= 0
    assert snapshot.pause_until == fake_clock() + 45
    assert len(errors) == 400
    assert all(isinstance(e, ThrottlingError) for e in errors)


@pytest.mark.parametrize("seed", range(5))
def test_remaining_never_negative_for_any_call_sequence(fake_clock, seed: int):
    rng = random.Random(seed)
    governor = RateGovernor(clock=fake_clock)
    header_choices = [
        {},
        {"x-ratelimit-remaining": "0"},
        {"x-ratelimit-remaining": "30"},
        {"x-ratelimit-remaining": "59"},
        {"x-ratelimit-remaining": "60"},
        {"x-ratelimit-remaining": "61"},
        {"x-ratelimit-remaining": "89"},
        {"x-ratelimit-remaining": "-5"},
        {"x-ratelimit-remaining": "junk"},
    ]

    for _ in range(300):
        step = rng.random()
        if step < 0.6:
            governor.on_attempt_start()
            governor.on_success(rng.choice(header_choices))
        elif step < 0.75:
            retry_after = rng.randint(1, 90)
            governor.on_throttled(retry_after, int(fake_clock()) + retry_after)
        else:
            fake_clock.advance(rng.uniform(0, 70))

        remaining = governor.status().remaining
        assert remaining is not None and remaining >= 0
