from __future__ import annotations

import asyncio

import pytest
from structlog.testing import capture_logs

from conftest import RecordingSleep
from rollscan.core.exceptions import ConfigurationError
from rollscan.processors.credentials import CredentialPool
from rollscan.processors.rate_governor import RateGovernor


def test_pool_requires_at_least_one_credential() -> None:
    with pytest.raises(ConfigurationError):
        CredentialPool([])
    with pytest.raises(ConfigurationError):
        CredentialPool(["", "   "])


def test_pool_index_arithmetic_is_circular() -> None:
    pool = CredentialPool(["k0-aaaaaaaa", "k1-bbbbbbbb", "k2-cccccccc"])

    assert pool.size == 3
    assert [pool.next(i) for i in range(3)] == [1, 2, 0]
    assert [pool.index_for(i) for i in range(7)] == [0, 1, 2, 0, 1, 2, 0]
    assert [slot.index for slot in pool.rotation(2)] == [2, 0, 1]
    assert pool.slot(4).credential == "k1-bbbbbbbb"


def test_pool_resolves_start_index_from_credential() -> None:
    pool = CredentialPool(["k0-aaaaaaaa", "k1-bbbbbbbb"])

    assert pool.resolve_start_index("k1-bbbbbbbb") == 1
    assert pool.resolve_start_index("unknown") == 0


def test_slots_mask_credentials() -> None:
    slot = CredentialPool(["sk-proj-1234567890abcd"]).slot(0)

    assert slot.masked == "sk-...abcd"
    assert "1234567890" not in repr(slot)


def test_governor_pauses_on_every_tenth_attempt() -> None:
    sleep = RecordingSleep()
    governor = RateGovernor(requests_before_break=10, break_duration_ms=60000, sleep=sleep)

    async def _run() -> list[bool]:
        return [await governor.before_each_attempt() for _ in range(35)]

    paused = asyncio.run(_run())

    assert [i + 1 for i, p in enumerate(paused) if p] == [10, 20, 30]
    assert sleep.calls == [60.0, 60.0, 60.0]
    assert governor.request_count == 35


def test_governor_counter_is_shared_across_concurrent_tasks() -> None:
    sleep = RecordingSleep()
    governor = RateGovernor(requests_before_break=10, break_duration_ms=1000, sleep=sleep)

    async def _run() -> list[bool]:
        return await asyncio.gather(*(governor.before_each_attempt() for _ in range(25)))

    paused = asyncio.run(_run())

    assert governor.request_count == 25
    assert sum(paused) == 2
    assert sleep.calls == [1.0, 1.0]


def test_governor_disabled_or_zero_duration() -> None:
    sleep = RecordingSleep()
    disabled = RateGovernor(requests_before_break=0, break_duration_ms=5000, sleep=sleep)
    zero = RateGovernor(requests_before_break=2, break_duration_ms=0, sleep=sleep)

    async def _run() -> tuple[list[bool], list[bool]]:
        a = [await disabled.before_each_attempt() for _ in range(5)]
        b = [await zero.before_each_attempt() for _ in range(4)]
        return a, b

    disabled_paused, zero_paused = asyncio.run(_run())

    assert not any(disabled_paused)
    assert zero_paused == [False, False, False, False]
    assert sleep.calls == []
    assert zero.request_count == 4


def test_zero_duration_throttle_logs_nothing() -> None:
    governor = RateGovernor(requests_before_break=1, break_duration_ms=0, sleep=RecordingSleep())

    async def _run() -> None:
        for _ in range(3):
            await governor.before_each_attempt()

    with capture_logs() as logs:
        asyncio.run(_run())

    assert [e for e in logs if e["event"].startswith(("Rate limit", "Break completed"))] == []


def test_real_pause_is_logged() -> None:
    governor = RateGovernor(requests_before_break=2, break_duration_ms=1500, sleep=RecordingSleep())

    async def _run() -> None:
        for _ in range(2):
            await governor.before_each_attempt()

    with capture_logs() as logs:
        asyncio.run(_run())

    pauses = [e for e in logs if e["event"] == "Rate limit reached, taking a break"]
    assert len(pauses) == 1
    assert pauses[0]["log_level"] == "warning"
    assert pauses[0]["request_count"] == 2
    assert pauses[0]["break_seconds"] == 1.5


def test_blank_entries_are_dropped_with_a_warning() -> None:
    with capture_logs() as logs:
        pool = CredentialPool(["k0-aaaaaaaa", "", "   ", "k1-bbbbbbbb"])

    assert pool.size == 2
    assert pool.dropped == 2
    assert [slot.credential for slot in pool] == ["k0-aaaaaaaa", "k1-bbbbbbbb"]
    warnings = [e for e in logs if e["log_level"] == "warning"]
    assert warnings == [
        {
            "event": "Blank API keys ignored",
            "dropped": 2,
            "configured": 4,
            "count": 2,
            "log_level": "warning",
        }
    ]


def test_clean_list_logs_no_warning() -> None:
    with capture_logs() as logs:
        pool = CredentialPool(["k0-aaaaaaaa", "k1-bbbbbbbb"])

    assert pool.dropped == 0
    assert not [e for e in logs if e["log_level"] == "warning"]
