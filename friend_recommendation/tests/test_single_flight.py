"""
Tests for request coalescing.
"""

import asyncio

import pytest

from friend_recommendation.logic.single_flight import SingleFlight


def test_concurrent_calls_share_one_computation():
    calls = []

    async def scenario():
        flight = SingleFlight()

        async def compute():
            calls.append(1)
            await asyncio.sleep(0.01)
            return {"value": 42}

        results = await asyncio.gather(*(flight.do("k", compute) for _ in range(5)))
        return flight, results

    flight, results = asyncio.run(scenario())

    assert len(calls) == 1
    assert all(r == {"value": 42} for r in results)
    assert len(flight) == 0


def test_different_keys_run_separately():
    calls = []

    async def scenario():
        flight = SingleFlight()

        async def compute(key):
            calls.append(key)
            await asyncio.sleep(0)
            return key

        return await asyncio.gather(flight.do("a", lambda: compute("a")), flight.do("b", lambda: compute("b")))

    assert asyncio.run(scenario()) == ["a", "b"]
    assert sorted(calls) == ["a", "b"]


def test_failure_reaches_every_waiter_and_releases_key():
    async def scenario():
        flight = SingleFlight()

        async def compute():
            await asyncio.sleep(0.01)
            raise RuntimeError("boom")

        results = await asyncio.gather(*(flight.do("k", compute) for _ in range(3)), return_exceptions=True)
        return flight, results

    flight, results = asyncio.run(scenario())

    assert all(isinstance(r, RuntimeError) for r in results)
    assert len(flight) == 0


def test_sequential_calls_recompute():
    calls = []

    async def scenario():
        flight = SingleFlight()

        async def compute():
            calls.append(1)
            return len(calls)

        first = await flight.do("k", compute)
        second = await flight.do("k", compute)
        return first, second

    assert asyncio.run(scenario()) == (1, 2)


def test_cancelled_follower_does_not_cancel_leader():
    async def scenario():
        flight = SingleFlight()

        async def compute():
            await asyncio.sleep(0.02)
            return "done"

        leader = asyncio.ensure_future(flight.do("k", compute))
        await asyncio.sleep(0)
        follower = asyncio.ensure_future(flight.do("k", compute))
        await asyncio.sleep(0)
        follower.cancel()
        with pytest.raises(asyncio.CancelledError):
            await follower
        return await leader

    assert asyncio.run(scenario()) == "done"
