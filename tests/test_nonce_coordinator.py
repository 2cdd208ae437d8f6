"""Tests for per-identity nonce allocation."""

from __future__ import annotations

import asyncio

import pytest

from agent_executor.core.services.nonce_coordinator import NonceAcquisitionTimeout, NonceCoordinator

EXECUTOR = "0xAbCdEf0000000000000000000000000000000001"


class ChainCounter:
    """Pending transaction count per address, as the node would report it."""

    def __init__(self, start: int = 0):
        self.count = start
        self.calls = 0

    async def __call__(self, address: str) -> int:
        self.calls += 1
        await asyncio.sleep(0)
        return self.count


class TestAcquire:
    def test_first_use_returns_on_chain_count(self) -> None:
        chain = ChainCounter(start=7)
        nonces = NonceCoordinator(chain)
        assert asyncio.run(nonces.acquire(EXECUTOR)) == 7

    def test_subsequent_use_increments_cached(self) -> None:
        chain = ChainCounter(start=7)
        nonces = NonceCoordinator(chain)

        async def run():
            return [await nonces.acquire(EXECUTOR) for _ in range(3)]

        assert asyncio.run(run()) == [7, 8, 9]

    def test_on_chain_count_ahead_of_cache_wins(self) -> None:
        chain = ChainCounter(start=3)
        nonces = NonceCoordinator(chain)

        async def run():
            first = await nonces.acquire(EXECUTOR)
            chain.count = 10  # transactions sent from another process
            return first, await nonces.acquire(EXECUTOR)

        assert asyncio.run(run()) == (3, 10)

    def test_concurrent_acquisitions_are_unique_and_contiguous(self) -> None:
        chain = ChainCounter(start=5)
        nonces = NonceCoordinator(chain)

        async def run():
            return await asyncio.gather(*(nonces.acquire(EXECUTOR) for _ in range(20)))

        issued = asyncio.run(run())
        assert sorted(issued) == list(range(5, 25))

    def test_identity_is_case_insensitive(self) -> None:
        nonces = NonceCoordinator(ChainCounter(start=1))

        async def run():
            a = await nonces.acquire(EXECUTOR)
            b = await nonces.acquire(EXECUTOR.lower())
            return a, b

        assert asyncio.run(run()) == (1, 2)

    def test_identities_are_independent(self) -> None:
        nonces = NonceCoordinator(ChainCounter(start=4))
        other = "0x" + "9" * 40

        async def run():
            return await nonces.acquire(EXECUTOR), await nonces.acquire(other)

        assert asyncio.run(run()) == (4, 4)

    def test_timeout_when_lock_is_held(self) -> None:
        nonces = NonceCoordinator(ChainCounter(), acquire_timeout_sec=0.01)

        async def run():
            lock = nonces._lock_for(EXECUTOR.lower())
            await lock.acquire()
            try:
                await nonces.acquire(EXECUTOR)
            finally:
                lock.release()

        with pytest.raises(NonceAcquisitionTimeout):
            asyncio.run(run())


class TestReleaseAndReset:
    def test_release_rolls_back_last_issued(self) -> None:
        nonces = NonceCoordinator(ChainCounter(start=7))

        async def run():
            await nonces.acquire(EXECUTOR)
            n = await nonces.acquire(EXECUTOR)
            await nonces.release_unused(EXECUTOR, n)
            return await nonces.acquire(EXECUTOR)

        assert asyncio.run(run()) == 8

    def test_release_of_older_nonce_is_ignored(self) -> None:
        nonces = NonceCoordinator(ChainCounter(start=7))

        async def run():
            first = await nonces.acquire(EXECUTOR)
            await nonces.acquire(EXECUTOR)
            await nonces.release_unused(EXECUTOR, first)
            return nonces.last_issued(EXECUTOR)

        assert asyncio.run(run()) == 8

    def test_release_of_nonce_zero_forgets_identity(self) -> None:
        nonces = NonceCoordinator(ChainCounter(start=0))

        async def run():
            n = await nonces.acquire(EXECUTOR)
            await nonces.release_unused(EXECUTOR, n)
            return nonces.last_issued(EXECUTOR)

        assert asyncio.run(run()) is None

    def test_reset_refetches_from_chain(self) -> None:
        chain = ChainCounter(start=2)
        nonces = NonceCoordinator(chain)

        async def run():
            await nonces.acquire(EXECUTOR)
            await nonces.acquire(EXECUTOR)
            nonces.reset(EXECUTOR)
            chain.count = 2
            return await nonces.acquire(EXECUTOR)

        assert asyncio.run(run()) == 2

    def test_forget_restarts_from_pending_count(self) -> None:
        chain = ChainCounter(start=5)
        nonces = NonceCoordinator(chain)

        async def run():
            await nonces.acquire(EXECUTOR)
            await nonces.acquire(EXECUTOR)  # 6 was dropped from the mempool
            nonces.forget(EXECUTOR)
            chain.count = 6
            return await nonces.acquire(EXECUTOR)

        assert asyncio.run(run()) == 6
