import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

FetchCount = Callable[[str], Awaitable[int]]


class NonceAcquisitionTimeout(Exception):
    """
    Raised when a caller could not get the per-identity lock in time.
    Nothing was submitted; the caller must not send a transaction.
    """
    def __init__(self, identity: str, timeout_sec: float):
        super().__init__(f"timed out after {timeout_sec}s waiting for nonce of {identity}")
        self.identity = identity
        self.timeout_sec = timeout_sec


class NonceCoordinator:
    """
    Hands out collision-free nonces for executor identities shared by
    concurrent trade/close operations.

    - Per identity, acquisition is serialized by an asyncio.Lock (other
      identities are not blocked).
    - First acquisition reads the chain's pending transaction count.
    - Later acquisitions return max(cached + 1, on-chain count), so
      transactions sent from elsewhere advance us instead of colliding.
    - release_unused() rolls back a nonce that was never broadcast.
    """

    def __init__(
        self,
        fetch_count: FetchCount,
        acquire_timeout_sec: float = 30.0,
        logger: Optional[logging.Logger] = None,
    ):
        self._fetch_count = fetch_count
        self._timeout = acquire_timeout_sec
        self._logger = logger or logging.getLogger(self.__class__.__name__)
        self._locks: Dict[str, asyncio.Lock] = {}
        self._last_issued: Dict[str, int] = {}

    @staticmethod
    def _key(identity: str) -> str:
        return identity.lower()

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def acquire(self, identity: str) -> int:
        key = self._key(identity)
        lock = self._lock_for(key)

        try:
            await asyncio.wait_for(lock.acquire(), timeout=self._timeout)
        except asyncio.TimeoutError:
            raise NonceAcquisitionTimeout(identity, self._timeout)

        try:
            on_chain = int(await self._fetch_count(identity))
            cached = self._last_issued.get(key)
            if cached is None:
                nonce = on_chain
            else:
                nonce = max(cached + 1, on_chain)
            self._last_issued[key] = nonce
            self._logger.debug("nonce %s issued for %s (on-chain=%s cached=%s)", nonce, identity, on_chain, cached)
            return nonce
        finally:
            lock.release()

    async def release_unused(self, identity: str, nonce: int) -> None:
        """
        Give back a nonce whose transaction never reached the network.
        Only the most recently issued nonce can be rolled back.
        """
        key = self._key(identity)
        lock = self._lock_for(key)
        async with lock:
            if self._last_issued.get(key) == nonce:
                if nonce == 0:
                    self._last_issued.pop(key, None)
                else:
                    self._last_issued[key] = nonce - 1
                self._logger.info("nonce %s released for %s", nonce, identity)

    def forget(self, identity: str) -> None:
        """
        Drop the cached nonce so the next acquire starts from the on-chain
        pending count. Used after a broadcast tx was dropped and left a gap.
        """
        if self._last_issued.pop(self._key(identity), None) is not None:
            self._logger.info("cached nonce dropped for %s", identity)

    def reset(self, identity: Optional[str] = None) -> None:
        if identity is None:
            self._last_issued.clear()
            self._locks.clear()
            return
        key = self._key(identity)
        self._last_issued.pop(key, None)
        self._locks.pop(key, None)

    def last_issued(self, identity: str) -> Optional[int]:
        return self._last_issued.get(self._key(identity))
