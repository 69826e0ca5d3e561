"""
Request coalescing.

Concurrent calls with the same key share one in-flight computation: the first
caller runs it, later callers await the same future. The key is released as
soon as the computation finishes, so later calls recompute (or hit the cache).
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable

logger = logging.getLogger(__name__)


class SingleFlight:
    def __init__(self):
        self._inflight: Dict[Hashable, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._inflight)

    async def do(self, key: Hashable, fn: Callable[[], Awaitable[Any]]) -> Any:
        existing = self._inflight.get(key)
        if existing is not None:
            logger.debug(f"Joining in-flight computation for {key}")
            # shield: a cancelled follower must not cancel the leader's work
            return await asyncio.shield(existing)

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._inflight[key] = future
        try:
            result = await fn()
        except BaseException as e:
            if not future.done():
                if isinstance(e, asyncio.CancelledError):
                    future.cancel()
                else:
                    future.set_exception(e)
                    # Mark retrieved so an unjoined failure is not reported as never retrieved
                    future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._inflight.pop(key, None)
