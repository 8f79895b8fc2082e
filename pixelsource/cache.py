from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Hashable
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterator

    from pixelsource.abort import AbortSignal

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


class RequestCache(Generic[K, T]):
    """
    Memoises asynchronous requests by key.

    The first caller of a key starts the request; every later caller awaits the same
    future, so at most one request per key is ever in flight. Results are kept for
    the lifetime of the cache. A request that fails is forgotten so that it can be
    retried, and so is one whose starting caller aborted it while in flight.

    Waiters are shielded from each other: cancelling one awaiting task does not
    cancel the shared request.
    """

    def __init__(self) -> None:
        self._futures: dict[K, asyncio.Future[T]] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._futures

    def __len__(self) -> int:
        return len(self._futures)

    def __iter__(self) -> Iterator[K]:
        return iter(self._futures)

    def keys(self) -> list[K]:
        return list(self._futures)

    async def get(
        self,
        key: K,
        factory: Callable[[], Awaitable[T]],
        signal: AbortSignal | None = None,
    ) -> T:
        """
        Return the result of the request for ``key``, starting it if needed.

        ``signal`` belongs to the caller starting the request: if it has been aborted
        by the time the request completes, the result is handed to current waiters but
        not kept.
        """
        future = self._futures.get(key)
        if future is None:
            logger.debug("get: key %s not found in cache, starting request", key)
            future = asyncio.ensure_future(factory())
            future.add_done_callback(functools.partial(self._discard_unused, key, signal))
            self._futures[key] = future
        else:
            logger.debug("get: key %s found in cache", key)
        return await asyncio.shield(future)

    def _discard_unused(
        self, key: K, signal: AbortSignal | None, future: asyncio.Future[T]
    ) -> None:
        failed = future.cancelled() or future.exception() is not None
        aborted = signal is not None and signal.aborted
        if (failed or aborted) and self._futures.get(key) is future:
            logger.debug("_discard_unused: dropping request for key %s", key)
            del self._futures[key]
