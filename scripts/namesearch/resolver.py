"""Batched, throttled profile resolution.

Names are resolved in fixed-size batches. Lookups inside a batch run
concurrently, each raced against a timeout; batches run one after another
with a configurable pause between them to bound the request rate against the
directory service.

Synchronous lookups run on a thread pool owned by their batch and sized to it,
so a lookup that hangs past the timeout never delays a later batch or the
return of resolve().
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Awaitable, Callable, NamedTuple, Optional, Sequence, Union

from scripts.namesearch.config import DEFAULT_BATCH_SIZE, DEFAULT_LOOKUP_TIMEOUT
from scripts.namesearch.records import ResolvedEntry
from scripts.namesearch.sanitize import sanitize

logger = logging.getLogger("namesearch.resolver")

Profile = dict[str, Any]
LookupFn = Callable[[str], Union[Profile, Awaitable[Profile]]]
SleepFn = Callable[[float], Awaitable[None]]


class ResolutionResult(NamedTuple):
    entries: list[ResolvedEntry]
    error_count: int


class BatchedResolver:
    def __init__(
        self,
        lookup: LookupFn,
        batch_size: int = DEFAULT_BATCH_SIZE,
        inter_batch_delay: float = 0.0,
        timeout: float = DEFAULT_LOOKUP_TIMEOUT,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._lookup = lookup
        self._is_async = inspect.iscoroutinefunction(lookup)
        self.batch_size = batch_size
        self.inter_batch_delay = inter_batch_delay
        self.timeout = timeout
        self._sleep = sleep or asyncio.sleep

    def resolve(self, names: Sequence[str]) -> ResolutionResult:
        """Blocking entry point; runs resolve_async on a fresh event loop."""
        return asyncio.run(self.resolve_async(names))

    async def resolve_async(self, names: Sequence[str]) -> ResolutionResult:
        entries: list[ResolvedEntry] = []
        error_count = 0
        batches = [
            names[i : i + self.batch_size]
            for i in range(0, len(names), self.batch_size)
        ]

        fetched = 0
        for index, batch in enumerate(batches):
            executor = None if self._is_async else ThreadPoolExecutor(
                max_workers=len(batch), thread_name_prefix="profile-lookup"
            )
            try:
                results = await asyncio.gather(
                    *(self._fetch(name, executor) for name in batch)
                )
            finally:
                if executor is not None:
                    # Lookups that lost the timeout race are abandoned, not joined
                    executor.shutdown(wait=False, cancel_futures=True)
            for result in results:
                if result is None:
                    error_count += 1
                else:
                    entries.append(result)
            fetched += len(batch)
            logger.info("Fetched %d entries", fetched, extra={"records": fetched})

            if index < len(batches) - 1:
                await self._sleep(self.inter_batch_delay)

        return ResolutionResult(entries, error_count)

    async def _fetch(
        self, name: str, executor: Optional[ThreadPoolExecutor]
    ) -> Optional[ResolvedEntry]:
        """One lookup raced against the timeout; None on any failure."""
        try:
            profile = await asyncio.wait_for(self._call_lookup(name, executor), self.timeout)
            return ResolvedEntry(fqu=name, profile=sanitize(profile))
        except asyncio.TimeoutError:
            logger.debug("Profile lookup for %s timed out after %.1fs", name, self.timeout)
        except Exception as exc:
            logger.debug("Failed looking up profile for %s: %s", name, exc)
        return None

    async def _call_lookup(self, name: str, executor: Optional[ThreadPoolExecutor]) -> Profile:
        if executor is None:
            return await self._lookup(name)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(executor, self._lookup, name)
