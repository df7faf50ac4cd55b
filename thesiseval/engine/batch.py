"""Settle-all batch fetching for per-id sub-resources.

Panel rosters, score lists, and criteria lists are each fetched with one
request per parent id. A failing request only removes its own id from the
result; siblings are never cancelled.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Hashable, Iterable, List, Tuple, TypeVar

LOGGER = logging.getLogger("thesiseval.batch")

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")

_FAILED = object()


async def fetch_all_tolerant(
    ids: Iterable[K],
    fetch_one: Callable[[K], Awaitable[T]],
    *,
    max_concurrency: int | None = None,
    timeout: float | None = None,
    label: str = "batch",
) -> Dict[K, T]:
    """Fetch every id concurrently and keep only the successes.

    Args:
        ids: Parent identifiers. Duplicates are fetched once.
        fetch_one: Coroutine function returning the parsed result for one id.
        max_concurrency: Optional cap on in-flight calls.
        timeout: Optional per-call timeout in seconds; a timeout is a failure.
        label: Name used in log lines.

    Returns:
        Mapping of id to result, in input order. Ids whose call raised or
        timed out are absent.
    """
    unique_ids: List[K] = list(dict.fromkeys(ids))
    if not unique_ids:
        return {}
    if max_concurrency is not None and max_concurrency < 1:
        raise ValueError("max_concurrency must be >= 1")

    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None
    started = time.monotonic()

    async def _call(key: K) -> T:
        if timeout is not None:
            return await asyncio.wait_for(fetch_one(key), timeout)
        return await fetch_one(key)

    async def _run(key: K) -> Tuple[K, object]:
        try:
            if semaphore is None:
                return key, await _call(key)
            async with semaphore:
                return key, await _call(key)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.warning(
                "%s fetch failed for %r: %s",
                label,
                key,
                str(exc) or type(exc).__name__,
                extra={"batch": label, "id": str(key), "error_type": type(exc).__name__},
            )
            return key, _FAILED

    outcomes = await asyncio.gather(*(_run(key) for key in unique_ids))
    results: Dict[K, T] = {key: value for key, value in outcomes if value is not _FAILED}  # type: ignore[misc]

    elapsed_ms = (time.monotonic() - started) * 1000
    LOGGER.info(
        "%s complete: %d ids (%d ok, %d failed) in %.1fms",
        label,
        len(unique_ids),
        len(results),
        len(unique_ids) - len(results),
        elapsed_ms,
    )
    return results


__all__ = ["fetch_all_tolerant"]
