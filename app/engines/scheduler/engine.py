"""
Batch Scheduler - bounded-concurrency fan-out over scrape calls.

Batches of `concurrency` URLs run in parallel; the next batch starts only
after every task in the current one has settled, so peak outbound
connections never exceed `concurrency`. Failed fetches are dropped.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

import structlog

from app.core.config import get_settings
from app.engines.base import ScrapeResult

logger = structlog.get_logger(__name__)
settings = get_settings()

FetchFn = Callable[[str], Awaitable[ScrapeResult]]


async def run_batch(
    urls: list[str],
    fetch: FetchFn,
    concurrency: int = settings.SCRAPE_CONCURRENCY,
    batch_delay: float = settings.SCRAPE_BATCH_DELAY_SECONDS,
) -> list[ScrapeResult]:
    """
    Fetch every URL, keeping only successful results.

    Args:
        urls: Targets, already validated
        fetch: Backend fetch function
        concurrency: Batch size (peak in-flight fetches)
        batch_delay: Pause between batches, seconds

    Returns:
        Successful ScrapeResults, batch by batch in input order
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    start = time.perf_counter()
    results: list[ScrapeResult] = []
    dropped = 0

    for offset in range(0, len(urls), concurrency):
        if offset and batch_delay > 0:
            await asyncio.sleep(batch_delay)

        batch = urls[offset:offset + concurrency]
        settled = await asyncio.gather(*(fetch(u) for u in batch), return_exceptions=True)

        for url, outcome in zip(batch, settled):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                dropped += 1
                logger.warning("Scrape task raised", url=url, error=str(outcome))
            elif not outcome.ok:
                dropped += 1
                logger.info("Scrape failed", url=url, error=outcome.error, detail=outcome.error_detail)
            else:
                results.append(outcome)

    logger.info(
        "Batch complete",
        requested=len(urls),
        succeeded=len(results),
        dropped=dropped,
        elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
    )
    return results
