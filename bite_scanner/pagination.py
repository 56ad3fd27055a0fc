#!/usr/bin/env python3
"""
Pagination controller
Drives a parser adapter across the pages of a target and decides when to stop.

Stop rules for paginated targets (first one wins):
  - empty streak: consecutive pages where the adapter returned no candidates
  - stale streak: consecutive pages that added nothing new for this target
  - max pages reached
  - a page fetch failed (recorded, then the target halts)
"""
import logging
from typing import Optional, Set

from .dedup import identity_key
from .extraction import compact_snippet
from .models import ParseFailure, ParseResult, SourceStatus, TargetCrawlResult
from .targets import PAGINATED, SINGLE, PaginatedTarget, SingleTarget, SourceTarget

logger = logging.getLogger(__name__)

STOP_COMPLETED = 'completed'
STOP_MAX_PAGES = 'max_pages'
STOP_EMPTY_STREAK = 'empty_streak'
STOP_STALE_STREAK = 'stale_streak'
STOP_FETCH_FAILED = 'fetch_failed'

DEFAULT_EMPTY_STREAK = 2
DEFAULT_STALE_STREAK = 4


async def _fetch_page(client, result: TargetCrawlResult, name: str, url: str) -> Optional[str]:
    """Fetch one page and record its provenance; None when the fetch failed"""
    response = await client.get(url)
    result.pages_fetched += 1
    result.sources.append(SourceStatus(
        name=name,
        url=url,
        fetched_at=response.fetched_at,
        ok=response.ok,
        error=response.error,
    ))
    if not response.ok:
        error = response.error or "Fetch failed"
        logger.warning(f"❌ {name}: {error}")
        result.failures.append(ParseFailure(source=name, link=url, error=error, snippet=""))
        return None
    logger.info(f"✅ {name}: HTTP {response.status}, {len(response.body)} bytes")
    return response.body


def _parse_page(target, result: TargetCrawlResult, name: str, body: str, url: str) -> ParseResult:
    """Run the adapter; an adapter error is recorded as one failure and the page counts as empty"""
    try:
        return target.parse(body, url)
    except Exception as e:
        logger.exception(f"❌ {name}: parser error")
        result.failures.append(ParseFailure(source=name, link=url, error=f"Parser error: {e}",
                                            snippet=compact_snippet(body)))
        return ParseResult(reports=[], failures=[])


async def crawl_single(client, target: SingleTarget) -> TargetCrawlResult:
    result = TargetCrawlResult(label=target.label)
    body = await _fetch_page(client, result, target.label, target.url)
    if body is None:
        result.stop_reason = STOP_FETCH_FAILED
        return result

    parsed = _parse_page(target, result, target.label, body, target.url)
    result.candidates = len(parsed.reports)
    result.failures.extend(parsed.failures)
    seen: Set[str] = set()
    for report in parsed.reports:
        key = identity_key(report)
        if key not in seen:
            seen.add(key)
            result.reports.append(report)
    return result


async def crawl_paginated(client, target: PaginatedTarget, empty_streak_limit: int = DEFAULT_EMPTY_STREAK,
                          stale_streak_limit: int = DEFAULT_STALE_STREAK) -> TargetCrawlResult:
    """Fetch pages 1..max_pages sequentially, deduplicating within the target"""
    result = TargetCrawlResult(label=target.label)
    seen: Set[str] = set()
    empty_streak = 0
    stale_streak = 0
    result.stop_reason = STOP_MAX_PAGES

    for page in range(1, target.max_pages + 1):
        url = target.page_url(page)
        name = f"{target.label} page {page}"
        body = await _fetch_page(client, result, name, url)
        if body is None:
            result.stop_reason = STOP_FETCH_FAILED
            break

        parsed = _parse_page(target, result, name, body, url)
        result.candidates += len(parsed.reports)
        result.failures.extend(parsed.failures)

        accepted = 0
        for report in parsed.reports:
            key = identity_key(report)
            if key in seen:
                continue
            seen.add(key)
            result.reports.append(report)
            accepted += 1

        empty_streak = empty_streak + 1 if not parsed.reports else 0
        stale_streak = stale_streak + 1 if accepted == 0 else 0
        logger.debug(
            f"{name}: {len(parsed.reports)} candidates, {accepted} new "
            f"(empty streak {empty_streak}, stale streak {stale_streak})"
        )

        if empty_streak >= empty_streak_limit:
            result.stop_reason = STOP_EMPTY_STREAK
            break
        if stale_streak >= stale_streak_limit:
            result.stop_reason = STOP_STALE_STREAK
            break

    logger.info(
        f"{target.label}: {result.pages_fetched} pages, {len(result.reports)} reports, "
        f"stopped on {result.stop_reason}"
    )
    return result


async def crawl_target(client, target: SourceTarget, crawl_config=None) -> TargetCrawlResult:
    """Dispatch on the target kind"""
    if target.kind == SINGLE:
        return await crawl_single(client, target)
    if target.kind == PAGINATED:
        if crawl_config is None:
            return await crawl_paginated(client, target)
        return await crawl_paginated(
            client,
            target,
            empty_streak_limit=crawl_config.empty_streak,
            stale_streak_limit=crawl_config.stale_streak,
        )
    raise ValueError(f"Unknown target kind: {target.kind!r}")
