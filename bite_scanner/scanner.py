#!/usr/bin/env python3
"""
Cabo Bite Report Scanner
Crawls every configured target, merges with the previous snapshot and builds the bite report envelope.

Partial success is always published: failing targets are recorded in sources/parse_failures
and only a run with no reports at all and no successful fetch is fatal.
"""
import time
import asyncio
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .dedup import merge_with_previous
from .http_client import PoliteHttpClient
from .logging_ext import RunSummary
from .metrics import build_metrics
from .models import NormalizedReport, ParseFailure, TargetCrawlResult
from .pagination import crawl_target
from .targets import build_targets

logger = logging.getLogger(__name__)


@contextmanager
def performance_timer(operation: str, target: str = None, extra_context: dict = None):
    """Context manager for structured performance logging"""
    start_time = time.perf_counter()
    context = {"operation": operation}
    if target:
        context["target"] = target
    if extra_context:
        context.update(extra_context)

    try:
        yield context
    except Exception as e:
        context["error"] = str(e)
        context["success"] = False
        raise
    else:
        context["success"] = True
    finally:
        context["duration_ms"] = round((time.perf_counter() - start_time) * 1000, 2)
        label = f"{operation} [{target}]" if target else operation
        logger.info(f"[PERF] {label}: {context['duration_ms']}ms", extra={"perf": context})


# Custom exceptions for better error handling
class BiteScannerError(Exception):
    """Base exception for bite scanner errors"""
    pass


class ConfigurationError(BiteScannerError):
    """Configuration-related errors"""
    pass


class NoDataError(BiteScannerError):
    """No reports to publish and no source succeeded"""
    pass


class BiteReportScanner:
    """Crawl all targets, merge with the prior snapshot, aggregate metrics"""

    def __init__(self, config, targets: Optional[List] = None, client: Optional[PoliteHttpClient] = None):
        self.config = config
        self.targets = targets if targets is not None else build_targets(config.crawl)
        self.client = client
        self.summary = RunSummary()

    async def _crawl_one(self, client: PoliteHttpClient, target) -> TargetCrawlResult:
        try:
            with performance_timer("crawl_target", target.label, {"kind": target.kind}):
                return await crawl_target(client, target, self.config.crawl)
        except Exception as e:
            logger.exception(f"❌ {target.label}: crawl aborted")
            link = getattr(target, 'url', None) or target.page_url(1)
            result = TargetCrawlResult(label=target.label, stop_reason='error')
            result.failures.append(ParseFailure(source=target.label, link=link, error=f"Crawl error: {e}", snippet=''))
            return result

    async def crawl(self, client: PoliteHttpClient) -> List[TargetCrawlResult]:
        """Run all targets concurrently; the client serializes requests per domain"""
        logger.info(f"🎣 Crawling {len(self.targets)} targets")
        results = await asyncio.gather(*(self._crawl_one(client, target) for target in self.targets))
        for result in results:
            self.summary.record_target(result)
        return list(results)

    async def run(self, previous_reports: Optional[List[NormalizedReport]] = None,
                  now: Optional[datetime] = None) -> Dict[str, Any]:
        """Build a new envelope; raises NoDataError when there is nothing to publish"""
        now = now or datetime.now(timezone.utc)
        generated_at = now.isoformat().replace('+00:00', 'Z')

        if self.client is not None:
            results = await self.crawl(self.client)
        else:
            async with PoliteHttpClient.from_config(self.config.http) as client:
                results = await self.crawl(client)

        new_reports = [report for result in results for report in result.reports]
        failures = [failure for result in results for failure in result.failures]
        sources = [status for result in results for status in result.sources]
        any_ok = any(result.any_ok for result in results)

        merged = merge_with_previous(
            new_reports,
            previous_reports or [],
            history_window_days=self.config.output.history_window_days,
            today=now.date().isoformat(),
        )
        self.summary.record_merge(merged)

        if not merged.reports and not any_ok:
            raise NoDataError(
                f"No reports after merge and all {len(sources)} fetches failed; refusing to publish"
            )

        metrics = build_metrics(
            merged.reports,
            weights=self.config.weights.confidence,
            default_confidence=self.config.weights.default,
            now=now,
        )

        max_failures = self.config.output.max_failures
        if len(failures) > max_failures:
            logger.info(f"Truncating parse failures from {len(failures)} to {max_failures}")

        logger.info(f"✅ Envelope ready: {len(merged.reports)} reports, {len(sources)} fetch attempts")
        return {
            'generated_at': generated_at,
            'sources': [status.to_dict() for status in sources],
            'data': {
                'reports': [report.to_dict() for report in merged.reports],
                'parse_failures': [failure.to_dict() for failure in failures[:max_failures]],
                'metrics': metrics,
            },
        }

    def run_sync(self, previous_reports: Optional[List[NormalizedReport]] = None,
                 now: Optional[datetime] = None) -> Dict[str, Any]:
        return asyncio.run(self.run(previous_reports, now))
