#!/usr/bin/env python3
"""
Metrics aggregator
Rolling marlin signal, 12h trend buckets, dense daily series, season context and per-source quality.

Report dates carry no time of day; every report is anchored at noon UTC on its date
so bucketing does not drift with the hour the pipeline runs.
"""
import logging
import math
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .models import DailyMarlinCount, NormalizedReport, SeasonContext, SourceQuality, TrendBucket

logger = logging.getLogger(__name__)

TREND_WINDOW_HOURS = 72
TREND_BUCKET_HOURS = 12
REPORT_ANCHOR = time(12, 0, tzinfo=timezone.utc)
DEFAULT_CONFIDENCE = 0.65


def is_marlin_signal(report: NormalizedReport) -> bool:
    if any('marlin' in species.lower() for species in report.species):
        return True
    return 'marlin' in report.notes.lower()


def confidence_for(source: str, weights: Optional[Mapping[str, float]] = None,
                   default: float = DEFAULT_CONFIDENCE) -> float:
    """Exact source name first, then the longest configured prefix ("FishingBooker" covers "FishingBooker La Paz")"""
    weights = weights or {}
    if source in weights:
        return float(weights[source])
    prefixes = [name for name in weights if source.startswith(name)]
    if prefixes:
        return float(weights[max(prefixes, key=len)])
    return default


def report_anchor(report: NormalizedReport) -> datetime:
    return datetime.combine(date.fromisoformat(report.date), REPORT_ANCHOR)


def _utc_now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def _iso_hour(moment: datetime) -> str:
    return moment.replace(minute=0, second=0, microsecond=0).strftime('%Y-%m-%dT%H:00:00Z')


def build_trend(reports: Sequence[NormalizedReport], now: Optional[datetime] = None) -> List[TrendBucket]:
    """12h buckets from now-72h up to now; the last bucket starts exactly at now"""
    now = _utc_now(now)
    window_start = now - timedelta(hours=TREND_WINDOW_HOURS)
    step = timedelta(hours=TREND_BUCKET_HOURS)
    anchors = [report_anchor(report) for report in reports if is_marlin_signal(report)]

    buckets = []
    current = window_start
    while current <= now:
        upper = current + step
        mentions = sum(1 for anchor in anchors if current <= anchor < upper)
        buckets.append(TrendBucket(bucket_ts=_iso_hour(current), mentions=mentions))
        current = upper
    return buckets


def _recent_marlin_reports(reports: Sequence[NormalizedReport], now: datetime) -> List[NormalizedReport]:
    window_start = now - timedelta(hours=TREND_WINDOW_HOURS)
    return [
        report for report in reports
        if is_marlin_signal(report) and window_start <= report_anchor(report) <= now
    ]


def build_daily_marlin_counts(reports: Sequence[NormalizedReport], weights: Optional[Mapping[str, float]] = None,
                              default_confidence: float = DEFAULT_CONFIDENCE,
                              today: Optional[str] = None) -> List[DailyMarlinCount]:
    """Gap-free series from the earliest report date through today"""
    if not reports:
        return []
    end = date.fromisoformat(today) if today else datetime.now(timezone.utc).date()

    totals: Dict[str, int] = defaultdict(int)
    marlin: Dict[str, int] = defaultdict(int)
    weighted: Dict[str, float] = defaultdict(float)
    for report in reports:
        totals[report.date] += 1
        if is_marlin_signal(report):
            marlin[report.date] += 1
            weighted[report.date] += confidence_for(report.source, weights, default_confidence)

    start = date.fromisoformat(min(totals))
    series = []
    cursor = start
    while cursor <= end:
        day = cursor.isoformat()
        series.append(DailyMarlinCount(
            date=day,
            total_reports=totals.get(day, 0),
            marlin_mentions=marlin.get(day, 0),
            weighted_marlin_signal=round(weighted.get(day, 0.0), 3),
        ))
        cursor += timedelta(days=1)
    return series


def percentile(values: Sequence[float], p: float) -> float:
    """Linear interpolation between closest ranks"""
    if not values:
        return 0.0
    ordered = sorted(values)
    index = min(max(p / 100 * (len(ordered) - 1), 0), len(ordered) - 1)
    lower, upper = math.floor(index), math.ceil(index)
    if lower == upper:
        return float(ordered[lower])
    return ordered[lower] + (ordered[upper] - ordered[lower]) * (index - lower)


def percentile_rank(values: Sequence[float], target: float) -> float:
    """Share of values <= target, 0-100 with one decimal"""
    if not values:
        return 0.0
    at_or_below = sum(1 for value in values if value <= target)
    return round(at_or_below / len(values) * 100, 1)


def empty_season_context(today: str) -> SeasonContext:
    return SeasonContext(
        sample_days=0,
        sample_start=today,
        sample_end=today,
        latest_report_date=today,
        latest_day_total_reports=0,
        latest_day_marlin_mentions=0,
        latest_day_percentile=0.0,
        average_daily_marlin_mentions=0.0,
        p90_daily_marlin_mentions=0.0,
        latest_vs_average_ratio=0.0,
    )


def build_season_context(daily_counts: Sequence[DailyMarlinCount], today: Optional[str] = None) -> SeasonContext:
    """Compare the latest active day against every day that had at least one report"""
    active = [day for day in daily_counts if day.total_reports > 0]
    if not active:
        return empty_season_context(today or datetime.now(timezone.utc).date().isoformat())

    latest = active[-1]
    mentions = [day.marlin_mentions for day in active]
    average = sum(mentions) / len(mentions)
    if average > 0:
        ratio = latest.marlin_mentions / average
    else:
        ratio = float(latest.marlin_mentions)
    average_weighted = sum(day.weighted_marlin_signal for day in active) / len(active)

    return SeasonContext(
        sample_days=len(active),
        sample_start=active[0].date,
        sample_end=latest.date,
        latest_report_date=latest.date,
        latest_day_total_reports=latest.total_reports,
        latest_day_marlin_mentions=latest.marlin_mentions,
        latest_day_percentile=percentile_rank(mentions, latest.marlin_mentions),
        average_daily_marlin_mentions=round(average, 2),
        p90_daily_marlin_mentions=round(percentile(mentions, 90), 2),
        latest_vs_average_ratio=round(ratio, 2),
        latest_day_weighted_signal=round(latest.weighted_marlin_signal, 3),
        average_daily_weighted_signal=round(average_weighted, 3),
    )


def build_source_quality(reports: Sequence[NormalizedReport], weights: Optional[Mapping[str, float]] = None,
                         default_confidence: float = DEFAULT_CONFIDENCE) -> List[SourceQuality]:
    """One row per observed source, strongest weighted signal first"""
    totals: Dict[str, int] = defaultdict(int)
    marlin: Dict[str, int] = defaultdict(int)
    for report in reports:
        totals[report.source] += 1
        if is_marlin_signal(report):
            marlin[report.source] += 1

    rows = []
    for source, total in totals.items():
        confidence = confidence_for(source, weights, default_confidence)
        rows.append(SourceQuality(
            source=source,
            confidence=confidence,
            total_reports=total,
            marlin_reports=marlin[source],
            weighted_marlin_signal=round(marlin[source] * confidence, 3),
        ))
    rows.sort(key=lambda row: (-row.weighted_marlin_signal, row.source))
    return rows


def build_metrics(reports: Sequence[NormalizedReport], weights: Optional[Mapping[str, float]] = None,
                  default_confidence: float = DEFAULT_CONFIDENCE,
                  now: Optional[datetime] = None) -> Dict[str, Any]:
    """Full metrics block for the bite report envelope"""
    now = _utc_now(now)
    today = now.date().isoformat()
    # future-dated reports (site timezone ahead of UTC) are kept out of the series
    ordered = sorted((report for report in reports if report.date <= today), key=lambda report: report.date)

    recent = _recent_marlin_reports(ordered, now)
    daily = build_daily_marlin_counts(ordered, weights, default_confidence, today=today)
    season = build_season_context(daily, today=today)
    quality = build_source_quality(reports, weights, default_confidence)

    logger.info(
        f"Metrics: {len(recent)} marlin reports in last {TREND_WINDOW_HOURS}h, "
        f"{len(daily)} days in series, {season.sample_days} active days"
    )

    return {
        'marlin_mentions_last_72h': len(recent),
        'weighted_marlin_signal_last_72h': round(
            sum(confidence_for(report.source, weights, default_confidence) for report in recent), 3
        ),
        'trend_last_72h': [bucket.to_dict() for bucket in build_trend(ordered, now)],
        'daily_marlin_counts': [day.to_dict() for day in daily],
        'season_context': season.to_dict(),
        'source_quality': [row.to_dict() for row in quality],
    }
