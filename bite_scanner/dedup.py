#!/usr/bin/env python3
"""
Identity & merge engine
Identity keys for per-target dedup during pagination, and the cross-run merge with the previous snapshot.
"""
import re
import logging
from datetime import date, timedelta
from typing import Iterable, List, Optional

from .models import MergeResult, NormalizedReport, today_utc

logger = logging.getLogger(__name__)

NOTES_PREFIX_WORDS = 18

RE_URL = re.compile(r'https?://\S+|www\.\S+', re.IGNORECASE)
RE_PUNCTUATION = re.compile(r'[^\w\s]')
RE_WHITESPACE = re.compile(r'\s+')


def canonicalize_link(link: str) -> str:
    """Strip query, fragment and trailing slash; lower-case"""
    canonical = (link or '').split('#', 1)[0].split('?', 1)[0]
    return canonical.rstrip('/').lower()


def normalize_notes(notes: str, max_words: Optional[int] = NOTES_PREFIX_WORDS) -> str:
    text = RE_URL.sub(' ', notes or '')
    text = RE_PUNCTUATION.sub(' ', text.replace('_', ' '))
    words = RE_WHITESPACE.sub(' ', text).strip().lower().split(' ')
    if words == ['']:
        return ''
    return ' '.join(words if max_words is None else words[:max_words])


def identity_key(report: NormalizedReport) -> str:
    return f"{report.date}|{canonicalize_link(report.link)}|{normalize_notes(report.notes)}"


def strict_key(report: NormalizedReport) -> str:
    """Cross-run key: full normalized notes, not the pagination prefix"""
    return f"{report.date}|{canonicalize_link(report.link)}|{normalize_notes(report.notes, max_words=None)}"


def loose_key(report: NormalizedReport) -> str:
    """Ignores the link so a report republished under another URL still collides"""
    return f"{report.date}|{normalize_notes(report.notes, max_words=None)}"


def dedupe(reports: Iterable[NormalizedReport]) -> List[NormalizedReport]:
    """First occurrence wins; a report is dropped when either its strict or loose key was seen"""
    seen_strict = set()
    seen_loose = set()
    unique = []
    for report in reports:
        strict, loose = strict_key(report), loose_key(report)
        if strict in seen_strict or loose in seen_loose:
            continue
        seen_strict.add(strict)
        seen_loose.add(loose)
        unique.append(report)
    return unique


def sort_newest_first(reports: Iterable[NormalizedReport]) -> List[NormalizedReport]:
    return sorted(reports, key=lambda report: report.date, reverse=True)


def merge_with_previous(new_reports: List[NormalizedReport], previous_reports: List[NormalizedReport],
                        history_window_days: Optional[int] = 365,
                        today: Optional[str] = None) -> MergeResult:
    """
    Merge this run's reports with the previous snapshot.

    New reports come first so they win ties; the result is deduplicated, trimmed to the
    history window and sorted by date descending. When nothing survives, the previous
    snapshot is reused unchanged.
    """
    combined = list(new_reports) + list(previous_reports)
    unique = dedupe(combined)
    duplicates_dropped = len(combined) - len(unique)

    expired_dropped = 0
    if history_window_days:
        cutoff = (date.fromisoformat(today or today_utc()) - timedelta(days=history_window_days)).isoformat()
        kept = [report for report in unique if report.date >= cutoff]
        expired_dropped = len(unique) - len(kept)
        unique = kept

    merged = sort_newest_first(unique)
    logger.info(
        f"Merged {len(new_reports)} new + {len(previous_reports)} previous reports: "
        f"{len(merged)} kept, {duplicates_dropped} duplicates, {expired_dropped} expired"
    )

    if not merged and previous_reports:
        logger.warning("Merge produced no reports, reusing previous snapshot")
        return MergeResult(reports=list(previous_reports), reused_previous=True,
                           duplicates_dropped=duplicates_dropped, expired_dropped=expired_dropped)

    return MergeResult(reports=merged, duplicates_dropped=duplicates_dropped, expired_dropped=expired_dropped)
