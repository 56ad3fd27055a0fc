#!/usr/bin/env python3
"""
Data model for the bite report scanner
Plain dataclasses shared by the fetch client, parser adapters, merge engine and metrics
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, FrozenSet, List, Optional
from urllib.parse import urlparse

ISO_DATE_LENGTH = 10


def is_iso_date(value: str) -> bool:
    """True when value is a real YYYY-MM-DD calendar date"""
    if not isinstance(value, str) or len(value) != ISO_DATE_LENGTH:
        return False
    try:
        return date.fromisoformat(value).isoformat() == value
    except ValueError:
        return False


def is_absolute_url(value: str) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value)
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


@dataclass(frozen=True)
class NormalizedReport:
    """One bite report extracted from a source page or feed"""
    source: str
    date: str
    species: FrozenSet[str]
    notes: str
    link: str
    distance_offshore_miles: Optional[float] = None
    water_temp_f: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'source': self.source,
            'date': self.date,
            'species': sorted(self.species),
            'notes': self.notes,
        }
        if self.distance_offshore_miles is not None:
            data['distance_offshore_miles'] = self.distance_offshore_miles
        if self.water_temp_f is not None:
            data['water_temp_f'] = self.water_temp_f
        data['link'] = self.link
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NormalizedReport':
        """Build a report from its stored form, raising ValueError when invalid"""
        report_date = data.get('date')
        link = data.get('link')
        if not is_iso_date(report_date):
            raise ValueError(f"invalid report date: {report_date!r}")
        if not is_absolute_url(link):
            raise ValueError(f"invalid report link: {link!r}")
        species = data.get('species') or []
        if not isinstance(species, list):
            raise ValueError("species must be a list")
        return cls(
            source=str(data.get('source', '')),
            date=report_date,
            species=frozenset(str(item) for item in species),
            notes=str(data.get('notes', '')),
            link=link,
            distance_offshore_miles=data.get('distance_offshore_miles'),
            water_temp_f=data.get('water_temp_f'),
        )


@dataclass(frozen=True)
class ParseFailure:
    source: str
    link: str
    error: str
    snippet: str

    def to_dict(self) -> Dict[str, Any]:
        return {'source': self.source, 'link': self.link, 'error': self.error, 'snippet': self.snippet}


@dataclass
class ParseResult:
    """Adapter output: accepted reports plus at most one diagnostic failure"""
    reports: List[NormalizedReport] = field(default_factory=list)
    failures: List[ParseFailure] = field(default_factory=list)


@dataclass(frozen=True)
class SourceStatus:
    """Provenance entry for one network attempt"""
    name: str
    url: str
    fetched_at: str
    ok: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'name': self.name,
            'url': self.url,
            'fetched_at': self.fetched_at,
            'ok': self.ok,
        }
        if self.error:
            data['error'] = self.error
        return data


@dataclass(frozen=True)
class FetchResponse:
    ok: bool
    status: int
    body: str
    fetched_at: str
    error: Optional[str] = None


@dataclass
class MergeResult:
    reports: List[NormalizedReport]
    reused_previous: bool = False
    duplicates_dropped: int = 0
    expired_dropped: int = 0


@dataclass
class TargetCrawlResult:
    """Everything one target produced during a run"""
    label: str
    reports: List[NormalizedReport] = field(default_factory=list)
    failures: List[ParseFailure] = field(default_factory=list)
    sources: List[SourceStatus] = field(default_factory=list)
    pages_fetched: int = 0
    candidates: int = 0
    stop_reason: str = 'completed'

    @property
    def any_ok(self) -> bool:
        return any(status.ok for status in self.sources)


@dataclass(frozen=True)
class TrendBucket:
    bucket_ts: str
    mentions: int

    def to_dict(self) -> Dict[str, Any]:
        return {'bucket_ts': self.bucket_ts, 'mentions': self.mentions}


@dataclass(frozen=True)
class DailyMarlinCount:
    date: str
    total_reports: int
    marlin_mentions: int
    weighted_marlin_signal: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date,
            'total_reports': self.total_reports,
            'marlin_mentions': self.marlin_mentions,
            'weighted_marlin_signal': self.weighted_marlin_signal,
        }


@dataclass(frozen=True)
class SeasonContext:
    sample_days: int
    sample_start: str
    sample_end: str
    latest_report_date: str
    latest_day_total_reports: int
    latest_day_marlin_mentions: int
    latest_day_percentile: float
    average_daily_marlin_mentions: float
    p90_daily_marlin_mentions: float
    latest_vs_average_ratio: float
    latest_day_weighted_signal: float = 0.0
    average_daily_weighted_signal: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass(frozen=True)
class SourceQuality:
    source: str
    confidence: float
    total_reports: int
    marlin_reports: int
    weighted_marlin_signal: float

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


def today_utc() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')
