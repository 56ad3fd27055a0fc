#!/usr/bin/env python3
"""
Metrics aggregator tests
"""
from datetime import datetime, timezone

import pytest

from bite_scanner.metrics import (
    DEFAULT_CONFIDENCE,
    build_daily_marlin_counts,
    build_metrics,
    build_season_context,
    build_source_quality,
    build_trend,
    confidence_for,
    is_marlin_signal,
    percentile,
    percentile_rank,
)
from bite_scanner.models import DailyMarlinCount, NormalizedReport

NOW = datetime(2026, 3, 1, 18, 30, tzinfo=timezone.utc)
WEIGHTS = {'El Budster': 0.9, 'FishingBooker': 0.6}


def report(date, source='El Budster', species=('striped marlin',), notes='Fish on', link=None):
    return NormalizedReport(source=source, date=date, species=frozenset(species), notes=notes,
                            link=link or f"https://a.com/{source}/{date}/{notes}")


def day(date, total, marlin):
    return DailyMarlinCount(date=date, total_reports=total, marlin_mentions=marlin, weighted_marlin_signal=0.0)


class TestSignalAndConfidence:

    def test_marlin_signal_from_species_or_notes(self):
        assert is_marlin_signal(report('2026-03-01'))
        assert is_marlin_signal(report('2026-03-01', species=(), notes='Saw a MARLIN tail'))
        assert not is_marlin_signal(report('2026-03-01', species=('dorado',), notes='Dorado only'))

    def test_confidence_lookup(self):
        assert confidence_for('El Budster', WEIGHTS) == 0.9
        assert confidence_for('FishingBooker La Paz', WEIGHTS) == 0.6
        assert confidence_for('Unknown Blog', WEIGHTS) == DEFAULT_CONFIDENCE
        assert confidence_for('Anything') == DEFAULT_CONFIDENCE


class TestTrend:

    def test_buckets_cover_last_72_hours(self):
        buckets = build_trend([], NOW)
        assert len(buckets) == 7
        assert buckets[0].bucket_ts == '2026-02-26T18:00:00Z'
        assert buckets[-1].bucket_ts == '2026-03-01T18:00:00Z'

    def test_reports_anchored_at_noon(self):
        reports = [
            report('2026-03-01'),
            report('2026-02-27', notes='second'),
            report('2026-02-27', species=('dorado',), notes='dorado only'),
            report('2026-02-20', notes='too old'),
        ]
        buckets = build_trend(reports, NOW)
        counts = {bucket.bucket_ts: bucket.mentions for bucket in buckets}

        assert counts['2026-03-01T06:00:00Z'] == 1
        assert counts['2026-02-27T06:00:00Z'] == 1
        assert sum(counts.values()) == 2


class TestDailySeries:

    def test_dense_series_to_today(self):
        reports = [
            report('2026-02-26'),
            report('2026-02-26', species=('dorado',), notes='dorado'),
            report('2026-02-28', source='FishingBooker Cabo', notes='fb'),
        ]
        series = build_daily_marlin_counts(reports, WEIGHTS, today='2026-03-01')

        assert [item.date for item in series] == ['2026-02-26', '2026-02-27', '2026-02-28', '2026-03-01']
        assert [item.total_reports for item in series] == [2, 0, 1, 0]
        assert [item.marlin_mentions for item in series] == [1, 0, 1, 0]
        assert series[0].weighted_marlin_signal == 0.9
        assert series[2].weighted_marlin_signal == 0.6

    def test_no_reports(self):
        assert build_daily_marlin_counts([], today='2026-03-01') == []


class TestSeasonContext:

    def test_latest_day_against_sample(self):
        counts = [
            day('2026-02-01', 2, 0),
            day('2026-02-02', 1, 1),
            day('2026-02-03', 0, 0),
            day('2026-02-04', 4, 3),
            day('2026-02-05', 2, 2),
            day('2026-02-06', 6, 5),
        ]
        context = build_season_context(counts)

        assert context.sample_days == 5
        assert context.sample_start == '2026-02-01'
        assert context.latest_report_date == '2026-02-06'
        assert context.latest_day_marlin_mentions == 5
        assert context.latest_day_percentile == 100.0
        assert context.average_daily_marlin_mentions == 2.2
        assert context.latest_vs_average_ratio == 2.27
        assert context.p90_daily_marlin_mentions == 4.2

    def test_zero_average_uses_raw_count(self):
        context = build_season_context([day('2026-02-01', 3, 0)])
        assert context.latest_vs_average_ratio == 0.0
        assert context.latest_day_percentile == 100.0

    def test_empty_sample(self):
        context = build_season_context([day('2026-02-01', 0, 0)], today='2026-03-01')
        assert context.sample_days == 0
        assert context.sample_start == '2026-03-01'

    def test_percentile_helpers(self):
        assert percentile([0, 1, 3, 2, 5], 90) == pytest.approx(4.2)
        assert percentile([], 90) == 0.0
        assert percentile_rank([0, 1, 3, 2, 5], 2) == 60.0


class TestSourceQualityAndMetrics:

    def test_quality_sorted_by_weighted_signal(self):
        reports = [
            report('2026-02-26', source='FishingBooker Cabo', notes='a'),
            report('2026-02-26', source='FishingBooker Cabo', notes='b'),
            report('2026-02-27', source='El Budster'),
            report('2026-02-27', source='Tiny Blog', species=('dorado',), notes='dorado'),
        ]
        rows = build_source_quality(reports, WEIGHTS)

        assert [row.source for row in rows] == ['FishingBooker Cabo', 'El Budster', 'Tiny Blog']
        assert rows[0].weighted_marlin_signal == 1.2
        assert rows[0].marlin_reports == 2
        assert rows[2].confidence == DEFAULT_CONFIDENCE
        assert rows[2].weighted_marlin_signal == 0.0

    def test_build_metrics_block(self):
        reports = [
            report('2026-03-01'),
            report('2026-02-28', source='FishingBooker Cabo', notes='fb'),
            report('2026-02-10', notes='older'),
            report('2026-03-02', notes='tomorrow in Cabo'),
        ]
        metrics = build_metrics(reports, WEIGHTS, now=NOW)

        assert set(metrics) == {
            'marlin_mentions_last_72h',
            'weighted_marlin_signal_last_72h',
            'trend_last_72h',
            'daily_marlin_counts',
            'season_context',
            'source_quality',
        }
        assert metrics['marlin_mentions_last_72h'] == 2
        assert metrics['weighted_marlin_signal_last_72h'] == 1.5
        assert metrics['daily_marlin_counts'][0]['date'] == '2026-02-10'
        assert metrics['daily_marlin_counts'][-1]['date'] == '2026-03-01'
        assert metrics['season_context']['latest_report_date'] == '2026-03-01'
        assert len(metrics['trend_last_72h']) == 7
