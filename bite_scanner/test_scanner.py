#!/usr/bin/env python3
"""
End-to-end scanner tests
Targets crawled through a fake client, merged with a previous snapshot, envelope assembled
"""
import json
from datetime import datetime, timezone
from functools import partial

import pytest

from config import Config
from bite_scanner.models import FetchResponse, NormalizedReport
from bite_scanner.parsers import parse_json_feed, parse_static_page
from bite_scanner.scanner import BiteReportScanner, NoDataError, performance_timer
from bite_scanner.targets import PaginatedTarget, SingleTarget

NOW = datetime(2026, 3, 1, 18, 30, tzinfo=timezone.utc)
STATIC_URL = "https://www.elbudster.com/report"

STATIC_PAGE = """
<html><body><article>
  <h2>February 28, 2026</h2>
  <p>Striped marlin all over the Golden Gate bank, 4 released on the Budster.</p>
  <h2>February 27, 2026</h2>
  <p>Tough day, a couple of dorado caught inside 5 miles, water 74F.</p>
</article></body></html>
"""


class FakeClient:

    def __init__(self, pages):
        self.pages = pages

    async def get(self, url):
        body = self.pages.get(url)
        if body is None:
            return FetchResponse(ok=False, status=500, body='', fetched_at='2026-03-01T18:30:00Z', error='HTTP 500')
        return FetchResponse(ok=True, status=200, body=body, fetched_at='2026-03-01T18:30:00Z')


def feed_url(page):
    return f"https://blog.example.com/feed/json/?paged={page}"


def make_targets():
    return [
        SingleTarget(label='El Budster', url=STATIC_URL, parse=partial(parse_static_page, source_name='El Budster')),
        PaginatedTarget(label='Pisces Blog Feed', url_builder=feed_url,
                        parse=partial(parse_json_feed, source_name='Pisces'), max_pages=5),
    ]


def previous_report():
    return NormalizedReport(source='Pisces', date='2026-02-20', species=frozenset(['blue marlin']),
                            notes='Blue marlin double header at San Jaime', link='https://blog.example.com/blue')


class TestBiteReportScanner:

    def setup_method(self):
        self.config = Config()

    def test_envelope_from_partial_success(self):
        client = FakeClient({STATIC_URL: STATIC_PAGE})
        scanner = BiteReportScanner(self.config, targets=make_targets(), client=client)
        envelope = scanner.run_sync([previous_report()], now=NOW)

        assert envelope['generated_at'] == '2026-03-01T18:30:00Z'
        assert [source['name'] for source in envelope['sources']] == ['El Budster', 'Pisces Blog Feed page 1']
        assert [source['ok'] for source in envelope['sources']] == [True, False]

        reports = envelope['data']['reports']
        assert [report['date'] for report in reports] == ['2026-02-28', '2026-02-27', '2026-02-20']
        assert reports[0]['species'] == ['striped marlin']
        assert reports[1]['water_temp_f'] == 74
        assert reports[1]['distance_offshore_miles'] == 5

        failures = envelope['data']['parse_failures']
        assert failures == [{
            'source': 'Pisces Blog Feed page 1',
            'link': feed_url(1),
            'error': 'HTTP 500',
            'snippet': '',
        }]

        metrics = envelope['data']['metrics']
        assert metrics['marlin_mentions_last_72h'] == 1
        assert metrics['season_context']['latest_report_date'] == '2026-02-28'
        json.dumps(envelope)

        assert scanner.summary.pages_fetched == 2
        assert scanner.summary.fetch_failures == 1
        assert scanner.summary.reports_published == 3

    def test_all_sources_down_without_previous_is_fatal(self):
        scanner = BiteReportScanner(self.config, targets=make_targets(), client=FakeClient({}))
        with pytest.raises(NoDataError):
            scanner.run_sync([], now=NOW)

    def test_all_sources_down_reuses_previous(self):
        scanner = BiteReportScanner(self.config, targets=make_targets(), client=FakeClient({}))
        envelope = scanner.run_sync([previous_report()], now=NOW)

        assert [report['link'] for report in envelope['data']['reports']] == ['https://blog.example.com/blue']
        assert len(envelope['data']['parse_failures']) == 2

    def test_failures_truncated(self):
        self.config.output.max_failures = 1
        scanner = BiteReportScanner(self.config, targets=make_targets(), client=FakeClient({}))
        envelope = scanner.run_sync([previous_report()], now=NOW)
        assert len(envelope['data']['parse_failures']) == 1


    def test_quirky_feed_item_does_not_abort_run(self):
        feed = json.dumps({'items': [{
            'title': 'Striped marlin bite offshore today',
            'content_text': 'Two striped marlin released at the Golden Gate bank.',
            'url': 42,
            'date_published': 1771632000,
        }]})
        client = FakeClient({STATIC_URL: STATIC_PAGE, feed_url(1): feed})
        scanner = BiteReportScanner(self.config, targets=make_targets(), client=client)
        envelope = scanner.run_sync([], now=NOW)

        links = [report['link'] for report in envelope['data']['reports']]
        assert feed_url(1) in links
        assert STATIC_URL in links

    def test_failing_adapter_isolated_to_its_target(self):
        def broken_parse(payload, source_url):
            raise RuntimeError("unexpected markup")

        targets = [
            make_targets()[0],
            SingleTarget(label='Broken', url='https://broken.example.com/', parse=broken_parse),
        ]
        client = FakeClient({STATIC_URL: STATIC_PAGE, 'https://broken.example.com/': '<html>odd</html>'})
        scanner = BiteReportScanner(self.config, targets=targets, client=client)
        envelope = scanner.run_sync([], now=NOW)

        assert len(envelope['data']['reports']) == 2
        failures = envelope['data']['parse_failures']
        assert failures == [{
            'source': 'Broken',
            'link': 'https://broken.example.com/',
            'error': 'Parser error: unexpected markup',
            'snippet': '<html>odd</html>',
        }]

class TestPerformanceTimer:

    def test_records_duration_and_success(self):
        with performance_timer("crawl_target", "El Budster") as context:
            pass
        assert context['success'] is True
        assert context['duration_ms'] >= 0

    def test_records_error(self):
        with pytest.raises(RuntimeError):
            with performance_timer("crawl_target") as context:
                raise RuntimeError("boom")
        assert context['success'] is False
        assert context['error'] == 'boom'
