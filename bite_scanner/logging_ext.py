#!/usr/bin/env python3
"""
Logging extensions for the bite report scanner
Run summary counters and the stable end-of-run report
"""
import logging
from collections import Counter

logger = logging.getLogger(__name__)


class RunSummary:
    """Run summary with counters for bite scanner statistics"""

    def __init__(self):
        self.targets_total = 0
        self.pages_fetched = 0
        self.fetch_failures = 0
        self.candidates_total = 0
        self.accepted_total = 0
        self.parse_failures = 0
        self.duplicates_dropped = 0
        self.expired_dropped = 0
        self.reports_published = 0
        self.reused_previous = False
        self.stop_reasons = Counter()
        self.per_source = Counter()

    def record_target(self, result):
        """Fold one TargetCrawlResult into the counters"""
        self.targets_total += 1
        self.pages_fetched += result.pages_fetched
        self.fetch_failures += sum(1 for status in result.sources if not status.ok)
        self.candidates_total += result.candidates
        self.accepted_total += len(result.reports)
        self.parse_failures += sum(1 for failure in result.failures if failure.snippet)
        self.stop_reasons[result.stop_reason] += 1
        for report in result.reports:
            self.per_source[report.source] += 1

    def record_merge(self, merge_result):
        self.duplicates_dropped = merge_result.duplicates_dropped
        self.expired_dropped = merge_result.expired_dropped
        self.reports_published = len(merge_result.reports)
        self.reused_previous = merge_result.reused_previous

    def to_dict(self):
        return {
            'targets': self.targets_total,
            'pages_fetched': self.pages_fetched,
            'fetch_failures': self.fetch_failures,
            'candidates': self.candidates_total,
            'accepted': self.accepted_total,
            'parse_failures': self.parse_failures,
            'duplicates_dropped': self.duplicates_dropped,
            'expired_dropped': self.expired_dropped,
            'reports_published': self.reports_published,
            'reused_previous': self.reused_previous,
        }

    def print_summary(self):
        """Print formatted summary to console"""
        print("\n" + "="*50)
        print("CABO BITE SCANNER - RUN SUMMARY")
        print("="*50)
        print(f"Targets crawled: {self.targets_total}")
        print(f"Pages fetched: {self.pages_fetched} ({self.fetch_failures} failed)")
        print(f"Candidates found: {self.candidates_total}")
        print(f"Accepted: {self.accepted_total}")
        print(f"Parse failures: {self.parse_failures}")
        print(f"Duplicates dropped: {self.duplicates_dropped}")
        print(f"Expired dropped: {self.expired_dropped}")
        print(f"Reports published: {self.reports_published}")
        if self.reused_previous:
            print("Previous snapshot reused: yes")

        if self.stop_reasons:
            print("Stop reasons:")
            for reason, count in self.stop_reasons.most_common():
                print(f"  {reason}: {count}")

        if self.per_source:
            print("Accepted by source:")
            for source, count in self.per_source.most_common(10):
                print(f"  {source}: {count}")

        print("="*50)
