#!/usr/bin/env python3
"""
Identity & merge engine tests
"""
from bite_scanner.dedup import (
    canonicalize_link,
    identity_key,
    loose_key,
    merge_with_previous,
    normalize_notes,
    strict_key,
)
from bite_scanner.models import NormalizedReport

TODAY = '2026-03-01'


def report(date='2026-02-20', notes='Striped marlin released off the arch', link='https://a.com/r/1',
           source='El Budster', species=('striped marlin',)):
    return NormalizedReport(source=source, date=date, species=frozenset(species), notes=notes, link=link)


class TestKeys:

    def test_link_canonicalization(self):
        assert canonicalize_link("https://A.com/Reports/1/?page=2#top") == "https://a.com/reports/1"

    def test_notes_normalization(self):
        notes = "Marlin!!! See https://a.com/x for pics -- great   day, offshore."
        assert normalize_notes(notes) == "marlin see for pics great day offshore"

    def test_notes_prefix_tolerates_trailing_differences(self):
        base = ' '.join(f"word{i}" for i in range(18))
        assert normalize_notes(base + " read more") == normalize_notes(base + " continue reading")

    def test_identity_key_ignores_query_and_case(self):
        first = report(link="https://a.com/r/1?utm=x")
        second = report(link="https://A.com/r/1/")
        assert identity_key(first) == identity_key(second)

    def test_loose_key_ignores_link(self):
        assert loose_key(report(link="https://a.com/1")) == loose_key(report(link="https://b.com/2"))

    def test_cross_run_keys_use_full_notes(self):
        lead = ' '.join(f"word{i}" for i in range(18))
        first = report(notes=lead + " released two striped marlin")
        second = report(notes=lead + " boated six yellowfin tuna")
        assert identity_key(first) == identity_key(second)
        assert strict_key(first) != strict_key(second)
        assert loose_key(first) != loose_key(second)


class TestMerge:

    def test_new_batch_and_previous_combined_newest_first(self):
        new = [report(date='2026-02-25', notes='Dorado bite at the ridge', link='https://a.com/2')]
        previous = [report()]
        result = merge_with_previous(new, previous, today=TODAY)

        assert [item.date for item in result.reports] == ['2026-02-25', '2026-02-20']
        assert not result.reused_previous

    def test_republished_under_new_url_is_duplicate(self):
        new = [report(link="https://mirror.com/story")]
        result = merge_with_previous(new, [report()], today=TODAY)

        assert len(result.reports) == 1
        assert result.reports[0].link == "https://mirror.com/story"
        assert result.duplicates_dropped == 1

    def test_shared_lead_with_different_endings_both_kept(self):
        lead = "Cabo San Lucas fishing report from Captain Jorge aboard the Pisces fleet this morning with calm seas and clear water then we"
        first = report(notes=lead + " released two striped marlin", link="https://a.com/r/1")
        second = report(notes=lead + " boated six yellowfin tuna", link="https://b.com/r/2")
        result = merge_with_previous([first, second], [], today=TODAY)

        assert len(result.reports) == 2
        assert result.duplicates_dropped == 0

    def test_merge_is_idempotent(self):
        batch = [
            report(),
            report(date='2026-02-21', notes='Wahoo on the bank', link='https://a.com/3'),
            report(date='2026-02-21', notes='Wahoo on the bank!', link='https://a.com/3?ref=feed'),
        ]
        once = merge_with_previous(batch, [], today=TODAY).reports
        twice = merge_with_previous(batch, batch, today=TODAY).reports
        again = merge_with_previous(once, once, today=TODAY).reports

        assert once == twice == again
        assert len(once) == 2

    def test_history_window_drops_old_reports(self):
        old = report(date='2024-01-01', notes='Ancient report', link='https://a.com/old')
        result = merge_with_previous([report()], [old], history_window_days=365, today=TODAY)

        assert [item.date for item in result.reports] == ['2026-02-20']
        assert result.expired_dropped == 1

    def test_empty_merge_reuses_previous(self):
        old = report(date='2020-01-01')
        result = merge_with_previous([], [old], history_window_days=30, today=TODAY)

        assert result.reused_previous
        assert result.reports == [old]

    def test_everything_empty(self):
        result = merge_with_previous([], [], today=TODAY)
        assert result.reports == []
        assert not result.reused_previous
