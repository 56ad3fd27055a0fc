#!/usr/bin/env python3
"""
Pipeline orchestration and scheduler tests
"""
import json
from unittest.mock import Mock, patch

import schedule

from config import Config
from run_pipeline import BitePipelineOrchestrator, build_parser, main
from monitoring_system import BiteScheduler
from bite_scanner.scanner import NoDataError

ENVELOPE = {
    'generated_at': '2026-03-01T05:30:00Z',
    'sources': [],
    'data': {'reports': [{
        'source': 'El Budster',
        'date': '2026-02-28',
        'species': ['striped marlin'],
        'notes': 'Striped marlin released',
        'link': 'https://www.elbudster.com/report',
    }], 'parse_failures': [], 'metrics': {}},
}


def make_config(tmp_path):
    config = Config()
    config.output.output_path = str(tmp_path / 'data' / 'biteReports.json')
    return config


class TestOrchestrator:

    def test_writes_snapshot(self, tmp_path):
        config = make_config(tmp_path)
        scanner = Mock()
        scanner.run_sync.return_value = ENVELOPE

        orchestrator = BitePipelineOrchestrator(config)
        assert orchestrator.run(scanner=scanner)

        scanner.run_sync.assert_called_once_with([])
        with open(config.output.output_path, encoding='utf-8') as f:
            assert json.load(f) == ENVELOPE
        assert orchestrator.stats['published_reports'] == 1

    def test_previous_snapshot_passed_to_scanner(self, tmp_path):
        config = make_config(tmp_path)
        (tmp_path / 'data').mkdir()
        with open(config.output.output_path, 'w', encoding='utf-8') as f:
            json.dump(ENVELOPE, f)

        scanner = Mock()
        scanner.run_sync.return_value = ENVELOPE
        orchestrator = BitePipelineOrchestrator(config)
        orchestrator.run(scanner=scanner)

        previous = scanner.run_sync.call_args[0][0]
        assert [report.date for report in previous] == ['2026-02-28']
        assert orchestrator.stats['previous_reports'] == 1

    def test_dry_run_does_not_write(self, tmp_path):
        config = make_config(tmp_path)
        scanner = Mock()
        scanner.run_sync.return_value = ENVELOPE

        orchestrator = BitePipelineOrchestrator(config, dry_run=True)
        assert orchestrator.run(scanner=scanner)
        assert not (tmp_path / 'data').exists()

    def test_no_data_is_a_failed_run(self, tmp_path):
        config = make_config(tmp_path)
        scanner = Mock()
        scanner.run_sync.side_effect = NoDataError("nothing")

        orchestrator = BitePipelineOrchestrator(config)
        assert not orchestrator.run(scanner=scanner)
        assert orchestrator.stats['errors'] == ['nothing']

    def test_cli_overrides(self, tmp_path):
        config = make_config(tmp_path)
        args = build_parser().parse_args(['--output', 'out.json', '--max-pages-listing', '2'])
        BitePipelineOrchestrator(config).apply_cli_overrides(args)

        assert config.output.output_path == 'out.json'
        assert config.crawl.max_pages_listing == 2
        assert config.crawl.max_pages_archive == 30


class TestMain:

    def test_invalid_config_exits_with_error(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text('{oops', encoding='utf-8')
        assert main(['--config', str(path), '--log-file', '']) == 2

    def test_successful_run(self, tmp_path):
        with patch('run_pipeline.BitePipelineOrchestrator.run', return_value=True) as run:
            code = main(['--config', str(tmp_path / 'missing.json'), '--log-file', '', '--dry-run'])
        assert code == 0
        run.assert_called_once_with()


class TestBiteScheduler:

    def test_daily_job_registered(self):
        scheduler = schedule.Scheduler()
        bite_scheduler = BiteScheduler(run_at='05:30', scheduler=scheduler)
        bite_scheduler.setup_scheduled_tasks()

        assert len(scheduler.jobs) == 1
        assert scheduler.jobs[0].at_time.strftime('%H:%M') == '05:30'

    def test_refresh_reports_result(self, tmp_path):
        with patch('monitoring_system.BitePipelineOrchestrator') as orchestrator_cls:
            orchestrator_cls.return_value.run.return_value = True
            orchestrator_cls.return_value.stats = {'published_reports': 4}
            bite_scheduler = BiteScheduler(config_path=str(tmp_path / 'missing.json'))
            result = bite_scheduler.run_refresh()

        assert result['success'] is True
        assert result['stats'] == {'published_reports': 4}
        assert bite_scheduler.last_result is result

    def test_unexpected_error_does_not_escape(self, tmp_path):
        with patch('monitoring_system.BitePipelineOrchestrator') as orchestrator_cls:
            orchestrator_cls.return_value.run.side_effect = OSError("disk full")
            bite_scheduler = BiteScheduler(config_path=str(tmp_path / 'missing.json'))
            result = bite_scheduler.run_refresh()

        assert result['success'] is False
        assert result['error'] == 'disk full'
        assert bite_scheduler.last_result is result
