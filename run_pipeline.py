#!/usr/bin/env python3
"""
Cabo Bite Pipeline - bite report refresh
Crawl fishing report sources, merge with the previous snapshot and publish biteReports.json
"""
import sys
import logging
import argparse
from datetime import datetime
from typing import Any, Dict, List, Optional

from config import Config, load_config
from bite_scanner.scanner import BiteReportScanner, BiteScannerError, ConfigurationError, NoDataError
from utils.snapshot_store import load_previous_reports, read_envelope, write_envelope

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
DEFAULT_LOG_FILE = 'bite_pipeline.log'


def configure_logging(level: str = 'INFO', log_file: Optional[str] = DEFAULT_LOG_FILE):
    """Console + file logging, same format for both"""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


class BitePipelineOrchestrator:
    """Main orchestrator for the bite report refresh"""

    def __init__(self, config: Config, dry_run: bool = False):
        self.start_time = datetime.now()
        self.config = config
        self.dry_run = dry_run
        self.scanner: Optional[BiteReportScanner] = None
        self.envelope: Optional[Dict[str, Any]] = None
        self.stats = {
            'previous_reports': 0,
            'published_reports': 0,
            'written': False,
            'errors': [],
        }

    def apply_cli_overrides(self, args: argparse.Namespace):
        """CLI takes precedence over environment and config.json"""
        if getattr(args, 'output', None):
            self.config.output.output_path = args.output
        if getattr(args, 'max_pages_listing', None):
            self.config.crawl.max_pages_listing = args.max_pages_listing
        if getattr(args, 'max_pages_archive', None):
            self.config.crawl.max_pages_archive = args.max_pages_archive

    def log_effective_params(self):
        """Log the effective parameters after CLI + ENV + config merge"""
        crawl, http, output = self.config.crawl, self.config.http, self.config.output
        logger.info("🔧 EFFECTIVE PARAMETERS:")
        logger.info(f"   Output: {output.output_path}")
        logger.info(f"   Max pages: listing={crawl.max_pages_listing} archive={crawl.max_pages_archive}")
        logger.info(f"   Stop streaks: empty={crawl.empty_streak} stale={crawl.stale_streak}")
        logger.info(f"   Delay: {http.min_delay_ms}-{http.max_delay_ms}ms, timeout {http.request_timeout_ms}ms")
        logger.info(f"   History window: {output.history_window_days} days")
        if self.dry_run:
            logger.info("🔥 DRY-RUN: snapshot will not be written")

    def run(self, scanner: Optional[BiteReportScanner] = None) -> bool:
        """Crawl, merge and write; False when there is nothing to publish"""
        output_path = self.config.output.output_path
        previous_envelope = read_envelope(output_path)
        previous_reports = load_previous_reports(previous_envelope)
        self.stats['previous_reports'] = len(previous_reports)

        self.scanner = scanner or BiteReportScanner(self.config)
        try:
            self.envelope = self.scanner.run_sync(previous_reports)
        except NoDataError as e:
            logger.error(f"❌ {e}")
            self.stats['errors'].append(str(e))
            return False

        self.stats['published_reports'] = len(self.envelope['data']['reports'])
        if self.dry_run:
            logger.info(f"🔥 DRY-RUN: would write {self.stats['published_reports']} reports to {output_path}")
            return True

        write_envelope(output_path, self.envelope)
        self.stats['written'] = True
        return True

    def print_final_summary(self):
        if self.scanner is not None:
            self.scanner.summary.print_summary()
        duration = (datetime.now() - self.start_time).total_seconds()
        logger.info(
            f"⏱️ Finished in {duration:.1f}s: {self.stats['published_reports']} reports "
            f"(previous {self.stats['previous_reports']}), written={self.stats['written']}"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Cabo Bite Pipeline - fishing report ingestion',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Refresh public/data/biteReports.json
  python3 run_pipeline.py

  # Crawl and build without writing, verbose
  python3 run_pipeline.py --dry-run --log-level DEBUG

  # Shallow crawl into a scratch file
  python3 run_pipeline.py --max-pages-listing 2 --max-pages-archive 3 --output /tmp/bites.json
        """
    )
    parser.add_argument('--output', help='Snapshot path (overrides BITE_OUTPUT_PATH)')
    parser.add_argument('--config', default='config.json', help='Path to config.json (default: config.json)')
    parser.add_argument('--dry-run', action='store_true', help='Crawl and build the envelope without writing it')
    parser.add_argument('--log-level', default='INFO', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')
    parser.add_argument('--log-file', default=DEFAULT_LOG_FILE, help='Log file path (empty string disables)')
    parser.add_argument('--max-pages-listing', type=int, help='Page cap for listing-style sources')
    parser.add_argument('--max-pages-archive', type=int, help='Page cap for archive-style sources')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    for flag in ('max_pages_listing', 'max_pages_archive'):
        value = getattr(args, flag)
        if value is not None and value <= 0:
            parser.error(f"--{flag.replace('_', '-')} must be a positive integer")

    configure_logging(args.log_level, args.log_file)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        logger.error(f"❌ Configuration error: {e}")
        return 2

    orchestrator = BitePipelineOrchestrator(config, dry_run=args.dry_run)
    orchestrator.apply_cli_overrides(args)
    orchestrator.log_effective_params()

    try:
        logger.info("🚀 STARTING BITE REPORT REFRESH")
        success = orchestrator.run()
    except BiteScannerError as e:
        logger.error(f"❌ Pipeline error: {e}")
        return 1

    orchestrator.print_final_summary()

    if success:
        logger.info("✅ BITE REPORT REFRESH COMPLETED")
        return 0
    logger.error("❌ BITE REPORT REFRESH FAILED: nothing published")
    return 1


if __name__ == "__main__":
    sys.exit(main())
