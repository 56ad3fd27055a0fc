#!/usr/bin/env python3
"""
Cabo Bite Scheduler - daily bite report refresh
Runs the bite pipeline once a day at a configured UTC wall-clock time using `schedule`.
"""
import sys
import time
import logging
import argparse
from datetime import datetime
from typing import Any, Dict, Optional

import schedule

from config import load_config
from run_pipeline import BitePipelineOrchestrator, configure_logging
from bite_scanner.scanner import BiteScannerError

logger = logging.getLogger(__name__)

POLL_SECONDS = 60


class BiteScheduler:
    """Schedule and run bite report refreshes"""

    def __init__(self, config_path: str = "config.json", run_at: Optional[str] = None,
                 scheduler: Optional[schedule.Scheduler] = None):
        self.config_path = config_path
        self.run_at = run_at
        self.scheduler = scheduler or schedule.Scheduler()
        self.is_running = False
        self.last_result: Optional[Dict[str, Any]] = None

    def run_refresh(self) -> Dict[str, Any]:
        """One pipeline run; errors are reported, never raised into the schedule loop"""
        logger.info("🚀 Starting scheduled bite report refresh")
        started = datetime.now()
        try:
            config = load_config(self.config_path)
            orchestrator = BitePipelineOrchestrator(config)
            success = orchestrator.run()
            orchestrator.print_final_summary()
            result = {'success': success, 'stats': dict(orchestrator.stats)}
        except BiteScannerError as e:
            logger.error(f"❌ Refresh failed: {e}")
            result = {'success': False, 'error': str(e)}
        except Exception as e:
            logger.exception(f"❌ Unexpected error during refresh: {e}")
            result = {'success': False, 'error': str(e)}

        result['started_at'] = started.isoformat()
        result['duration_s'] = round((datetime.now() - started).total_seconds(), 1)
        self.last_result = result
        if result['success']:
            logger.info(f"✅ Refresh completed in {result['duration_s']}s")
        return result

    def setup_scheduled_tasks(self):
        run_at = self.run_at or load_config(self.config_path).schedule_at
        logger.info(f"📅 Scheduling daily bite refresh at {run_at}")
        self.scheduler.every().day.at(run_at).do(self.run_refresh)

    def run_loop(self):
        """Main scheduling loop"""
        logger.info("🔄 Starting scheduler loop...")
        self.is_running = True
        while self.is_running:
            try:
                self.scheduler.run_pending()
                time.sleep(POLL_SECONDS)
            except KeyboardInterrupt:
                logger.info("🛑 Received interrupt signal")
                self.is_running = False

    def stop(self):
        logger.info("🛑 Stopping scheduler...")
        self.is_running = False


def main(argv=None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Cabo Bite Scheduler')
    parser.add_argument('--once', action='store_true', help='Run a single refresh and exit')
    parser.add_argument('--at', help='Daily run time HH:MM (overrides BITE_SCHEDULE_AT)')
    parser.add_argument('--config', default='config.json', help='Path to config.json')
    parser.add_argument('--log-file', default='bite_scheduler.log', help='Log file path')
    args = parser.parse_args(argv)

    configure_logging('INFO', args.log_file)
    bite_scheduler = BiteScheduler(config_path=args.config, run_at=args.at)

    if args.once:
        result = bite_scheduler.run_refresh()
        return 0 if result['success'] else 1

    bite_scheduler.setup_scheduled_tasks()
    bite_scheduler.run_loop()
    logger.info("👋 Scheduler stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
