#!/usr/bin/env python3
"""
Standalone Alert Sweep Runner - for deployments that run the web app with
ALERT_SWEEP_ENABLED=false and keep the daily sweep in its own process.
Usage: python scheduler.py [--once]

Logs go to LOGS_PATH/scheduler.log (rotated, 50MB x 7) when LOGS_PATH is set.
"""

import asyncio
import sys
import time
from datetime import datetime
import logging

import schedule

from app.core import settings
from app.core.logging_config import setup_logging
from app.jobs.alert_sweep import run_alert_sweep

logger = logging.getLogger(__name__)


def run_sweep():
    """Run one sweep and log a summary"""
    start_time = datetime.now()
    logger.info("=" * 50)
    logger.info(f"Starting alert sweep at {start_time.strftime('%Y-%m-%d %H:%M:%S')}")

    try:
        stats = asyncio.run(run_alert_sweep())
        duration = (datetime.now() - start_time).total_seconds()
        logger.info(f"Sweep completed in {duration:.1f}s")
        logger.info(
            f"   Drugs checked={stats['checked']}, alerts={stats['alerts']}, "
            f"errors={stats['errors']}, emails={stats['emails_sent']}"
        )
    except Exception as e:
        logger.error(f"Sweep failed: {e}", exc_info=True)

    logger.info("=" * 50)


def main():
    setup_logging(log_file="scheduler.log")

    if "--once" in sys.argv:
        run_sweep()
        return

    at = f"{settings.ALERT_SWEEP_HOUR:02d}:{settings.ALERT_SWEEP_MINUTE:02d}"
    logger.info(f"{settings.APP_NAME} sweep scheduler started")
    logger.info(f"   Schedule: daily at {at}")

    if settings.ALERT_SWEEP_ON_STARTUP:
        run_sweep()

    schedule.every().day.at(at).do(run_sweep)

    while True:
        schedule.run_pending()
        time.sleep(60)  # Check every minute


if __name__ == "__main__":
    main()
