"""
Alert Sweep Scheduler - daily re-evaluation of every active drug

The sweep calls the same AlertService.detect used after each stock write, so
dedup holds no matter which path gets to a drug first.
"""
import asyncio
from datetime import datetime
from typing import Dict, List, Tuple
import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import SessionLocal
from app.core.permissions import UserRole
from app.models import AppUser, Drug
from app.services.alert_service import AlertService
from app.services import notification_service

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "daily_alert_sweep"

# Global scheduler instance
_scheduler = None


def get_alert_recipients(db: Session) -> List[str]:
    """Emails of active admins"""
    return [
        email for (email,) in db.query(AppUser.email).filter(
            AppUser.role == UserRole.ADMIN.value,
            AppUser.is_active == True,
            AppUser.email.isnot(None)
        )
    ]


def sweep_drugs(db: Session) -> Tuple[Dict[str, int], List[Tuple[str, str]]]:
    """
    Run detection for every active drug.

    A failure on one drug is logged and skipped. Returns the stats and the
    rendered (subject, html) emails for the alerts that were opened.
    """
    stats = {"checked": 0, "alerts": 0, "errors": 0, "emails_sent": 0}
    emails = []

    drug_ids = [drug_id for (drug_id,) in db.query(Drug.id).filter(Drug.is_active == True)]
    for drug_id in drug_ids:
        try:
            drug = db.get(Drug, drug_id)
            if drug is None or not drug.is_active:
                continue
            alerts = AlertService.detect(db, drug)
            stats["checked"] += 1
            for alert in alerts:
                stats["alerts"] += 1
                rendered = notification_service.render_alert_email(alert, drug)
                if rendered:
                    emails.append(rendered)
        except Exception as e:
            db.rollback()
            stats["errors"] += 1
            logger.error(f"Alert sweep failed for drug {drug_id}: {e}", exc_info=True)

    return stats, emails


def _sweep_all() -> Tuple[Dict[str, int], List[Tuple[str, str]], List[str]]:
    db = SessionLocal()
    try:
        recipients = get_alert_recipients(db)
        stats, emails = sweep_drugs(db)
    finally:
        db.close()
    return stats, emails, recipients


async def run_alert_sweep() -> Dict[str, int]:
    """One full sweep; database work and mail run in worker threads so the loop keeps serving"""
    started = datetime.now()
    logger.info("Running alert sweep...")

    stats, emails, recipients = await asyncio.to_thread(_sweep_all)

    for subject, html in emails:
        stats["emails_sent"] += await asyncio.to_thread(
            notification_service.notify_recipients, subject, html, recipients
        )

    logger.info(
        f"Alert sweep completed in {(datetime.now() - started).total_seconds():.1f}s - "
        f"checked={stats['checked']}, alerts={stats['alerts']}, "
        f"errors={stats['errors']}, emails={stats['emails_sent']}"
    )
    return stats


class AlertSweepScheduler:
    """
    Manages the scheduled alert sweep
    """
    
    def __init__(self):
        from apscheduler.schedulers.asyncio import AsyncIOScheduler
        self.scheduler = AsyncIOScheduler()
        self.is_running = False
    
    def start(self):
        """Start the scheduler"""
        if self.is_running:
            return
        from apscheduler.triggers.cron import CronTrigger

        self.scheduler.add_job(
            func=self._run_sweep,
            trigger=CronTrigger(hour=settings.ALERT_SWEEP_HOUR, minute=settings.ALERT_SWEEP_MINUTE),
            id=SWEEP_JOB_ID,
            name="Daily alert sweep",
            replace_existing=True,
            max_instances=1,  # Prevent overlapping sweeps
            coalesce=True,
        )
        if settings.ALERT_SWEEP_ON_STARTUP:
            self.trigger_sweep_now()

        self.scheduler.start()
        self.is_running = True
        logger.info(
            f"Alert sweep scheduled daily at {settings.ALERT_SWEEP_HOUR:02d}:{settings.ALERT_SWEEP_MINUTE:02d}"
        )
    
    def stop(self):
        """Stop the scheduler"""
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Alert sweep scheduler stopped")
    
    async def _run_sweep(self):
        try:
            await run_alert_sweep()
        except Exception as e:
            logger.error(f"Alert sweep failed: {e}", exc_info=True)
    
    def trigger_sweep_now(self):
        """Run one sweep as soon as possible"""
        self.scheduler.add_job(
            func=self._run_sweep,
            trigger="date",
            run_date=datetime.now(),
            id=f"{SWEEP_JOB_ID}_immediate",
            replace_existing=True,
        )
        logger.info("Triggered immediate alert sweep")


# ========== Global Functions ==========

def get_scheduler() -> "AlertSweepScheduler":
    """Get or create the global scheduler instance"""
    global _scheduler
    if _scheduler is None:
        _scheduler = AlertSweepScheduler()
    return _scheduler


def start_scheduler():
    """Start the global scheduler"""
    scheduler = get_scheduler()
    scheduler.start()


def stop_scheduler():
    """Stop the global scheduler"""
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None


# ========== CLI Commands ==========

if __name__ == "__main__":
    """
    Run one sweep from the command line:
    python -m app.jobs.alert_sweep
    """
    from app.core.logging_config import setup_logging

    setup_logging()
    asyncio.run(run_alert_sweep())
