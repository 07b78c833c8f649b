# Jobs Package - Scheduled background tasks
from .alert_sweep import AlertSweepScheduler, run_alert_sweep, start_scheduler, stop_scheduler

__all__ = ["AlertSweepScheduler", "run_alert_sweep", "start_scheduler", "stop_scheduler"]
