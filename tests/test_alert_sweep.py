import asyncio
import time
from datetime import date, timedelta
from unittest.mock import patch

from app.core.config import settings
from app.jobs import alert_sweep
from app.jobs.alert_sweep import get_alert_recipients, run_alert_sweep, sweep_drugs
from app.models import Alert
from app.services import AlertService, notification_service


def test_sweep_raises_alerts_for_every_condition(db, make_drug):
    make_drug(batch_no="LOW", quantity=3)
    make_drug(batch_no="EXP", expiry_date=date.today() + timedelta(days=4))
    make_drug(batch_no="OK")

    stats, emails = sweep_drugs(db)

    assert stats == {"checked": 3, "alerts": 2, "errors": 0, "emails_sent": 0}
    assert sorted(subject for subject, _ in emails) == [
        "Expiry Alert: Amoxicillin 500mg",
        "Low Stock Alert: Amoxicillin 500mg",
    ]
    assert db.query(Alert).count() == 2


def test_sweep_is_idempotent(db, make_drug):
    make_drug(quantity=0)
    sweep_drugs(db)
    stats, emails = sweep_drugs(db)

    assert stats["alerts"] == 0
    assert emails == []
    assert db.query(Alert).count() == 1


def test_sweep_skips_inactive_drugs(db, users, make_drug):
    from app.services import DrugService

    drug = make_drug(quantity=0)
    DrugService.delete_drug(db, drug.id, users["admin"])

    stats, _ = sweep_drugs(db)
    assert stats["checked"] == 0


def test_one_failing_drug_does_not_stop_the_sweep(db, make_drug, monkeypatch):
    broken = make_drug(batch_no="BROKEN", quantity=0)
    make_drug(batch_no="LOW", quantity=0)
    original = AlertService.detect

    def flaky_detect(db, drug, publish=True):
        if drug.id == broken.id:
            raise RuntimeError("boom")
        return original(db, drug, publish)

    monkeypatch.setattr(AlertService, "detect", flaky_detect)
    stats, _ = sweep_drugs(db)

    assert stats["errors"] == 1
    assert stats["alerts"] == 1
    assert db.query(Alert).count() == 1


def test_recipients_are_active_admins(db, users):
    users["warehouse"].role = "admin"
    users["warehouse"].is_active = False
    db.commit()

    assert get_alert_recipients(db) == ["admin@pharmatrack.test"]


def test_run_alert_sweep_mails_admins(db, users, make_drug, monkeypatch):
    sent = []
    monkeypatch.setattr(settings, "SMTP_HOST", "smtp.pharmatrack.test")
    monkeypatch.setattr(settings, "SMTP_FROM", "alerts@pharmatrack.test")
    monkeypatch.setattr(notification_service, "send_email", lambda to, subject, html: sent.append((to, subject)))
    make_drug(quantity=0)

    stats = asyncio.run(run_alert_sweep())

    assert stats["alerts"] == 1
    assert stats["emails_sent"] == 1
    assert sent == [("admin@pharmatrack.test", "Low Stock Alert: Amoxicillin 500mg")]


def test_sweep_leaves_the_event_loop_free(db, users, make_drug, monkeypatch):
    for n in range(5):
        make_drug(batch_no=f"LOW-{n}", quantity=0)
    original = AlertService.detect

    def slow_detect(db, drug, publish=True):
        time.sleep(0.05)
        return original(db, drug, publish)

    monkeypatch.setattr(AlertService, "detect", slow_detect)

    async def scenario():
        ticks = 0
        sweep = asyncio.create_task(run_alert_sweep())
        while not sweep.done():
            ticks += 1
            await asyncio.sleep(0.01)
        return ticks, sweep.result()

    ticks, stats = asyncio.run(scenario())

    assert stats["alerts"] == 5
    assert ticks > 5


def test_sweep_alerts_reach_connected_sockets(db, users, make_drug):
    from app.services.realtime import ConnectionManager

    class Socket:
        def __init__(self):
            self.sent = []

        async def accept(self):
            pass

        async def send_json(self, message):
            self.sent.append(message)

    make_drug(quantity=0)
    fan_out = ConnectionManager()
    socket = Socket()

    async def scenario():
        await fan_out.connect(socket, ["role:admin"])
        with patch("app.services.alert_service.manager", fan_out):
            await run_alert_sweep()
        await asyncio.sleep(0)
        while fan_out._pending:
            await asyncio.gather(*list(fan_out._pending))

    asyncio.run(scenario())

    assert [m["event"] for m in socket.sent] == ["newAlert"]


def test_email_failures_are_swallowed(db, users, make_drug, monkeypatch):
    monkeypatch.setattr(settings, "SMTP_HOST", "smtp.pharmatrack.test")
    monkeypatch.setattr(settings, "SMTP_FROM", "alerts@pharmatrack.test")

    def refuse(to, subject, html):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr(notification_service, "send_email", refuse)
    make_drug(quantity=0)

    stats = asyncio.run(run_alert_sweep())

    assert stats["alerts"] == 1
    assert stats["emails_sent"] == 0


def test_email_skipped_when_unconfigured(monkeypatch):
    monkeypatch.setattr(settings, "SMTP_HOST", None)
    assert notification_service.send_alert_email("a@b.test", "s", "<p>x</p>") is False


def test_scheduler_registers_daily_job(monkeypatch):
    monkeypatch.setattr(settings, "ALERT_SWEEP_HOUR", 2)
    monkeypatch.setattr(settings, "ALERT_SWEEP_ON_STARTUP", False)

    async def scenario():
        scheduler = alert_sweep.AlertSweepScheduler()
        scheduler.start()
        try:
            job = scheduler.scheduler.get_job(alert_sweep.SWEEP_JOB_ID)
            assert job is not None
            assert "hour='2'" in str(job.trigger)
        finally:
            scheduler.stop()

    asyncio.run(scenario())
