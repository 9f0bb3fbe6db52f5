import datetime as dt

from app.services import sweep_service
from app.services.sweep_service import PassResult, Sent, SweepReport
from app.workers.celery_app import celery_app
from app.workers.tasks import run_nightly_sweep


def test_task_registered_under_beat_name():
    assert "subscriptions.run_nightly_sweep" in celery_app.tasks


def test_task_runs_sweep_and_returns_summary(monkeypatch):
    async def fake_run(self):
        return SweepReport(
            dt.date(2025, 6, 15),
            PassResult("deactivation", [Sent(1, "downgraded")]),
            PassResult("reminders"),
            PassResult("notifications"),
        )

    monkeypatch.setattr(sweep_service.SubscriptionSweep, "run", fake_run)

    summary = run_nightly_sweep.delay().get()

    assert summary["run_date"] == "2025-06-15"
    assert summary["deactivation"] == {"sent": 1, "skipped": 0, "failed": 0}
    assert summary["reminders"]["sent"] == 0
