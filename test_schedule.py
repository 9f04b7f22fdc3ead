"""Tests for settings, scheduler wiring and Celery delivery."""

from datetime import datetime

import pytest
from apscheduler.triggers.cron import CronTrigger

import celery_app
from config import Settings, get_settings, parse_reminder_time
from core.reminders import ReminderJobs
from core.slack import SlackNotifier
from schedule import build_scheduler, get_scheduler_status, make_jobs, make_sink, next_daily_reminder


def fields(job):
    return {field.name: str(field) for field in job.trigger.fields}


@pytest.mark.parametrize("value, expected", [
    ("09:00", (9, 0)),
    ("17:45", (17, 45)),
    (" 7:05 ", (7, 5)),
    ("25:00", (9, 0)),
    ("noon", (9, 0)),
    ("", (9, 0)),
    (None, (9, 0)),
])
def test_parse_reminder_time(value, expected):
    assert parse_reminder_time(value) == expected


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("DAILY_REMINDER_TIME", "08:30")
    monkeypatch.setenv("OVERDUE_THRESHOLD", "3")
    monkeypatch.setenv("RETENTION_DAYS", "not-a-number")
    monkeypatch.setenv("REMINDER_DELIVERY", " Celery ")

    settings = get_settings(reload=True)
    try:
        assert settings.daily_reminder_time == "08:30"
        assert settings.overdue_threshold == 3
        assert settings.retention_days == 30
        assert settings.reminder_delivery == "celery"
        assert get_settings() is settings
    finally:
        monkeypatch.undo()
        get_settings(reload=True)


def test_build_scheduler_registers_the_three_jobs(store, sink):
    settings = Settings(daily_reminder_time="07:30", timezone="Europe/London")
    scheduler = build_scheduler(ReminderJobs(store, sink), settings)

    jobs = {job.id: job for job in scheduler.get_jobs()}
    assert set(jobs) == {'daily_reminders', 'snoozed_tasks', 'weekly_cleanup'}
    assert all(isinstance(job.trigger, CronTrigger) for job in jobs.values())

    daily = fields(jobs['daily_reminders'])
    assert (daily['hour'], daily['minute']) == ('7', '30')
    assert str(jobs['daily_reminders'].trigger.timezone) == "Europe/London"
    assert fields(jobs['snoozed_tasks'])['minute'] == '0'
    weekly = fields(jobs['weekly_cleanup'])
    assert (weekly['day_of_week'], weekly['hour'], weekly['minute']) == ('sun', '2', '0')


def test_next_daily_reminder():
    settings = Settings(daily_reminder_time="09:00")
    assert next_daily_reminder(settings, datetime(2026, 10, 19, 8, 0)) == datetime(2026, 10, 19, 9, 0)
    assert next_daily_reminder(settings, datetime(2026, 10, 19, 9, 0)) == datetime(2026, 10, 20, 9, 0)

    status = get_scheduler_status(settings, datetime(2026, 10, 19, 10, 0))
    assert status['next_daily_reminder'] == "2026-10-20T09:00:00"
    assert status['timezone'] == "America/New_York"


def test_make_jobs_uses_settings(store, sink):
    jobs = make_jobs(Settings(overdue_threshold=2, retention_days=7), store=store, sink=sink)
    assert jobs.overdue_threshold == 2
    assert jobs.retention_days == 7
    assert jobs.sink is sink


def test_make_sink():
    assert isinstance(make_sink(Settings()), SlackNotifier)
    assert isinstance(make_sink(Settings(reminder_delivery="celery")), celery_app.CeleryReminderSink)


def test_celery_sink_queues_delivery(monkeypatch):
    queued = []
    monkeypatch.setattr(celery_app.deliver_reminder, "delay", lambda *args: queued.append(args))

    payload = {'kind': 'channel_digest', 'team_id': 'T1', 'overdue_count': 5}
    assert celery_app.CeleryReminderSink().send("C1", payload) is True
    assert queued == [("C1", payload)]


def test_deliver_reminder_task_posts_through_the_notifier(monkeypatch):
    posted = []

    class Notifier:
        def send(self, recipient, payload):
            posted.append((recipient, payload))
            return True

    monkeypatch.setattr(celery_app, "get_notifier", lambda: Notifier())
    payload = {'kind': 'channel_digest', 'team_id': 'T1', 'overdue_count': 5}

    assert celery_app.deliver_reminder("C1", payload) is True
    assert posted == [("C1", payload)]
