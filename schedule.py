import time
import logging
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler

from config import get_settings, parse_reminder_time
from core.reminders import ReminderJobs
from core.slack import get_notifier
from core.storage import get_store

logger = logging.getLogger(__name__)


def make_sink(settings):
    if settings.reminder_delivery == 'celery':
        from celery_app import CeleryReminderSink
        return CeleryReminderSink()
    return get_notifier()


def make_jobs(settings, store=None, sink=None) -> ReminderJobs:
    return ReminderJobs(
        store or get_store(),
        sink or make_sink(settings),
        overdue_threshold=settings.overdue_threshold,
        retention_days=settings.retention_days,
    )


def build_scheduler(jobs: ReminderJobs, settings) -> BackgroundScheduler:
    """Register the daily digest, hourly snooze sweep and weekly cleanup."""
    hour, minute = parse_reminder_time(settings.daily_reminder_time)
    scheduler = BackgroundScheduler()
    # Daily digest at the configured local time
    scheduler.add_job(jobs.send_daily_reminders, 'cron', hour=hour, minute=minute,
                      timezone=settings.timezone, id='daily_reminders')
    # Snoozed tasks every hour on the hour
    scheduler.add_job(jobs.check_snoozed_tasks, 'cron', minute=0, id='snoozed_tasks')
    # Old completed tasks, Sundays at 2am
    scheduler.add_job(jobs.cleanup_old_tasks, 'cron', day_of_week='sun', hour=2, minute=0,
                      id='weekly_cleanup')
    return scheduler


def next_daily_reminder(settings, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now()
    hour, minute = parse_reminder_time(settings.daily_reminder_time)
    upcoming = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    # If time has passed today, schedule for tomorrow
    if upcoming <= now:
        upcoming += timedelta(days=1)
    return upcoming


def get_scheduler_status(settings, now: Optional[datetime] = None) -> dict:
    return {
        'daily_reminder_time': settings.daily_reminder_time,
        'timezone': settings.timezone,
        'next_daily_reminder': next_daily_reminder(settings, now).isoformat(),
    }


def trigger_daily_reminders(jobs: ReminderJobs) -> dict:
    logger.info("🔔 Manually triggering daily reminders...")
    return jobs.send_daily_reminders()


def trigger_snoozed_check(jobs: ReminderJobs) -> int:
    logger.info("⏰ Manually checking snoozed tasks...")
    return jobs.check_snoozed_tasks()


def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(message)s')
    settings = get_settings()
    scheduler = build_scheduler(make_jobs(settings), settings)
    scheduler.start()
    logger.info(f"✅ Scheduler started (daily reminders at {settings.daily_reminder_time} {settings.timezone})")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        scheduler.shutdown()
        logger.info("Scheduler shutdown.")


if __name__ == "__main__":
    main()
