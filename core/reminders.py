"""Reminder sweeps.

Three independent jobs run by the scheduler: the daily digest, the hourly
snooze-expiry sweep and the weekly retention sweep. Each job receives its
store and reminder sink at construction. A failure for one team, user or task
is logged and the sweep moves on to the next one.
"""

import time
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from .lifecycle import end_of_day
from .slack import task_summary

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60


def daily_digest_payload(team_id: str, due_today: List, overdue: List) -> Dict[str, Any]:
    return {
        'kind': 'daily_digest',
        'team_id': team_id,
        'due_today': [task_summary(t) for t in due_today],
        'overdue': [task_summary(t) for t in overdue],
    }


def channel_digest_payload(team_id: str, overdue_count: int) -> Dict[str, Any]:
    return {'kind': 'channel_digest', 'team_id': team_id, 'overdue_count': overdue_count}


def snooze_expired_payload(task) -> Dict[str, Any]:
    return {'kind': 'snooze_expired', 'team_id': task.team_id, 'task': task_summary(task)}


class ReminderJobs:
    """The scheduled reminder sweeps over a task store."""

    def __init__(self, store, sink, overdue_threshold: int = 5, retention_days: int = 30,
                 clock=time.time):
        self.store = store
        self.sink = sink
        self.overdue_threshold = overdue_threshold
        self.retention_days = retention_days
        self.clock = clock

    def _deliver(self, recipient: str, payload: Dict[str, Any]) -> bool:
        """Hand a payload to the sink; failures are logged, never raised."""
        try:
            delivered = self.sink.send(recipient, payload)
        except Exception:
            logger.exception(f"Failed to deliver {payload.get('kind')} reminder to {recipient}")
            return False
        if delivered is False:
            logger.warning(f"Reminder sink rejected {payload.get('kind')} reminder for {recipient}")
            return False
        return True

    # ===== Daily digest =====

    def send_daily_reminders(self, now: Optional[float] = None) -> Dict[str, int]:
        """Send each user their due and overdue tasks, for every active team."""
        now = self.clock() if now is None else now
        stats = {'teams': 0, 'reminders': 0, 'failures': 0}

        teams = self.store.teams_with_active_tasks()
        logger.info(f"📊 Found {len(teams)} teams with active tasks")

        for team_id in teams:
            try:
                sent, failed = self.send_team_daily_reminder(team_id, now)
            except Exception:
                logger.exception(f"Error sending team reminder for {team_id}")
                stats['failures'] += 1
                continue
            stats['teams'] += 1
            stats['reminders'] += sent
            stats['failures'] += failed

        logger.info(f"🔔 Daily reminders done: {stats}")
        return stats

    def send_team_daily_reminder(self, team_id: str, now: float):
        tasks = self.store.get_tasks_due_or_overdue(team_id, end_of_day(now), int(now))
        if not tasks:
            return 0, 0

        by_user: "OrderedDict[str, List]" = OrderedDict()
        for task in tasks:
            by_user.setdefault(task.owner_id, []).append(task)

        sent, failed = 0, 0
        for user_id, user_tasks in by_user.items():
            overdue = [t for t in user_tasks if t.due_date < now]
            due_today = [t for t in user_tasks if t.due_date >= now]
            if self._deliver(user_id, daily_digest_payload(team_id, due_today, overdue)):
                sent += 1
                logger.info(f"📨 Sent daily reminder to user {user_id} ({len(user_tasks)} tasks)")
            else:
                failed += 1

        overdue_count = sum(1 for t in tasks if t.due_date < now)
        if overdue_count >= self.overdue_threshold:
            # TODO: let teams configure a reminder channel instead of reusing a task's channel
            channel = self.store.channel_for_team(team_id)
            if channel and self._deliver(channel, channel_digest_payload(team_id, overdue_count)):
                sent += 1
                logger.info(f"📢 Sent channel reminder to {channel} for {overdue_count} overdue tasks")
            elif channel:
                failed += 1

        return sent, failed

    # ===== Snooze expiry =====

    def check_snoozed_tasks(self, now: Optional[float] = None) -> int:
        """Remind owners of tasks whose snooze has passed, then clear the snooze.

        The snooze is cleared after the delivery attempt whether or not it
        succeeded, so each expiry fires at most once.
        """
        now = self.clock() if now is None else now
        tasks = self.store.get_expired_snoozes(int(now))
        logger.info(f"⏰ Found {len(tasks)} tasks ready to be re-reminded")

        cleared = 0
        for task in tasks:
            if self._deliver(task.owner_id, snooze_expired_payload(task)):
                logger.info(f"⏰ Sent snooze reminder for task {task.id} to user {task.owner_id}")
            try:
                if self.store.clear_snooze(task.id):
                    cleared += 1
            except Exception:
                logger.exception(f"Failed to clear snooze for task {task.id}")
        return cleared

    # ===== Retention =====

    def cleanup_old_tasks(self, now: Optional[float] = None) -> int:
        """Delete completed tasks older than the retention window."""
        now = self.clock() if now is None else now
        cutoff = int(now) - self.retention_days * DAY_SECONDS
        removed = self.store.delete_stale_completed(cutoff)
        logger.info(f"🧹 Cleaned up {removed} old completed tasks")
        return removed
