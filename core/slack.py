"""Slack delivery and plain-text rendering.

SlackNotifier is the reminder sink: ``send(recipient, payload)`` renders a
reminder payload to text and posts it. Delivery is fire-and-forget; failures
are logged and reported as False, never raised.
"""

import os
import logging
import requests
from datetime import datetime
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()
logger = logging.getLogger(__name__)

SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"

PRIORITY_ICONS = {'urgent': '🔴', 'high': '🟠', 'medium': '🟡', 'low': '🟢'}

HELP_TEXT = (
    "*Todo Bot commands*\n"
    "• Create a task: `Pay electricity bill @ali #finance tomorrow 5pm`\n"
    "• `list [all|pending|completed|overdue]` - show your tasks\n"
    "• `done <id>` - mark a task as completed\n"
    "• `snooze <id> <when>` - e.g. `snooze abc12345 +2h` or `snooze abc12345 tomorrow 9am`\n"
    "• `delete <id>` - delete a task you created\n"
    "• `show <id>` - show task details\n"
    "• `help` - this message\n"
    "Add `urgent`, `important` or `low priority` to set priority."
)


def _format_ts(ts: Optional[int]) -> str:
    if not ts:
        return ''
    return datetime.fromtimestamp(ts).strftime('%b %d %H:%M')


def task_summary(task) -> Dict[str, Any]:
    """JSON-serialisable view of a task for reminder payloads."""
    return {
        'id': task.id,
        'short_id': task.id[:8],
        'title': task.title,
        'priority': task.priority,
        'status': task.status,
        'due_date': task.due_date,
        'assignee': task.assigned_to_username,
        'team_id': task.team_id,
        'channel_id': task.channel_id,
    }


def format_task_line(task: Dict[str, Any]) -> str:
    icon = PRIORITY_ICONS.get(task.get('priority'), '•')
    line = f"{icon} {task['title']} (`{task['short_id']}`)"
    if task.get('due_date'):
        line += f" - due {_format_ts(task['due_date'])}"
    if task.get('assignee'):
        line += f" - @{task['assignee']}"
    return line


def format_task(task, detailed: bool = False) -> str:
    line = format_task_line(task_summary(task))
    if not detailed:
        return line
    lines = [line, f"Status: {task.status}", f"Priority: {task.priority}",
             f"Created by: @{task.created_by_username}"]
    if task.tag_list:
        lines.append("Tags: " + ' '.join(f"#{t}" for t in task.tag_list))
    if task.description:
        lines.append(task.description)
    if task.snooze_until:
        lines.append(f"Snoozed until: {_format_ts(task.snooze_until)}")
    return "\n".join(lines)


def render_payload(payload: Dict[str, Any]) -> str:
    """Render a reminder payload as plain Slack text."""
    kind = payload.get('kind')

    if kind == 'daily_digest':
        lines = ["☀️ *Daily Task Reminder*"]
        if payload.get('overdue'):
            lines.append("\n*Overdue*")
            lines.extend(format_task_line(t) for t in payload['overdue'])
        if payload.get('due_today'):
            lines.append("\n*Due today*")
            lines.extend(format_task_line(t) for t in payload['due_today'])
        return "\n".join(lines)

    if kind == 'channel_digest':
        return (f"⚠️ *Team Reminder*\n\nThere are {payload['overdue_count']} overdue tasks that need "
                "attention. Please check your individual reminders and update your task statuses.\n\n"
                "Type `list overdue` to see overdue tasks.")

    if kind == 'snooze_expired':
        task = payload['task']
        return (f"⏰ *Snooze Reminder*\n\n{task['title']}\n\nThis task was snoozed and is ready for your "
                f"attention!\n\nUse `done {task['short_id']}` to mark as complete or "
                f"`snooze {task['short_id']} +1h` to snooze again.")

    if kind == 'task_assigned':
        return (f"🔔 You've been assigned a new task by @{payload.get('assigned_by')}:\n\n"
                f"{format_task_line(payload['task'])}")

    return payload.get('text', '')


def format_result(result) -> str:
    """Render a CommandResult as plain Slack text."""
    if not result.ok:
        return f"❌ {result.message}"

    action = str(result.action)
    if action == 'help':
        return HELP_TEXT
    if action == 'list':
        tasks: List = result.tasks or []
        if not tasks:
            return f"*{result.title}*\n\nNo tasks found. 🎉"
        return f"*{result.title}* ({len(tasks)})\n\n" + "\n".join(format_task(t) for t in tasks)
    if action == 'create':
        return f"✅ *Task created*\n\n{format_task(result.task, detailed=True)}"
    if action == 'complete':
        if result.message:
            return result.message
        return f"🎉 *Task completed*\n\n~{result.task.title}~"
    if action == 'snooze':
        return f"😴 *Task snoozed* until {_format_ts(result.snooze_until)}\n\n{format_task(result.task)}"
    if action == 'delete':
        return f"🗑️ *Task deleted*\n\n~{result.task.title}~"
    if action == 'show':
        return f"*Task Details*\n\n{format_task(result.task, detailed=True)}"
    return result.message or ''


class SlackNotifier:
    """Centralized Slack delivery."""

    def __init__(self, bot_token: Optional[str] = None, webhook_url: Optional[str] = None):
        """Initialize with a bot token and/or webhook URL from env or parameters."""
        self.bot_token = bot_token or os.getenv('SLACK_BOT_TOKEN')
        self.webhook_url = webhook_url or os.getenv('SLACK_WEBHOOK_URL')
        if not self.bot_token and not self.webhook_url:
            logger.warning("Neither SLACK_BOT_TOKEN nor SLACK_WEBHOOK_URL set. Slack delivery will be disabled.")

    def post_message(self, channel: str, text: str) -> bool:
        """Post text to a channel or user id (a DM).

        Falls back to the incoming webhook when no bot token is configured.

        Returns:
            True if sent successfully, False otherwise
        """
        if self.bot_token:
            try:
                response = requests.post(
                    SLACK_POST_MESSAGE_URL,
                    headers={"Authorization": f"Bearer {self.bot_token}"},
                    json={"channel": channel, "text": text, "unfurl_links": False},
                    timeout=10,
                )
                data = response.json()
            except (requests.RequestException, ValueError) as e:
                logger.exception(f"Failed to send Slack message to {channel}: {e}")
                return False
            if not data.get('ok'):
                logger.error(f"Slack message to {channel} failed: {data.get('error')}")
                return False
            logger.info(f"Slack message sent to {channel}")
            return True

        if self.webhook_url:
            try:
                response = requests.post(self.webhook_url, json={"text": text}, timeout=10)
            except requests.RequestException as e:
                logger.exception(f"Failed to send Slack notification: {e}")
                return False
            if response.status_code != 200:
                logger.error(f"Slack notification failed: {response.status_code} - {response.text}")
                return False
            logger.info("Slack notification sent successfully")
            return True

        logger.warning(f"Cannot send Slack message to {channel}: Slack not configured")
        return False

    def send(self, recipient: str, payload: Dict[str, Any]) -> bool:
        """Reminder sink entry point."""
        return self.post_message(recipient, render_payload(payload))


# Global singleton instance
_default_notifier: Optional[SlackNotifier] = None


def get_notifier() -> SlackNotifier:
    """Get or create the default SlackNotifier instance."""
    global _default_notifier
    if _default_notifier is None:
        _default_notifier = SlackNotifier()
    return _default_notifier
