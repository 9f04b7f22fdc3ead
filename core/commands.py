"""Inbound message handling.

One message runs one pipeline: parse, then mutate or query through the
TaskManager, then return a CommandResult for the presentation layer.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from db import Task
from .errors import AlreadyDone, TaskError
from .parser import CommandAction, ParsedCommand, classify_management_command, looks_like_task, \
    parse_task_creation
from .slack import task_summary
from .users import UserRef

logger = logging.getLogger(__name__)

LIST_TITLES = {
    'completed': 'Your Completed Tasks',
    'overdue': 'Your Overdue Tasks',
    'all': 'All Your Tasks',
    'pending': 'Your Pending Tasks',
}


@dataclass
class CommandResult:
    action: CommandAction
    ok: bool = True
    message: Optional[str] = None
    task: Optional[Task] = None
    tasks: List[Task] = field(default_factory=list)
    snooze_until: Optional[int] = None
    title: Optional[str] = None
    error: Optional[str] = None


class CommandHandler:
    """Routes parsed messages to the TaskManager."""

    def __init__(self, manager, sink=None, list_limit: int = 50):
        self.manager = manager
        self.sink = sink
        self.list_limit = list_limit

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.manager.clock())

    def handle_message(self, text: str, user: UserRef, team_id: str, channel_id: str,
                       is_mention: bool = False) -> Optional[CommandResult]:
        """Handle one inbound message. Returns None when the message is ignored."""
        text = (text or '').strip()
        if not text:
            return None

        now = self._now()
        command = classify_management_command(text, now)
        if command is None:
            if looks_like_task(text):
                command = ParsedCommand(CommandAction.CREATE, intent=parse_task_creation(text, now))
            elif is_mention:
                command = ParsedCommand(CommandAction.HELP)
            else:
                return None

        try:
            return self.dispatch(command, user, team_id, channel_id)
        except AlreadyDone as e:
            return CommandResult(command.action, ok=True, message=e.message, task=e.task)
        except TaskError as e:
            logger.info(f"{command.action} failed for {user.user_id}: {e.message}")
            return CommandResult(command.action, ok=False, message=e.message, error=type(e).__name__)

    def dispatch(self, command: ParsedCommand, user: UserRef, team_id: str, channel_id: str) -> CommandResult:
        action = command.action

        if action == CommandAction.HELP:
            return CommandResult(action)

        if action == CommandAction.LIST:
            status = command.status or 'pending'
            tasks = self.manager.list(user.user_id, team_id, status=status, limit=self.list_limit)
            return CommandResult(action, tasks=tasks, title=LIST_TITLES.get(status, 'Your Tasks'))

        if action == CommandAction.COMPLETE:
            task = self.manager.complete(command.task_id, user.user_id, team_id)
            return CommandResult(action, task=task)

        if action == CommandAction.SNOOZE:
            task, snooze_until = self.manager.snooze(command.task_id, command.time_expression,
                                                     user.user_id, team_id,
                                                     snooze_until=command.snooze_until)
            return CommandResult(action, task=task, snooze_until=snooze_until)

        if action == CommandAction.DELETE:
            task = self.manager.delete(command.task_id, user.user_id, team_id)
            return CommandResult(action, task=task)

        if action == CommandAction.SHOW:
            task = self.manager.show(command.task_id, user.user_id, team_id)
            return CommandResult(action, task=task)

        task = self.manager.create(command.intent, user, team_id, channel_id)
        self._notify_assignee(task, user)
        return CommandResult(action, task=task)

    def _notify_assignee(self, task: Task, creator: UserRef) -> None:
        if self.sink is None or not task.assigned_to_user_id or task.assigned_to_user_id == creator.user_id:
            return
        payload = {
            'kind': 'task_assigned',
            'team_id': task.team_id,
            'assigned_by': creator.username,
            'task': task_summary(task),
        }
        try:
            self.sink.send(task.assigned_to_user_id, payload)
        except Exception:
            logger.exception(f"Could not notify assignee {task.assigned_to_user_id} of task {task.id}")
