"""Task lifecycle management.

Creates, lists, completes, snoozes, deletes, shows and reassigns tasks on top
of a TaskStore, enforcing who may do what. Every command path resolves task
identifiers through ``resolve_task`` so short ids behave the same everywhere.
"""

import time
import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from db import Task
from .errors import AlreadyDone, Forbidden, InvalidCommand, InvalidState, NotFound
from .parser import TaskIntent
from .task import TaskStatus, can_transition, is_open
from .time_expressions import resolve_time_expression
from .users import UserRef

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 20


class Relation(str, Enum):
    CREATOR = "creator"
    CREATOR_OR_ASSIGNEE = "creator_or_assignee"


def authorize(task: Task, user_id: str, relation: Relation) -> bool:
    """Check the acting user's relation to a task."""
    if task.created_by_user_id == user_id:
        return True
    if relation == Relation.CREATOR_OR_ASSIGNEE:
        return task.assigned_to_user_id is not None and task.assigned_to_user_id == user_id
    return False


def end_of_day(now: float) -> int:
    local = datetime.fromtimestamp(now)
    return int(local.replace(hour=23, minute=59, second=59, microsecond=0).timestamp())


def _not_found(identifier: str) -> NotFound:
    return NotFound(f'Task "{identifier}" not found. Use `list` to see your tasks.')


class TaskManager:
    """Owns task state transitions and their permission rules."""

    def __init__(self, store, user_resolver=None, clock=time.time):
        self.store = store
        self.user_resolver = user_resolver
        self.clock = clock

    def _now(self) -> int:
        return int(self.clock())

    def _resolve_assignee(self, name: str, team_id: str, user_resolver) -> Tuple[Optional[str], str]:
        resolver = user_resolver or self.user_resolver
        resolved = resolver.lookup_by_mention(name, team_id) if resolver else None
        if resolved:
            return resolved.user_id, resolved.username
        return None, name.lstrip('@')

    def resolve_task(self, identifier: str, user_id: str, team_id: str) -> Task:
        """Find a task by exact id, then by id prefix among the caller's tasks.

        The prefix fallback only looks at tasks the caller created or is assigned,
        newest first; the first match wins.
        """
        identifier = (identifier or '').strip()
        if not identifier:
            raise InvalidCommand("Please tell me which task, e.g. `done abc12345`.")

        task = self.store.get_task(identifier)
        if task and task.team_id == team_id:
            return task

        prefix = identifier.lower()
        for candidate in self.store.find_by_user(user_id, team_id=team_id):
            if candidate.id.lower().startswith(prefix):
                return candidate

        raise _not_found(identifier)

    def _require(self, task: Task, user_id: str, relation: Relation, message: str) -> None:
        if not authorize(task, user_id, relation):
            logger.info(f"User {user_id} denied {relation.value} access to task {task.id}")
            raise Forbidden(message)

    def create(self, intent: TaskIntent, creator: UserRef, team_id: str, channel_id: str,
               user_resolver=None) -> Task:
        if intent is None or intent.is_untitled:
            raise InvalidCommand("Could not understand the task. Please provide a clear task description.")

        assigned_to_user_id, assigned_to_username = None, None
        if intent.assignee:
            assigned_to_user_id, assigned_to_username = self._resolve_assignee(
                intent.assignee, team_id, user_resolver)

        task = self.store.create_task(
            title=intent.title,
            description=intent.description,
            assigned_to_user_id=assigned_to_user_id,
            assigned_to_username=assigned_to_username,
            created_by_user_id=creator.user_id,
            created_by_username=creator.username,
            team_id=team_id,
            channel_id=channel_id,
            tags=intent.tags,
            due_date=intent.due_date,
            priority=str(intent.priority),
            created_at=self._now(),
        )
        logger.info(f"Created task {task.id} '{task.title}' for team {team_id} by {creator.user_id}")

        self.store.upsert_user(creator.user_id, creator.username, team_id,
                               creator.display_name, creator.real_name)
        if assigned_to_user_id:
            self.store.upsert_user(assigned_to_user_id, assigned_to_username, team_id)

        return task

    def list(self, user_id: str, team_id: str, status: Optional[str] = 'pending',
             limit: int = DEFAULT_LIST_LIMIT) -> List[Task]:
        """List the caller's tasks, newest first.

        ``status`` is a task status, ``'all'``/None for everything, or
        ``'overdue'`` for open tasks due by now.
        """
        if status == 'overdue':
            return self.store.find_by_user(user_id, team_id=team_id, due_before=self._now(),
                                           exclude_completed=True, limit=limit)
        if status in (None, 'all'):
            return self.store.find_by_user(user_id, team_id=team_id, limit=limit)
        return self.store.find_by_user(user_id, status=str(TaskStatus.from_string(status)),
                                       team_id=team_id, limit=limit)

    def complete(self, identifier: str, user_id: str, team_id: str) -> Task:
        task = self.resolve_task(identifier, user_id, team_id)
        self._require(task, user_id, Relation.CREATOR_OR_ASSIGNEE,
                      "You can only complete tasks that are assigned to you or created by you.")

        current = TaskStatus.from_string(task.status)
        if current == TaskStatus.COMPLETED:
            raise AlreadyDone(task)
        if not can_transition(current, TaskStatus.COMPLETED):
            raise InvalidState(f"Cannot complete a {current.value} task.")

        updated = self.store.update_status(task.id, TaskStatus.COMPLETED, now=self._now())
        logger.info(f"Task {task.id} completed by {user_id}")
        return updated

    def snooze(self, identifier: str, time_expression: str, user_id: str, team_id: str,
               snooze_until: Optional[int] = None) -> Tuple[Task, int]:
        """Snooze a task. ``snooze_until`` skips resolving ``time_expression`` when already known."""
        task = self.resolve_task(identifier, user_id, team_id)
        self._require(task, user_id, Relation.CREATOR_OR_ASSIGNEE,
                      "You can only snooze tasks that are assigned to you or created by you.")

        if TaskStatus.from_string(task.status) == TaskStatus.COMPLETED:
            raise InvalidState("Cannot snooze a completed task.")
        if not is_open(task.status):
            raise InvalidState(f"Cannot snooze a {task.status} task.")

        if snooze_until is None:
            snooze_until = resolve_time_expression(time_expression, datetime.fromtimestamp(self.clock()))
        updated = self.store.set_snooze(task.id, snooze_until, now=self._now())
        logger.info(f"Task {task.id} snoozed until {snooze_until} by {user_id}")
        return updated, snooze_until

    def delete(self, identifier: str, user_id: str, team_id: str) -> Task:
        task = self.resolve_task(identifier, user_id, team_id)
        self._require(task, user_id, Relation.CREATOR, "You can only delete tasks that you created.")

        if not self.store.delete_task(task.id, user_id):
            raise NotFound(f'Task "{identifier}" could not be deleted.')
        logger.info(f"Task {task.id} deleted by {user_id}")
        return task

    def show(self, identifier: str, user_id: str, team_id: str) -> Task:
        task = self.resolve_task(identifier, user_id, team_id)
        self._require(task, user_id, Relation.CREATOR_OR_ASSIGNEE,
                      "You can only view tasks that are assigned to you or created by you.")
        return task

    def reassign(self, identifier: str, new_assignee: str, user_id: str, team_id: str,
                 user_resolver=None) -> Task:
        if not (new_assignee or '').lstrip('@').strip():
            raise InvalidCommand("Please say who the task should go to, e.g. `@ali`.")

        task = self.resolve_task(identifier, user_id, team_id)
        self._require(task, user_id, Relation.CREATOR, "Only the task creator can reassign tasks.")

        assigned_to_user_id, assigned_to_username = self._resolve_assignee(
            new_assignee, team_id, user_resolver)
        updated = self.store.update_assignment(task.id, assigned_to_user_id, assigned_to_username,
                                               now=self._now())
        logger.info(f"Task {task.id} reassigned to {assigned_to_username} by {user_id}")
        return updated

    def search(self, query: str, user_id: str, team_id: str) -> List[Task]:
        """Case-insensitive substring search over the caller's tasks."""
        needle = (query or '').strip().lower()
        if not needle:
            return []
        results = []
        for task in self.store.find_by_user(user_id, team_id=team_id):
            haystack = f"{task.title} {task.description or ''} {' '.join(task.tag_list)}".lower()
            if needle in haystack:
                results.append(task)
        return results

    def tasks_for_reminder(self, team_id: str, now: Optional[float] = None) -> List[Task]:
        """Open tasks due today or overdue and not currently snoozed."""
        now = self.clock() if now is None else now
        return self.store.get_tasks_due_or_overdue(team_id, end_of_day(now), int(now))
