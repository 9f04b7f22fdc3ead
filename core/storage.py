"""Storage layer with filtered query operations.

Wraps the session-level CRUD helpers from db.py in a TaskStore that owns a
session factory, so the bot, the scheduler and tests can each work against
their own database.
"""

from typing import List, Optional, Generator
from contextlib import contextmanager

from sqlalchemy import or_

from db import (
    SessionLocal, Task, User,
    create_task as db_create_task,
    get_task as db_get_task,
    update_task_status as db_update_task_status,
    snooze_task as db_snooze_task,
    clear_task_snooze as db_clear_task_snooze,
    update_task_assignment as db_update_task_assignment,
    delete_task as db_delete_task,
    upsert_user as db_upsert_user,
    get_user as db_get_user,
    get_user_by_username as db_get_user_by_username,
)
from .task import TaskStatus

COMPLETED = str(TaskStatus.COMPLETED)
OPEN_STATUSES = [str(TaskStatus.PENDING), str(TaskStatus.IN_PROGRESS)]


class TaskStore:
    """Record store for tasks and cached users.

    Each method runs in its own session; every write touches a single record.
    Returned objects are detached and safe to use after the session closes.
    """

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or SessionLocal

    @contextmanager
    def session(self) -> Generator:
        session = self.session_factory()
        try:
            yield session
            # Detach loaded objects so attribute access works after close
            session.expunge_all()
        finally:
            session.close()

    # ===== Task records =====

    def create_task(self, **fields) -> Task:
        with self.session() as session:
            return db_create_task(session, **fields)

    def get_task(self, task_id: str) -> Optional[Task]:
        with self.session() as session:
            return db_get_task(session, task_id)

    def update_status(self, task_id: str, status: TaskStatus, now: Optional[int] = None) -> Optional[Task]:
        with self.session() as session:
            return db_update_task_status(session, task_id, str(status), now)

    def set_snooze(self, task_id: str, snooze_until: int, now: Optional[int] = None) -> Optional[Task]:
        with self.session() as session:
            return db_snooze_task(session, task_id, snooze_until, now)

    def clear_snooze(self, task_id: str) -> bool:
        with self.session() as session:
            return db_clear_task_snooze(session, task_id) is not None

    def update_assignment(self, task_id: str, user_id: Optional[str], username: Optional[str],
                          now: Optional[int] = None) -> Optional[Task]:
        with self.session() as session:
            return db_update_task_assignment(session, task_id, user_id, username, now)

    def delete_task(self, task_id: str, created_by_user_id: str) -> bool:
        with self.session() as session:
            return db_delete_task(session, task_id, created_by_user_id) is not None

    # ===== Task queries =====

    def find_by_user(self, user_id: str, status: Optional[str] = None, team_id: Optional[str] = None,
                     due_before: Optional[int] = None, exclude_completed: bool = False,
                     limit: Optional[int] = None) -> List[Task]:
        """Tasks the user created or is assigned, newest first."""
        with self.session() as session:
            query = session.query(Task).filter(
                or_(Task.assigned_to_user_id == user_id, Task.created_by_user_id == user_id)
            )

            if status:
                query = query.filter(Task.status == str(status))

            if team_id:
                query = query.filter(Task.team_id == team_id)

            if due_before is not None:
                query = query.filter(Task.due_date.isnot(None), Task.due_date <= due_before)

            if exclude_completed:
                query = query.filter(Task.status != COMPLETED)

            query = query.order_by(Task.created_at.desc(), Task.row_id.desc())

            if limit:
                query = query.limit(limit)
            return query.all()

    def find_by_team(self, team_id: str, status: Optional[str] = None, assigned_to: Optional[str] = None,
                     limit: Optional[int] = None) -> List[Task]:
        with self.session() as session:
            query = session.query(Task).filter(Task.team_id == team_id)

            if status:
                query = query.filter(Task.status == str(status))

            if assigned_to:
                query = query.filter(Task.assigned_to_user_id == assigned_to)

            query = query.order_by(Task.created_at.desc(), Task.row_id.desc())

            if limit:
                query = query.limit(limit)
            return query.all()

    def get_tasks_due_or_overdue(self, team_id: str, end_of_day: int, now: int) -> List[Task]:
        """Open tasks due by ``end_of_day`` whose snooze (if any) has passed."""
        with self.session() as session:
            return session.query(Task).filter(
                Task.team_id == team_id,
                Task.status.in_(OPEN_STATUSES),
                Task.due_date.isnot(None),
                Task.due_date <= end_of_day,
                or_(Task.snooze_until.is_(None), Task.snooze_until <= now),
            ).order_by(Task.due_date.asc(), Task.row_id.asc()).all()

    def get_expired_snoozes(self, now: int) -> List[Task]:
        with self.session() as session:
            return session.query(Task).filter(
                Task.snooze_until.isnot(None),
                Task.snooze_until <= now,
                Task.status.in_(OPEN_STATUSES),
            ).order_by(Task.snooze_until.asc(), Task.row_id.asc()).all()

    def teams_with_active_tasks(self) -> List[str]:
        with self.session() as session:
            rows = session.query(Task.team_id).filter(
                Task.status.in_(OPEN_STATUSES)
            ).distinct().order_by(Task.team_id).all()
            return [row[0] for row in rows]

    def channel_for_team(self, team_id: str) -> Optional[str]:
        """Channel of the oldest open task in the team."""
        with self.session() as session:
            row = session.query(Task.channel_id).filter(
                Task.team_id == team_id, Task.status.in_(OPEN_STATUSES)
            ).order_by(Task.row_id.asc()).first()
            return row[0] if row else None

    def find_stale_completed(self, before: int) -> List[Task]:
        with self.session() as session:
            return session.query(Task).filter(
                Task.status == COMPLETED,
                Task.completed_at.isnot(None),
                Task.completed_at < before,
            ).all()

    def delete_stale_completed(self, before: int) -> int:
        with self.session() as session:
            removed = session.query(Task).filter(
                Task.status == COMPLETED,
                Task.completed_at.isnot(None),
                Task.completed_at < before,
            ).delete(synchronize_session=False)
            session.commit()
            return removed

    # ===== User cache =====

    def upsert_user(self, user_id: str, username: str, team_id: str,
                    display_name: Optional[str] = None, real_name: Optional[str] = None) -> User:
        with self.session() as session:
            return db_upsert_user(session, user_id, username, team_id, display_name, real_name)

    def get_user(self, user_id: str) -> Optional[User]:
        with self.session() as session:
            return db_get_user(session, user_id)

    def find_user_by_username(self, username: str, team_id: str) -> Optional[User]:
        with self.session() as session:
            return db_get_user_by_username(session, username, team_id)


# Global singleton instance
_default_store: Optional[TaskStore] = None


def get_store() -> TaskStore:
    """Get or create the default TaskStore bound to DATABASE_PATH."""
    global _default_store
    if _default_store is None:
        _default_store = TaskStore()
    return _default_store
