"""Core domain modules for the chat task tracker.

This package provides:
- Task status/priority definitions and transitions (task.py)
- Natural-language time expressions (time_expressions.py)
- Command and task-creation parsing (parser.py)
- Storage operations with filtered queries (storage.py)
- Mention resolution against the user cache and Slack (users.py)
- Task lifecycle and permission rules (lifecycle.py)
- Message handling pipeline (commands.py)
- Scheduled reminder sweeps (reminders.py)
- Slack delivery and plain-text rendering (slack.py)
"""

from .task import TaskStatus, TaskPriority
from .errors import TaskError, InvalidCommand, NotFound, Forbidden, InvalidState, AlreadyDone

__all__ = [
    'TaskStatus', 'TaskPriority',
    'TaskError', 'InvalidCommand', 'NotFound', 'Forbidden', 'InvalidState', 'AlreadyDone',
]
