"""Natural-language command parsing.

Classifies chat messages as management commands (list, done, snooze, delete,
show, help) or task-creation text, and extracts task fields from the latter.
Nothing here raises on malformed input.
"""

import re
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from .task import TaskPriority
from .time_expressions import find_time_expression, remove_match, resolve_time_expression

logger = logging.getLogger(__name__)

UNTITLED = "Untitled Task"

MENTION = re.compile(r"@([a-zA-Z0-9._-]+)")
HASHTAG = re.compile(r"#([a-zA-Z0-9_-]+)")

# First matching group wins
PRIORITY_RULES = [
    (TaskPriority.URGENT, re.compile(r"\b(?:urgent|asap|emergency|critical|high priority)\b|!!+|‼", re.IGNORECASE)),
    (TaskPriority.HIGH, re.compile(r"\b(?:important|high|priority|soon)\b|❗", re.IGNORECASE)),
    (TaskPriority.LOW, re.compile(r"\b(?:low priority|low|whenever|optional|maybe)\b", re.IGNORECASE)),
]
PRIORITY_WORDS = re.compile(
    r"\b(?:urgent|asap|emergency|critical|high priority|low priority|important|high|priority|soon"
    r"|low|whenever|optional|maybe)\b|!!+|‼|❗",
    re.IGNORECASE,
)

TASK_ID = r"([a-z0-9-]+)"
LIST_COMMAND = re.compile(r"^(?:list|show|tasks?)(?:\s+(all|pending|completed|overdue))?$")
DONE_COMMAND = re.compile(r"^(?:done|complete|finish|finished)\s+" + TASK_ID + r"$")
SNOOZE_COMMAND = re.compile(r"^snooze\s+" + TASK_ID + r"\s+(.+)$")
DELETE_COMMAND = re.compile(r"^(?:delete|remove|cancel)\s+" + TASK_ID + r"$")
HELP_COMMAND = re.compile(r"^(?:help|\?|commands?)$")
SHOW_COMMAND = re.compile(r"^(?:show|task)\s+" + TASK_ID + r"$")

NOT_A_TASK = [
    re.compile(r"^(?:hi|hello|hey|thanks|thank you|ok|okay|yes|no|sure)$", re.IGNORECASE),
    re.compile(r"^\?+$"),
    re.compile(r"^(?:what|how|when|where|why|who)\b", re.IGNORECASE),
]


class CommandAction(str, Enum):
    CREATE = "create"
    LIST = "list"
    COMPLETE = "complete"
    SNOOZE = "snooze"
    DELETE = "delete"
    SHOW = "show"
    HELP = "help"

    def __str__(self):
        return self.value


@dataclass
class TaskIntent:
    """Fields extracted from a task-creation message."""
    title: str
    assignee: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    due_date: Optional[int] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    description: Optional[str] = None

    @property
    def is_untitled(self) -> bool:
        return not self.title or self.title == UNTITLED


@dataclass
class ParsedCommand:
    action: CommandAction
    task_id: Optional[str] = None
    status: Optional[str] = None
    time_expression: Optional[str] = None
    snooze_until: Optional[int] = None
    intent: Optional[TaskIntent] = None


def classify_management_command(text: str, now: Optional[datetime] = None) -> Optional[ParsedCommand]:
    """Recognize a management command, or return None."""
    cleaned = (text or '').strip().lower()
    if not cleaned:
        return None

    m = LIST_COMMAND.match(cleaned)
    if m:
        return ParsedCommand(CommandAction.LIST, status=m.group(1) or 'pending')

    m = DONE_COMMAND.match(cleaned)
    if m:
        return ParsedCommand(CommandAction.COMPLETE, task_id=m.group(1))

    m = SNOOZE_COMMAND.match(cleaned)
    if m:
        expression = m.group(2).strip()
        return ParsedCommand(
            CommandAction.SNOOZE,
            task_id=m.group(1),
            time_expression=expression,
            snooze_until=resolve_time_expression(expression, now),
        )

    m = DELETE_COMMAND.match(cleaned)
    if m:
        return ParsedCommand(CommandAction.DELETE, task_id=m.group(1))

    if HELP_COMMAND.match(cleaned):
        return ParsedCommand(CommandAction.HELP)

    m = SHOW_COMMAND.match(cleaned)
    if m:
        return ParsedCommand(CommandAction.SHOW, task_id=m.group(1))

    return None


def looks_like_task(text: str) -> bool:
    """Text already known not to be a command: is it more than chatter?"""
    stripped = (text or '').strip()
    if len(stripped) < 3:
        return False
    return not any(pattern.search(stripped) for pattern in NOT_A_TASK)


def is_task_creation_candidate(text: str) -> bool:
    """Decide whether unrecognized free text should become a new task."""
    if classify_management_command(text):
        return False
    return looks_like_task(text)


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def parse_task_creation(text: str, now: Optional[datetime] = None) -> TaskIntent:
    """Extract title, assignee, tags, due date and priority from free text.

    Extraction runs in a fixed order on a working copy of the text: mentions,
    hashtags, priority, then the first date phrase (which is cut out), and the
    leftovers become the title. An empty result yields the ``UNTITLED`` title.
    """
    original = (text or '').strip()
    working = original

    mentions = MENTION.findall(working)
    assignee = mentions[0] if mentions else None

    tags = list(dict.fromkeys(HASHTAG.findall(working)))

    priority = TaskPriority.MEDIUM
    for level, pattern in PRIORITY_RULES:
        if pattern.search(working):
            priority = level
            break

    due_date = None
    match = find_time_expression(working, now)
    if match is not None:
        due_date = match.timestamp
        working = remove_match(working, match)

    title = MENTION.sub('', working)
    title = HASHTAG.sub('', title)
    title = _collapse(PRIORITY_WORDS.sub('', title))

    if not title:
        title = _collapse(HASHTAG.sub('', MENTION.sub('', original)))

    return TaskIntent(
        title=title or UNTITLED,
        assignee=assignee,
        tags=tags,
        due_date=due_date,
        priority=priority,
    )


def parse_message(text: str, now: Optional[datetime] = None) -> Optional[ParsedCommand]:
    """Parse any inbound message: management command, task creation, or None."""
    command = classify_management_command(text, now)
    if command is not None:
        return command
    if looks_like_task(text):
        return ParsedCommand(CommandAction.CREATE, intent=parse_task_creation(text, now))
    return None
