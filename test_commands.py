"""Tests for the message pipeline and result rendering."""

import pytest

from conftest import NOW
from core import commands, parser
from core.commands import CommandHandler
from core.parser import CommandAction, ParsedCommand
from core.slack import HELP_TEXT, format_result, render_payload

NOW_TS = int(NOW.timestamp())


@pytest.fixture()
def handler(manager, sink):
    return CommandHandler(manager, sink=sink)


def test_create_notifies_the_assignee(handler, sink, alice):
    result = handler.handle_message("Pay electricity bill @ali #finance tomorrow 5pm", alice, "T1", "C1")

    assert result.ok
    assert result.action == CommandAction.CREATE
    assert result.task.assigned_to_user_id == "U_ALI"
    assert sink.sent[0][0] == "U_ALI"
    assert sink.sent[0][1]['kind'] == 'task_assigned'
    assert sink.sent[0][1]['assigned_by'] == "alice"
    assert "Task created" in format_result(result)


def test_self_assignment_and_unresolved_assignees_are_not_notified(handler, sink, ali, alice):
    handler.handle_message("Renew passport @ali", ali, "T1", "C1")
    handler.handle_message("Fix printer @zed", alice, "T1", "C1")
    assert sink.sent == []


def test_list_after_create(handler, alice):
    handler.handle_message("Buy milk", alice, "T1", "C1")
    result = handler.handle_message("list", alice, "T1", "C1")

    assert result.action == CommandAction.LIST
    assert result.title == "Your Pending Tasks"
    assert [t.title for t in result.tasks] == ["Buy milk"]
    assert "Buy milk" in format_result(result)


def test_empty_list_message(handler, alice):
    result = handler.handle_message("list overdue", alice, "T1", "C1")
    assert result.tasks == []
    assert format_result(result) == "*Your Overdue Tasks*\n\nNo tasks found. 🎉"


def test_complete_twice_is_informational(handler, alice):
    task = handler.handle_message("Buy milk", alice, "T1", "C1").task

    first = handler.handle_message(f"done {task.short_id}", alice, "T1", "C1")
    assert first.ok and first.task.status == "completed"

    second = handler.handle_message(f"done {task.short_id}", alice, "T1", "C1")
    assert second.ok
    assert second.error is None
    assert format_result(second) == "This task is already completed! 🎉"


def test_errors_become_failed_results(handler, alice, carol):
    result = handler.handle_message("done zzzzzz", alice, "T1", "C1")
    assert not result.ok
    assert result.error == "NotFound"
    assert format_result(result).startswith("❌ ")

    task = handler.handle_message("Buy milk", alice, "T1", "C1").task
    forbidden = handler.handle_message(f"delete {task.id}", carol, "T1", "C1")
    assert forbidden.error == "Forbidden"

    untitled = handler.handle_message("@ali #ops", alice, "T1", "C1")
    assert untitled.action == CommandAction.CREATE
    assert untitled.error == "InvalidCommand"


def test_snooze_and_show(handler, alice):
    task = handler.handle_message("Buy milk", alice, "T1", "C1").task

    snoozed = handler.handle_message(f"snooze {task.short_id} +2h", alice, "T1", "C1")
    assert snoozed.snooze_until == NOW_TS + 7200
    assert "Task snoozed" in format_result(snoozed)

    shown = handler.handle_message(f"show {task.short_id}", alice, "T1", "C1")
    assert shown.task.id == task.id
    assert "Snoozed until" in format_result(shown)


def test_delete(handler, manager, alice):
    task = handler.handle_message("Buy milk", alice, "T1", "C1").task
    result = handler.handle_message(f"delete {task.short_id}", alice, "T1", "C1")
    assert result.ok
    assert "Task deleted" in format_result(result)
    assert manager.store.get_task(task.id) is None


def test_chatter_is_ignored_unless_mentioned(handler, alice):
    assert handler.handle_message("hi", alice, "T1", "C1") is None
    assert handler.handle_message("   ", alice, "T1", "C1") is None

    result = handler.handle_message("hi", alice, "T1", "C1", is_mention=True)
    assert result.action == CommandAction.HELP
    assert format_result(result) == HELP_TEXT


def test_render_payloads():
    task = {'id': 'abc12345-x', 'short_id': 'abc12345', 'title': 'Pay rent', 'priority': 'urgent',
            'status': 'pending', 'due_date': None, 'assignee': 'ali'}

    digest = render_payload({'kind': 'daily_digest', 'overdue': [task], 'due_today': []})
    assert "*Overdue*" in digest
    assert "🔴 Pay rent (`abc12345`) - @ali" in digest
    assert "Due today" not in digest

    expired = render_payload({'kind': 'snooze_expired', 'task': task})
    assert "done abc12345" in expired

    channel = render_payload({'kind': 'channel_digest', 'overdue_count': 7})
    assert "7 overdue tasks" in channel


def test_out_of_range_times_do_not_break_the_pipeline(handler, alice):
    created = handler.handle_message("Plant forest in 5000000 days", alice, "T1", "C1")
    assert created.ok
    assert created.task.due_date is None

    snoozed = handler.handle_message(f"snooze {created.task.short_id} in 9999999 days", alice, "T1", "C1")
    assert snoozed.ok
    assert snoozed.snooze_until == NOW_TS + 3600

    bumped = handler.handle_message(f"snooze {created.task.short_id} +99999999999999999w", alice, "T1", "C1")
    assert bumped.ok
    assert bumped.snooze_until == NOW_TS + 3600


def test_dispatch_keeps_the_parsed_snooze_time(handler, alice):
    task = handler.handle_message("Buy milk", alice, "T1", "C1").task
    command = ParsedCommand(CommandAction.SNOOZE, task_id=task.short_id, time_expression="+2h",
                            snooze_until=NOW_TS + 42)

    result = handler.dispatch(command, alice, "T1", "C1")
    assert result.snooze_until == NOW_TS + 42
    assert result.task.snooze_until == NOW_TS + 42


def test_each_message_is_classified_once(handler, alice, monkeypatch):
    calls = []
    original = parser.classify_management_command

    def counting(text, now=None):
        calls.append(text)
        return original(text, now)

    monkeypatch.setattr(parser, "classify_management_command", counting)
    monkeypatch.setattr(commands, "classify_management_command", counting)

    handler.handle_message("Buy milk", alice, "T1", "C1")
    handler.handle_message("thanks", alice, "T1", "C1")
    assert calls == ["Buy milk", "thanks"]
