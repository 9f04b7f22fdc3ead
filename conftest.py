"""Shared pytest fixtures.

Every test gets its own in-memory SQLite store and a fixed clock, so nothing
touches a real database, Slack or the wall clock.
"""

import os

# Must be set before db.py is imported anywhere
os.environ.setdefault('DATABASE_PATH', ':memory:')

from datetime import datetime

import pytest

from db import make_session_factory
from core.lifecycle import TaskManager
from core.storage import TaskStore
from core.users import UserRef, UserResolver

NOW = datetime(2026, 10, 19, 10, 0, 0)


class FixedClock:
    """Callable clock returning a settable epoch time."""

    def __init__(self, when: datetime = NOW):
        self.ts = when.timestamp()

    def __call__(self):
        return self.ts

    def advance(self, seconds):
        self.ts += seconds


class RecordingSink:
    """Reminder sink that records deliveries; listed recipients fail."""

    def __init__(self, failing=(), raising=()):
        self.sent = []
        self.failing = set(failing)
        self.raising = set(raising)

    def send(self, recipient, payload):
        if recipient in self.raising:
            raise RuntimeError(f"delivery to {recipient} blew up")
        if recipient in self.failing:
            return False
        self.sent.append((recipient, payload))
        return True

    def kinds(self):
        return [payload['kind'] for _, payload in self.sent]


class FakeDirectory:
    """Stand-in for SlackDirectory backed by a list of member dicts."""

    def __init__(self, members=None):
        self.members = members or []
        self.lookups = 0

    def find_member(self, name):
        self.lookups += 1
        for member in self.members:
            if name in (member.get('name'), member.get('real_name')) and not member.get('deleted'):
                return member
        return None

    def user_info(self, user_id):
        return next((m for m in self.members if m['id'] == user_id), None)


@pytest.fixture()
def clock():
    return FixedClock()


@pytest.fixture()
def store():
    return TaskStore(make_session_factory('sqlite://'))


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def directory():
    return FakeDirectory([
        {'id': 'U_ALI', 'name': 'ali', 'real_name': 'Ali Khan', 'profile': {'display_name': 'ali'}},
        {'id': 'U_BOB', 'name': 'bob', 'real_name': 'Bob Stone', 'profile': {}},
        {'id': 'U_GONE', 'name': 'gone', 'deleted': True},
    ])


@pytest.fixture()
def resolver(store, directory):
    return UserResolver(store, directory)


@pytest.fixture()
def manager(store, resolver, clock):
    return TaskManager(store, resolver, clock=clock)


@pytest.fixture()
def alice():
    return UserRef('U_ALICE', 'alice', 'T1')


@pytest.fixture()
def ali():
    return UserRef('U_ALI', 'ali', 'T1')


@pytest.fixture()
def carol():
    return UserRef('U_CAROL', 'carol', 'T1')
