"""
Pytest configuration and shared fixtures for the reminder tests.
"""
import threading
from datetime import date, timedelta

import pytest

from reminders import LookupFailed, MaintenanceTask


class InMemoryTaskStore:
    """Task store fake honouring the same query contract as the Supabase view."""

    def __init__(self, tasks=()):
        self.tasks = {t.id: t for t in tasks}
        self.find_calls = []
        self.mark_calls = []
        self.fail_find = False
        self.fail_mark_ids = set()
        self._lock = threading.Lock()

    def add(self, task):
        self.tasks[task.id] = task
        return task

    def find_due_tasks(self, tier, due_date):
        self.find_calls.append((tier.key, due_date))
        if self.fail_find:
            raise RuntimeError("connection refused")
        due = [t for t in self.tasks.values()
               if t.due_date == due_date and not t.completed and not getattr(t, tier.flag_field)]
        return sorted(due, key=lambda t: t.due_date)

    def mark_notified(self, task_id, tier):
        with self._lock:
            self.mark_calls.append((task_id, tier.key))
        if task_id in self.fail_mark_ids:
            raise RuntimeError("update timed out")
        setattr(self.tasks[task_id], tier.flag_field, True)


class FakePreferences:
    def __init__(self, opted_in=(), failing=()):
        self.opted_in_users = set(opted_in)
        self.failing = set(failing)

    def opted_in(self, user_id):
        if user_id in self.failing:
            raise RuntimeError("profiles query failed")
        return user_id in self.opted_in_users


class FakeIdentities:
    def __init__(self, addresses=None, failing=()):
        self.addresses = dict(addresses or {})
        self.failing = set(failing)

    def address_for(self, user_id):
        if user_id in self.failing:
            raise LookupFailed(f"user {user_id} not found")
        return self.addresses.get(user_id)


class RecordingSender:
    """Records every message; addresses in `failing` get a failed send."""

    def __init__(self, failing=(), raising=()):
        self.sent = []
        self.failing = set(failing)
        self.raising = set(raising)
        self._lock = threading.Lock()

    def send(self, to_email, subject, html, text=None):
        if to_email in self.raising:
            raise ConnectionError("provider unreachable")
        if to_email in self.failing:
            return False
        with self._lock:
            self.sent.append({'to': to_email, 'subject': subject, 'html': html, 'text': text})
        return True

    def messages_to(self, to_email):
        return [m for m in self.sent if m['to'] == to_email]


@pytest.fixture
def today():
    """Fixed date for deterministic tests"""
    return date(2024, 1, 15)


@pytest.fixture
def make_task(today):
    counter = {'n': 0}

    def _make(user_id='u1', days=1, **kwargs):
        counter['n'] += 1
        defaults = {
            'id': f"task-{counter['n']}",
            'user_id': user_id,
            'title': f"Task {counter['n']}",
            'description': 'Routine maintenance',
            'due_date': today + timedelta(days=days),
            'property_id': 'p1',
            'property_address': '12 Elm Street',
        }
        defaults.update(kwargs)
        return MaintenanceTask(**defaults)

    return _make


@pytest.fixture
def store():
    return InMemoryTaskStore()


@pytest.fixture
def preferences():
    return FakePreferences(opted_in={'u1', 'u2'})


@pytest.fixture
def identities():
    return FakeIdentities({'u1': 'u1@example.com', 'u2': 'u2@example.com', 'u3': 'u3@example.com'})


@pytest.fixture
def sender():
    return RecordingSender()
