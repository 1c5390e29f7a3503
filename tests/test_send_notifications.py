"""Tests for the cron entry point."""
import json

import pytest

from app import ReminderServices
from send_notifications import main, parse_args


@pytest.fixture
def services(store, preferences, identities, sender):
    return ReminderServices(store, preferences, identities, sender)


def test_parse_args_date(today):
    args = parse_args(['--date', '2024-01-15', '--dry-run'])
    assert args.date == today
    assert args.dry_run is True


def test_runs_for_given_date(services, store, sender, make_task, capsys):
    task = store.add(make_task('u1', days=1))

    code = main(['--env', 'testing', '--date', '2024-01-15'], services=services)

    assert code == 0
    details = json.loads(capsys.readouterr().out)
    assert details['tasksDueTomorrow'] == 1
    assert details['emailsSent'] == {'tomorrow': 1, 'sevenDays': 0}
    assert task.tier1_notified is True
    assert len(sender.sent) == 1


def test_dry_run_leaves_tasks_pending(services, store, sender, make_task, capsys):
    task = store.add(make_task('u1', days=7))

    code = main(['--env', 'testing', '--date', '2024-01-15', '--dry-run'], services=services)

    assert code == 0
    details = json.loads(capsys.readouterr().out)
    assert details['tasksDue7Days'] == 1
    assert details['emailsSent'] == {'tomorrow': 0, 'sevenDays': 0}
    assert sender.sent == []
    assert task.tier7_notified is False


def test_finder_failure_exits_nonzero(services, store, capsys):
    store.fail_find = True
    code = main(['--env', 'testing', '--date', '2024-01-15'], services=services)
    assert code == 1
    assert 'error' in json.loads(capsys.readouterr().out)
