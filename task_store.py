"""
Supabase-backed collaborators for the reminder run.

Rows are mapped into MaintenanceTask records right after the read; rows that
cannot be mapped are logged and dropped.
"""
import logging
from datetime import date, datetime

from supabase import create_client

from reminders import LookupFailed, MaintenanceTask

logger = logging.getLogger(__name__)

TASKS_VIEW = 'view_user_tasks_with_details'
TASKS_TABLE = 'user_tasks'
PROFILES_TABLE = 'profiles'
OPT_IN_COLUMN = 'opt_in_7day_reminders'

# Reminder flag on MaintenanceTask -> column in the database
FLAG_COLUMNS = {
    'tier1_notified': 'reminder_sent_1day',
    'tier7_notified': 'reminder_sent_7day',
}


def _parse_due_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def task_from_row(row: dict) -> MaintenanceTask:
    """Map one view row to a MaintenanceTask. Raises ValueError if the row is unusable."""
    task_id = row.get('id')
    user_id = row.get('user_id')
    if task_id in (None, '') or user_id in (None, ''):
        raise ValueError("row is missing id or user_id")
    try:
        due = _parse_due_date(row.get('due_date'))
    except (TypeError, ValueError):
        raise ValueError(f"unparseable due_date {row.get('due_date')!r}")

    return MaintenanceTask(
        id=str(task_id),
        user_id=str(user_id),
        title=(row.get('task_name') or '').strip() or 'Maintenance task',
        description=row.get('task_description') or '',
        due_date=due,
        property_id=row.get('property_id'),
        property_address=row.get('property_address') or '',
        completed=bool(row.get('completed')),
        tier1_notified=bool(row.get(FLAG_COLUMNS['tier1_notified'])),
        tier7_notified=bool(row.get(FLAG_COLUMNS['tier7_notified'])),
    )


def parse_task_rows(rows) -> list:
    tasks = []
    for row in rows or []:
        try:
            tasks.append(task_from_row(row))
        except ValueError as e:
            logger.warning("Skipping malformed task row %r: %s", row.get('id') if isinstance(row, dict) else row, e)
    return tasks


class SupabaseTaskStore:
    """Reads due tasks from the task details view and flips reminder flags on user_tasks."""

    def __init__(self, client):
        self.client = client

    def find_due_tasks(self, tier, due_date: date) -> list:
        column = FLAG_COLUMNS[tier.flag_field]
        result = (self.client.table(TASKS_VIEW)
                  .select('*')
                  .eq('due_date', due_date.isoformat())
                  .eq(column, False)
                  .eq('completed', False)
                  .order('due_date')
                  .execute())
        return parse_task_rows(result.data)

    def mark_notified(self, task_id, tier) -> None:
        column = FLAG_COLUMNS[tier.flag_field]
        (self.client.table(TASKS_TABLE)
         .update({column: True})
         .eq('id', task_id)
         .execute())


class SupabasePreferenceStore:
    def __init__(self, client):
        self.client = client

    def opted_in(self, user_id) -> bool:
        # No profile row means the user never opted in
        result = (self.client.table(PROFILES_TABLE)
                  .select(OPT_IN_COLUMN)
                  .eq('id', user_id)
                  .limit(1)
                  .execute())
        rows = result.data or []
        return bool(rows and rows[0].get(OPT_IN_COLUMN))


class SupabaseIdentityResolver:
    """Looks up a user's email through the auth admin API (needs the service role key)."""

    def __init__(self, client):
        self.client = client

    def address_for(self, user_id):
        response = self.client.auth.admin.get_user_by_id(user_id)
        user = getattr(response, 'user', None)
        if user is None:
            raise LookupFailed(f"user {user_id} not found")
        return user.email


def create_supabase_client(url, service_key):
    if not url or not service_key:
        raise ValueError("Please set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY environment variables")
    return create_client(url, service_key)
