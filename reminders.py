"""
Maintenance task reminder pipeline.

One pass finds the tasks due tomorrow and in seven days, groups them per user,
applies the seven-day opt-in, sends one consolidated email per user per tier
and marks the tasks as reminded once the send went through.

The store, preference, identity and sender collaborators are injected:

    store.find_due_tasks(tier, due_date) -> list[MaintenanceTask]
    store.mark_notified(task_id, tier) -> None
    preferences.opted_in(user_id) -> bool
    identities.address_for(user_id) -> str | None
    sender.send(address, subject, html, text=None) -> bool
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from email_templates import reminder_email

logger = logging.getLogger(__name__)


class ReminderError(Exception):
    """Base class for reminder run errors."""


class FinderError(ReminderError):
    """Candidate tasks could not be read. Fatal for the whole run."""


class LookupFailed(ReminderError):
    """A user's preference or delivery address could not be resolved."""


class DispatchError(ReminderError):
    """A notification could not be handed to the mail provider."""


@dataclass(frozen=True)
class ReminderTier:
    key: str
    offset_days: int
    flag_field: str
    opt_in_required: bool

    def target_date(self, today: date) -> date:
        return today + timedelta(days=self.offset_days)


TIER_TOMORROW = ReminderTier('tomorrow', 1, 'tier1_notified', opt_in_required=False)
TIER_SEVEN_DAYS = ReminderTier('sevenDays', 7, 'tier7_notified', opt_in_required=True)
TIERS = (TIER_TOMORROW, TIER_SEVEN_DAYS)


@dataclass
class MaintenanceTask:
    id: str
    user_id: str
    title: str
    due_date: date
    description: str = ''
    property_id: Optional[str] = None
    property_address: str = ''
    completed: bool = False
    tier1_notified: bool = False
    tier7_notified: bool = False

    def is_notified(self, tier: ReminderTier) -> bool:
        return bool(getattr(self, tier.flag_field))

    def is_due_for(self, tier: ReminderTier, target: date) -> bool:
        return not self.completed and not self.is_notified(tier) and self.due_date == target


@dataclass
class ReminderBatch:
    """Everything one user gets reminded about in one run."""
    user_id: str
    tasks: dict = field(default_factory=lambda: {tier.key: [] for tier in TIERS})
    address: Optional[str] = None

    def tasks_for(self, tier: ReminderTier) -> list:
        return self.tasks.setdefault(tier.key, [])

    @property
    def tier1(self) -> list:
        return self.tasks_for(TIER_TOMORROW)

    @property
    def tier7(self) -> list:
        return self.tasks_for(TIER_SEVEN_DAYS)

    def is_empty(self) -> bool:
        return not any(self.tasks.values())


@dataclass
class TierOutcome:
    attempted: int = 0
    sent: int = 0
    marked: int = 0
    mark_failed: int = 0


def _per_tier():
    return {tier.key: 0 for tier in TIERS}


@dataclass
class RunSummary:
    matched: dict = field(default_factory=_per_tier)
    attempted: dict = field(default_factory=_per_tier)
    sent: dict = field(default_factory=_per_tier)
    marked: dict = field(default_factory=_per_tier)
    mark_failed: dict = field(default_factory=_per_tier)
    users_processed: int = 0
    users_skipped: int = 0

    def record(self, tier: ReminderTier, outcome: TierOutcome) -> None:
        self.attempted[tier.key] += outcome.attempted
        self.sent[tier.key] += outcome.sent
        self.marked[tier.key] += outcome.marked
        self.mark_failed[tier.key] += outcome.mark_failed

    def to_details(self) -> dict:
        """Wire shape returned by the HTTP trigger."""
        return {
            'tasksDueTomorrow': self.matched[TIER_TOMORROW.key],
            'tasksDue7Days': self.matched[TIER_SEVEN_DAYS.key],
            'emailsSent': dict(self.sent),
            'tasksUpdated': dict(self.marked),
            'usersProcessed': self.users_processed,
        }


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


# -------------------------
# Due-Task Finder
# -------------------------
def find_due_tasks(store, today: date) -> dict:
    """
    Query the store for every tier's candidates.

    Returns a dict of tier -> list of tasks, ordered by due date as the store
    returned them. Any store error raises FinderError before anything is sent.
    """
    candidates = {}
    for tier in TIERS:
        target = tier.target_date(today)
        try:
            tasks = list(store.find_due_tasks(tier, target))
        except Exception as e:
            raise FinderError(f"Could not query tasks due {target.isoformat()} ({tier.key}): {e}") from e

        due = [t for t in tasks if t.is_due_for(tier, target)]
        if len(due) != len(tasks):
            logger.warning("Store returned %d task(s) not due for %s on %s; ignoring them",
                           len(tasks) - len(due), tier.key, target.isoformat())
        candidates[tier] = due
        logger.info("Found %d task(s) due %s (%s reminder)", len(due), target.isoformat(), tier.key)
    return candidates


# -------------------------
# Per-User Aggregator
# -------------------------
def group_by_user(candidates: dict) -> dict:
    batches = {}
    for tier in TIERS:
        for task in candidates.get(tier, []):
            batch = batches.get(task.user_id)
            if batch is None:
                batch = batches[task.user_id] = ReminderBatch(task.user_id)
            batch.tasks_for(tier).append(task)
    return batches


# -------------------------
# Eligibility Filter
# -------------------------
def apply_eligibility(batch: ReminderBatch, preferences, identities) -> Optional[ReminderBatch]:
    """
    Drop opt-in tiers the user has not opted into and resolve where to send.

    Returns None when the user must be skipped: the preference or identity
    lookup failed, or there is no deliverable address.
    """
    user_id = batch.user_id
    try:
        opted_in = bool(preferences.opted_in(user_id))
    except Exception as e:
        logger.error("Error fetching notification preference for user %s: %s", user_id, e)
        return None

    try:
        address = identities.address_for(user_id)
    except Exception as e:
        logger.error("Error fetching user %s: %s", user_id, e)
        return None
    if not address:
        logger.warning("User %s has no deliverable email address; skipping", user_id)
        return None

    tasks = {}
    for tier in TIERS:
        if tier.opt_in_required and not opted_in:
            tasks[tier.key] = []
        else:
            tasks[tier.key] = list(batch.tasks_for(tier))
    return ReminderBatch(user_id, tasks, address=address)


# -------------------------
# Dispatch & Acknowledgment
# -------------------------
def dispatch_tier(sender, store, address: str, tier: ReminderTier, tasks: list,
                  app_url: str, dry_run: bool = False) -> TierOutcome:
    """
    Send one consolidated reminder and, only if the send succeeded, flag the tasks.

    A failed flag write after a successful send is counted but not raised: the
    next run may send that task again, which is preferred to never sending it.
    """
    outcome = TierOutcome()
    if not tasks:
        return outcome

    subject, html, text = reminder_email(tier, tasks, app_url)
    outcome.attempted = 1

    if dry_run:
        logger.info("[dry-run] Would send %r to %s (%d task(s))", subject, address, len(tasks))
        return outcome

    try:
        ok = sender.send(address, subject, html, text)
    except Exception as e:
        logger.error("Error sending %s reminder to %s: %s", tier.key, address, e)
        ok = False

    if not ok:
        logger.error("Failed to send %s reminder to %s; %d task(s) stay pending",
                     tier.key, address, len(tasks))
        return outcome

    outcome.sent = 1
    for task in tasks:
        try:
            store.mark_notified(task.id, tier)
            outcome.marked += 1
        except Exception as e:
            outcome.mark_failed += 1
            logger.error("Sent %s reminder for task %s but could not mark it: %s",
                         tier.key, task.id, e)
    logger.info("Sent %s reminder to %s (%d task(s))", tier.key, address, len(tasks))
    return outcome


def process_user(batch, preferences, identities, sender, store, app_url, dry_run=False):
    """Run eligibility and dispatch for one user. Returns tier -> TierOutcome, or None if skipped."""
    eligible = apply_eligibility(batch, preferences, identities)
    if eligible is None:
        return None
    return {
        tier: dispatch_tier(sender, store, eligible.address, tier,
                            eligible.tasks_for(tier), app_url, dry_run=dry_run)
        for tier in TIERS
    }


def run_reminders(store, preferences, identities, sender, app_url: str,
                  today: Optional[date] = None, max_workers: int = 4,
                  dry_run: bool = False) -> RunSummary:
    """
    Run one reminder pass and return its summary.

    Users are processed concurrently with at most ``max_workers`` threads.
    Batches are disjoint by user so the workers never write the same task row;
    counters are merged here once every worker has finished.
    """
    today = today or today_utc()
    logger.info("Starting reminder run for %s", today.isoformat())

    candidates = find_due_tasks(store, today)
    summary = RunSummary()
    for tier in TIERS:
        summary.matched[tier.key] = len(candidates[tier])

    batches = group_by_user(candidates)
    summary.users_processed = len(batches)

    def work(batch):
        try:
            return process_user(batch, preferences, identities, sender, store, app_url, dry_run)
        except Exception:
            logger.exception("Unexpected error processing reminders for user %s", batch.user_id)
            return None

    if batches:
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
            results = list(pool.map(work, batches.values()))
    else:
        results = []

    for outcomes in results:
        if outcomes is None:
            summary.users_skipped += 1
            continue
        for tier, outcome in outcomes.items():
            summary.record(tier, outcome)

    logger.info("Reminder run complete: %s (skipped %d user(s), %s flag update(s) failed)",
                summary.to_details(), summary.users_skipped, summary.mark_failed)
    return summary
