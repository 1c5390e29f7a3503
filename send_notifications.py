#!/usr/bin/env python3
"""
Standalone script to send maintenance task reminders.
Run this via cron or a scheduler once a day (e.g., every morning at 7am UTC).

Example cron entry (daily at 7am):
0 7 * * * cd /path/to/rivohome-reminders && /path/to/venv/bin/python send_notifications.py
"""

import argparse
import json
import logging
import sys
from datetime import date

from app import configure_logging, create_app
from reminders import FinderError, run_reminders

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Send due-tomorrow and due-in-7-days maintenance reminders")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        help="Run as if today were this date (YYYY-MM-DD). Defaults to today in UTC."
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compose reminders and log them without sending or marking tasks"
    )
    parser.add_argument(
        "--env",
        default=None,
        help="Configuration name (development, production, testing). Defaults to FLASK_ENV."
    )
    return parser.parse_args(argv)


def main(argv=None, services=None):
    args = parse_args(argv)
    app = create_app(args.env, services=services)
    configure_logging(app.config.get('LOG_LEVEL'))

    services = app.extensions['reminders']
    logger.info("Starting reminder job...")
    try:
        summary = run_reminders(
            services.store,
            services.preferences,
            services.identities,
            services.sender,
            app_url=app.config['APP_ORIGIN'],
            today=args.date,
            max_workers=app.config.get('REMINDER_MAX_WORKERS', 4),
            dry_run=args.dry_run,
        )
    except FinderError as e:
        logger.error("Reminder job failed: %s", e)
        print(json.dumps({'error': str(e)}))
        return 1

    print(json.dumps(summary.to_details()))
    logger.info("Job complete. Sent %d reminder email(s).", sum(summary.sent.values()))
    return 0


if __name__ == '__main__':
    sys.exit(main())
