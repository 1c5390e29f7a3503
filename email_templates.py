"""Email templates for RivoHome maintenance reminders."""
from markupsafe import escape

BRAND = "RivoHome"

# Per-tier copy, keyed by reminder tier key
REMINDER_COPY = {
    'tomorrow': {
        'subject': f"{BRAND}: Tasks Due Tomorrow",
        'heading': "Tasks Due Tomorrow",
        'intro': "This is a reminder that you have the following maintenance tasks due tomorrow:",
    },
    'sevenDays': {
        'subject': f"{BRAND}: Upcoming Tasks in 7 Days",
        'heading': "Upcoming Tasks in 7 Days",
        'intro': "This is an early reminder that you have the following maintenance tasks due in one week:",
    },
}

SCHEDULE_PATH = "/dashboard/my-schedule"


def format_due_date(value) -> str:
    """Render a due date as M/D/YYYY."""
    return f"{value.month}/{value.day}/{value.year}"


def reminder_email(tier, tasks: list, app_url: str = "https://app.rivohome.com") -> tuple[str, str, str]:
    """
    Generate subject, HTML and text for one consolidated reminder.

    Args:
        tier: ReminderTier the tasks are due for
        tasks: Every task due for this tier for one user, in display order
        app_url: Base URL of the app, used for the schedule link

    Returns:
        (subject, html_content, text_content)
    """
    if not tasks:
        raise ValueError("reminder_email needs at least one task")

    copy = REMINDER_COPY[tier.key]
    schedule_url = f"{app_url.rstrip('/')}{SCHEDULE_PATH}"

    # Text version
    text = f"""Hi there,

{copy['intro']}

"""
    for task in tasks:
        text += f"• {task.title}\n"
        if task.description:
            text += f"  {task.description}\n"
        text += f"  Property: {task.property_address}\n"
        text += f"  Due: {format_due_date(task.due_date)}\n\n"

    text += f"View all tasks: {schedule_url}\n\nThanks,\nThe {BRAND} Team"

    # HTML version
    html = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <style>
        body {{
            font-family: Arial, sans-serif;
            line-height: 1.6;
            color: #2d2f3a;
            margin: 0;
            padding: 0;
        }}
        .container {{
            max-width: 600px;
            margin: 0 auto;
        }}
        h2 {{
            color: #1e40af;
        }}
        .task-list {{
            list-style: none;
            padding: 0;
        }}
        .task-item {{
            margin-bottom: 15px;
            padding: 15px;
            background: #f3f4f6 !important;
            border-radius: 8px;
        }}
        .task-desc {{
            color: #666;
        }}
        .task-meta {{
            color: #666;
            font-size: 14px;
        }}
        .btn {{
            display: inline-block;
            padding: 12px 24px;
            background: #1e40af;
            color: #ffffff;
            text-decoration: none;
            border-radius: 6px;
        }}
        .footer {{
            color: #666;
            font-size: 14px;
            margin-top: 20px;
        }}
    </style>
</head>
<body>
    <div class="container">
        <h2>{copy['heading']}</h2>
        <p>Hi there,</p>
        <p>{copy['intro']}</p>
        <ul class="task-list">
"""

    for task in tasks:
        html += f"""
            <li class="task-item">
                <strong>{escape(task.title)}</strong><br>
"""
        if task.description:
            html += f'                <span class="task-desc">{escape(task.description)}</span><br>\n'
        html += f"""                <span class="task-meta">Property: {escape(task.property_address)}</span><br>
                <span class="task-meta">Due: {format_due_date(task.due_date)}</span>
            </li>
"""

    html += f"""
        </ul>
        <p style="margin-top: 20px;">
            <a href="{escape(schedule_url)}" class="btn">View All Tasks</a>
        </p>
        <p class="footer">Thanks,<br/>The {BRAND} Team</p>
    </div>
</body>
</html>
"""

    return copy['subject'], html, text
