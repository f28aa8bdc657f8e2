"""Centralized regex patterns for the daily report."""

import re


class Patterns:
    """Regex patterns used for argument, config and API field parsing."""

    # Date argument: YYYY-MM-DD
    DATE_FORMAT = re.compile(r"^\d{4}-\d{2}-\d{2}$")

    # Discord webhook: https://discord.com/api[/v10]/webhooks/<id>/<token>[?thread_id=...]
    WEBHOOK_URL = re.compile(
        r"^https://(?:\w+\.)?discord(?:app)?\.com/api(?:/v\d+)?/webhooks/\d+/[\w-]+(?:\?\S*)?$"
    )

    # Millisecond timestamp or duration as sent by ClickUp: "1706745600000", "-1234"
    MILLIS = re.compile(r"^-?\d+$")
