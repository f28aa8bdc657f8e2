"""Utility functions for the ClickUp daily report."""

import json
import os
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

from models import ReportFilters, ReporterConfig
from patterns import Patterns

APP_NAME = "cu-reporter"
CONFIG_FILE = "config.json"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

CONFIG_TEMPLATE = {
    "clickup": {
        "api_key": "pk_YOUR_API_KEY_HERE",
        "workspace_id": "YOUR_WORKSPACE_ID_HERE",
    },
    "discord": {
        "webhook_url": "https://discord.com/api/webhooks/YOUR_WEBHOOK_URL",
        "username": "ClickUp Reporter",
    },
    "report": {
        "utc_offset_hours": 10,
        "exclude_prefixes": [],
        "exclude_contains": [],
    },
}


class ConfigError(Exception):
    """User-friendly configuration error."""


# ============================================================================
# Config
# ============================================================================


def get_config_dir() -> Path:
    """Per-user config directory for this platform."""
    if sys.platform == "win32":
        base = os.environ.get("APPDATA") or str(Path.home() / "AppData" / "Roaming")
        return Path(base) / APP_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg_config) if xdg_config else Path.home() / ".config"
    return base / APP_NAME


def get_config_path() -> Path:
    return get_config_dir() / CONFIG_FILE


def validate_config(config: dict) -> list[str]:
    """Validate config structure and return list of error messages.

    Returns:
        Empty list if valid, otherwise list of error messages.
    """
    errors = []

    for section in ["clickup", "discord"]:
        if not isinstance(config.get(section), dict):
            errors.append(f"Missing section '{section}' in config.json")

    if isinstance(config.get("clickup"), dict):
        for key in ["api_key", "workspace_id"]:
            if not config["clickup"].get(key):
                errors.append(f"Missing clickup.{key}")

    if isinstance(config.get("discord"), dict):
        webhook_url = config["discord"].get("webhook_url")
        if not webhook_url:
            errors.append("Missing discord.webhook_url")
        elif not Patterns.WEBHOOK_URL.match(webhook_url):
            errors.append(f"discord.webhook_url is not a Discord webhook URL: {webhook_url}")

    # Optional section
    report = config.get("report", {})
    if not isinstance(report, dict):
        errors.append("Section 'report' must be an object")
        return errors

    offset = report.get("utc_offset_hours", 10)
    if isinstance(offset, bool) or not isinstance(offset, (int, float)):
        errors.append("report.utc_offset_hours must be a number")
    elif not -24 < offset < 24:
        errors.append("report.utc_offset_hours must be between -24 and 24")

    for key in ["exclude_prefixes", "exclude_contains"]:
        value = report.get(key, [])
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            errors.append(f"report.{key} must be a list of strings")

    return errors


def load_config(path: str | Path | None = None) -> ReporterConfig:
    """Load and validate config.json.

    Raises:
        ConfigError: If the file is missing, not valid JSON, or incomplete.
    """
    config_path = Path(path) if path else get_config_path()

    if not config_path.exists():
        raise ConfigError(
            f"Config file not found at: {config_path}\n"
            f"Run '{APP_NAME} init' to create a template."
        )

    try:
        with open(config_path, encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(
            f"{config_path} is not valid JSON (line {e.lineno}, column {e.colno}: {e.msg})"
        ) from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path} must contain a JSON object")

    errors = validate_config(raw)
    if errors:
        details = "\n".join(f"    - {err}" for err in errors)
        raise ConfigError(f"{config_path} is incomplete:\n{details}")

    report = raw.get("report", {})
    return ReporterConfig(
        api_key=raw["clickup"]["api_key"],
        workspace_id=str(raw["clickup"]["workspace_id"]),
        webhook_url=raw["discord"]["webhook_url"],
        username=raw["discord"].get("username") or "ClickUp Reporter",
        utc_offset_hours=float(report.get("utc_offset_hours", 10)),
        filters=ReportFilters(
            exclude_prefixes=list(report.get("exclude_prefixes", [])),
            exclude_contains=list(report.get("exclude_contains", [])),
        ),
    )


def create_config_template(path: str | Path | None = None) -> Path:
    """Write a template config.json and return its path.

    Raises:
        ConfigError: If a config file already exists at the path.
    """
    config_path = Path(path) if path else get_config_path()

    if config_path.exists():
        raise ConfigError(f"Config file already exists at: {config_path}")

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(CONFIG_TEMPLATE, f, indent=2, ensure_ascii=False)
        f.write("\n")
    return config_path


# ============================================================================
# Date Utilities
# ============================================================================


def business_timezone(utc_offset_hours: float) -> timezone:
    """Fixed-offset timezone that defines a report day."""
    return timezone(timedelta(hours=utc_offset_hours))


def get_yesterday(utc_offset_hours: float, now: datetime | None = None) -> date:
    """Yesterday's date in the business timezone."""
    now = now or datetime.now(timezone.utc)
    return (now.astimezone(business_timezone(utc_offset_hours)) - timedelta(days=1)).date()


def get_today(utc_offset_hours: float, now: datetime | None = None) -> date:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(business_timezone(utc_offset_hours)).date()


def parse_date(date_str: str) -> date:
    """Parse YYYY-MM-DD.

    Raises:
        ValueError: If the string is not a valid date.
    """
    if not Patterns.DATE_FORMAT.match(date_str):
        raise ValueError(f"Invalid date format: {date_str}. Expected YYYY-MM-DD")
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError:
        raise ValueError(f"Invalid date: {date_str}") from None


def day_window_millis(target_date: date, utc_offset_hours: float) -> tuple[int, int]:
    """Start and end of the day as Unix milliseconds.

    The end is start of the next day minus one millisecond, so the window
    covers the full day inclusively.
    """
    start = datetime(
        target_date.year,
        target_date.month,
        target_date.day,
        tzinfo=business_timezone(utc_offset_hours),
    )
    end = start + timedelta(days=1) - timedelta(milliseconds=1)
    return to_millis(start), to_millis(end)


def to_millis(dt: datetime) -> int:
    return (dt - EPOCH) // timedelta(milliseconds=1)


# ============================================================================
# Field Parsing
# ============================================================================


def parse_millis(value) -> int | None:
    """Parse a ClickUp millisecond field ("1706745600000" or int)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and Patterns.MILLIS.match(value.strip()):
        return int(value.strip())
    return None


def millis_to_datetime(value, default: datetime | None = EPOCH) -> datetime | None:
    """Convert a millisecond field to an aware UTC datetime, or default."""
    ms = parse_millis(value)
    if ms is None:
        return default
    try:
        return EPOCH + timedelta(milliseconds=ms)
    except OverflowError:
        return default


def millis_to_duration(value) -> timedelta:
    """Convert a millisecond duration; unparsable or negative becomes zero."""
    ms = parse_millis(value)
    if ms is None or ms < 0:
        return timedelta()
    return timedelta(milliseconds=ms)
