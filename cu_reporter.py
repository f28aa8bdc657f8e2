"""
Post a daily ClickUp work report to Discord.

Usage:
    # Create a config template
    cu-reporter init

    # Report on yesterday (business timezone) and post to Discord
    cu-reporter

    # Print a specific day to the console instead of posting
    cu-reporter --date 2026-02-03 --dry-run
"""

import argparse
from datetime import datetime, timezone

from clients import ApiError, ClickUpClient, DiscordClient
from models import ReporterConfig
from report import apply_filters, build_report, format_for_console, format_for_discord
from utils import (
    ConfigError,
    create_config_template,
    get_today,
    get_yesterday,
    load_config,
    parse_date,
)

# Monday=0 ... Sunday=6
QUIET_WEEKDAYS = {6, 0}


def run_init(config_path: str | None = None) -> int:
    """Create a template config file."""
    try:
        path = create_config_template(config_path)
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    print(f"Created config template at: {path}")
    print("Edit the file to add your ClickUp API key, workspace ID, and Discord webhook URL.")
    return 0


def run_report(
    config: ReporterConfig,
    date_str: str | None = None,
    dry_run: bool = False,
    verbose: bool = False,
    debug: bool = False,
    now: datetime | None = None,
) -> int:
    """Fetch, build and deliver the report. Returns the exit code."""
    now = now or datetime.now(timezone.utc)

    if date_str:
        try:
            target_date = parse_date(date_str)
        except ValueError as e:
            print(f"Error: {e}")
            return 1
    else:
        target_date = get_yesterday(config.utc_offset_hours, now)

    if verbose:
        print(f"[*] Fetching data for: {target_date.isoformat()}")
        print(f"[*] Using workspace ID: {config.workspace_id}")

    try:
        time_entries, task_updates = ClickUpClient(config, debug=debug).fetch_daily_data(
            target_date
        )
    except ApiError as e:
        print(f"Error: {e}")
        return 1

    if verbose:
        print(f"[*] Found {len(time_entries)} time entries and {len(task_updates)} updated tasks")

    report = build_report(target_date, time_entries, task_updates, debug=debug)
    task_updates = apply_filters(task_updates, config.filters)

    # Empty reports are not posted on Sunday/Monday
    today = get_today(config.utc_offset_hours, now)
    if (
        not dry_run
        and today.weekday() in QUIET_WEEKDAYS
        and not time_entries
        and not task_updates
    ):
        print(
            f"No activity to report for {target_date.isoformat()} "
            f"(skipping Discord on {today.strftime('%A')})."
        )
        return 0

    if dry_run:
        print()
        print(format_for_console(report, task_updates))
        return 0

    messages = format_for_discord(report, task_updates)

    if debug:
        print("[DEBUG] Messages to send:")
        for i, message in enumerate(messages, start=1):
            print(f"[DEBUG] Message {i} ({len(message)} chars):")
            print(message)
            print()

    try:
        DiscordClient(config, debug=debug).send_messages(messages)
    except ApiError as e:
        print(f"Error: {e}")
        return 1

    print("Report posted to Discord successfully.")
    return 0


# ============================================================================
# CLI
# ============================================================================


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="cu-reporter",
        description="Post a daily ClickUp work report to Discord",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Create a config template
    cu-reporter init

    # Print yesterday's report without posting
    cu-reporter --dry-run

    # Post the report for a specific day
    cu-reporter --date 2026-02-03
        """,
    )

    parser.add_argument(
        "command", nargs="?", choices=["init"], help="init: create a template config file"
    )
    parser.add_argument(
        "-n", "--dry-run", action="store_true", help="Print report to console without posting to Discord"
    )
    parser.add_argument(
        "-d", "--date", help="Date to report on (YYYY-MM-DD), default: yesterday in the business timezone"
    )
    parser.add_argument(
        "-c", "--config", help="Path to config file (defaults to the standard config location)"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("--debug", action="store_true", help="Show API requests and responses")

    args = parser.parse_args(argv)

    if args.command == "init":
        return run_init(args.config)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    return run_report(
        config,
        date_str=args.date,
        dry_run=args.dry_run,
        verbose=args.verbose,
        debug=args.debug,
    )


if __name__ == "__main__":
    exit(main())
