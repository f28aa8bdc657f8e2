"""Report aggregation and formatting for console and Discord."""

from collections import defaultdict
from datetime import date, timedelta
from typing import Callable, Iterable, TypeVar

from models import DailyReport, PersonSummary, ReportFilters, TaskUpdate, TimeEntry

T = TypeVar("T")
K = TypeVar("K")

DISCORD_MAX_LENGTH = 2000
NO_LIST = "(No list)"
NO_TASK = "(No task)"
NO_ACTIVITY = "No activity recorded for this day."
RULE_WIDTH = 50

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE


def _millis(duration: timedelta) -> int:
    return duration // timedelta(milliseconds=1)


def format_duration(duration: timedelta) -> str:
    """Format as '2h 15m', '45m' or '30s'. Always rounds down."""
    ms = _millis(duration)
    if ms >= MS_PER_HOUR:
        return f"{ms // MS_PER_HOUR}h {ms // MS_PER_MINUTE % 60}m"
    if ms >= MS_PER_MINUTE:
        return f"{ms // MS_PER_MINUTE}m"
    return f"{ms // MS_PER_SECOND}s"


def _group_by(items: Iterable[T], key: Callable[[T], K]) -> dict[K, list[T]]:
    """Group items by key, keeping first-appearance order."""
    grouped: dict[K, list[T]] = defaultdict(list)
    for item in items:
        grouped[key(item)].append(item)
    return grouped


def _total(entries: Iterable[TimeEntry]) -> timedelta:
    return sum((e.duration for e in entries), timedelta())


# ============================================================================
# Aggregation
# ============================================================================


def build_report(
    target_date: date,
    time_entries: list[TimeEntry],
    task_updates: list[TaskUpdate],
    debug: bool = False,
) -> DailyReport:
    """Group time entries per user and total them.

    Task updates are not attached to the summaries; the formatters match
    them against tracked task IDs instead.
    """
    if debug:
        print(
            f"[DEBUG] Building report with {len(time_entries)} time entries "
            f"and {len(task_updates)} task updates"
        )

    summaries = [
        PersonSummary(
            user_id=user_id,
            user_name=user_name,
            time_entries=entries,
            total_tracked_time=_total(entries),
        )
        for (user_id, user_name), entries in _group_by(
            time_entries, lambda e: (e.user_id, e.user_name)
        ).items()
    ]
    # sorted() is stable, so ties keep first-appearance order
    summaries = sorted(summaries, key=lambda s: s.total_tracked_time, reverse=True)
    total = sum((s.total_tracked_time for s in summaries), timedelta())

    if debug:
        print(f"[DEBUG] Built {len(summaries)} user summaries, total time: {format_duration(total)}")

    return DailyReport(date=target_date, summaries=summaries, total_tracked_time=total)


def tracked_task_ids(report: DailyReport) -> set[str]:
    return {e.task_id for s in report.summaries for e in s.time_entries if e.task_id}


def untracked_updates(report: DailyReport, task_updates: list[TaskUpdate]) -> list[TaskUpdate]:
    """Task updates for tasks with no time tracked on the report day."""
    tracked = tracked_task_ids(report)
    return [t for t in task_updates if t.task_id not in tracked]


def apply_filters(task_updates: list[TaskUpdate], filters: ReportFilters) -> list[TaskUpdate]:
    """Drop task updates whose name matches an exclusion (case-sensitive)."""

    def excluded(name: str) -> bool:
        return any(name.startswith(p) for p in filters.exclude_prefixes) or any(
            s in name for s in filters.exclude_contains
        )

    return [t for t in task_updates if not excluded(t.task_name)]


def _task_count(summary: PersonSummary) -> int:
    return len({e.task_name for e in summary.time_entries if e.task_name is not None})


def _entries_by_list_and_task(
    entries: list[TimeEntry],
) -> list[tuple[str, list[tuple[str, timedelta]]]]:
    """[(list name, [(task name, tracked time), ...]), ...] in first-appearance order."""
    grouped = []
    for list_name, in_list in _group_by(entries, lambda e: e.list_name or NO_LIST).items():
        tasks = [
            (task_name or NO_TASK, _total(task_entries))
            for (_, task_name), task_entries in _group_by(
                in_list, lambda e: (e.task_id, e.task_name)
            ).items()
        ]
        grouped.append((list_name, tasks))
    return grouped


def _updates_by_list(task_updates: list[TaskUpdate]) -> dict[str, list[TaskUpdate]]:
    return _group_by(task_updates, lambda t: t.list_name or NO_LIST)


# ============================================================================
# Discord
# ============================================================================


def format_for_discord(report: DailyReport, task_updates: list[TaskUpdate]) -> list[str]:
    """Render the report as Discord messages of at most 2000 characters each."""
    header = f"# 📋 Daily Work Report - {report.date.isoformat()}"
    untracked = untracked_updates(report, task_updates)

    if not report.summaries and not untracked:
        summary_section = f"\n{NO_ACTIVITY}"
    elif not report.summaries:
        summary_section = f"\n## 📊 Summary\nNo time tracked.\n\n**Updated Tasks:** {len(untracked)}"
    else:
        person_lines = "\n".join(
            f"- **{s.user_name}**: {format_duration(s.total_tracked_time)} "
            f"tracked across {_task_count(s)} task(s)"
            for s in report.summaries
        )
        summary_section = (
            f"\n## 📊 Summary\n{person_lines}\n\n"
            f"**Total Team Time:** {format_duration(report.total_tracked_time)} | "
            f"**Updated Tasks:** {len(untracked)}"
        )

    details = "\n\n".join(
        f"### {s.user_name}\n"
        + "\n\n".join(
            f"**{list_name}**\n" + "\n".join(f"- {name}: {format_duration(t)}" for name, t in tasks)
            for list_name, tasks in _entries_by_list_and_task(s.time_entries)
        )
        for s in report.summaries
        if s.time_entries
    )

    updated_section = ""
    if untracked:
        by_list = "\n\n".join(
            f"**{list_name}**\n" + "\n".join(f"- {t.task_name}" for t in tasks)
            for list_name, tasks in _updates_by_list(untracked).items()
        )
        updated_section = f"\n## 📝 Updated Tasks (no time tracked)\n{by_list}"

    parts = [header, summary_section]
    if details.strip():
        parts += ["\n## ⏱️ Time Tracking Details", details]
    if updated_section.strip():
        parts.append(updated_section)
    full_message = "\n".join(parts)

    if len(full_message) <= DISCORD_MAX_LENGTH:
        return [full_message]

    part1 = header + summary_section + "\n## ⏱️ Time Tracking Details\n" + details
    messages = [
        m for m in (part1, updated_section) if m.strip() and len(m) <= DISCORD_MAX_LENGTH
    ]
    if not messages:
        return [(header + summary_section)[:DISCORD_MAX_LENGTH]]
    return messages


# ============================================================================
# Console
# ============================================================================


def format_for_console(report: DailyReport, task_updates: list[TaskUpdate]) -> str:
    """Render the report as a plain text block."""
    untracked = untracked_updates(report, task_updates)
    lines = [
        f"Daily Work Report - {report.date.isoformat()}",
        "=" * RULE_WIDTH,
        "",
    ]

    if not report.summaries and not untracked:
        lines.append(NO_ACTIVITY)
        return "\n".join(lines) + "\n"

    lines += ["SUMMARY", "-" * RULE_WIDTH]
    if not report.summaries:
        lines.append("  No time tracked.")
    for s in report.summaries:
        lines.append(
            f"  {s.user_name}: {format_duration(s.total_tracked_time)} "
            f"tracked across {_task_count(s)} task(s)"
        )

    lines += [
        "",
        f"Total Team Time: {format_duration(report.total_tracked_time)}",
        f"Updated Tasks: {len(untracked)}",
        "",
    ]

    if report.summaries:
        lines += ["TIME TRACKING DETAILS", "-" * RULE_WIDTH]
        for s in report.summaries:
            if not s.time_entries:
                continue
            lines += ["", f"  {s.user_name}:"]
            for list_name, tasks in _entries_by_list_and_task(s.time_entries):
                lines.append(f"    [{list_name}]")
                lines += [f"      - {name}: {format_duration(t)}" for name, t in tasks]

    if untracked:
        lines += ["", "UPDATED TASKS (no time tracked)", "-" * RULE_WIDTH]
        for list_name, tasks in _updates_by_list(untracked).items():
            lines.append(f"  [{list_name}]")
            lines += [f"    - {t.task_name}" for t in tasks]

    return "\n".join(lines) + "\n"
