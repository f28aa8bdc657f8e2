"""Data models for the ClickUp daily report."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta


@dataclass(frozen=True)
class TimeEntry:
    """A tracked time interval from ClickUp."""

    id: str
    task_id: str | None
    task_name: str | None
    list_name: str | None  # Filled in by enrichment when missing
    user_id: str
    user_name: str
    duration: timedelta
    start: datetime
    end: datetime | None = None


@dataclass(frozen=True)
class TaskUpdate:
    """A task modified on the report day."""

    task_id: str
    task_name: str
    list_name: str | None
    user_id: str
    user_name: str
    updated_at: datetime
    change_type: str = "updated"


@dataclass
class PersonSummary:
    """Tracked time for one user."""

    user_id: str
    user_name: str
    time_entries: list[TimeEntry] = field(default_factory=list)
    task_updates: list[TaskUpdate] = field(default_factory=list)  # Always empty
    total_tracked_time: timedelta = field(default_factory=timedelta)


@dataclass
class DailyReport:
    """Aggregated report for one calendar day."""

    date: date
    summaries: list[PersonSummary] = field(default_factory=list)
    total_tracked_time: timedelta = field(default_factory=timedelta)


@dataclass
class ReportFilters:
    """Task name filters for the updated tasks section."""

    exclude_prefixes: list[str] = field(default_factory=list)
    exclude_contains: list[str] = field(default_factory=list)


@dataclass
class ReporterConfig:
    """Settings read from config.json."""

    api_key: str
    workspace_id: str
    webhook_url: str
    username: str = "ClickUp Reporter"
    utc_offset_hours: float = 10.0
    filters: ReportFilters = field(default_factory=ReportFilters)
