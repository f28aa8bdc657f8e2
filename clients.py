"""API clients for ClickUp and Discord."""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from datetime import date

import requests

from models import ReporterConfig, TaskUpdate, TimeEntry
from utils import day_window_millis, millis_to_datetime, millis_to_duration

CLICKUP_BASE_URL = "https://api.clickup.com/api/v2"
MAX_LOOKUP_WORKERS = 8
MESSAGE_DELAY_S = 0.5


class ApiError(Exception):
    """User-friendly API error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _handle_api_error(response: requests.Response, service: str) -> str:
    """Convert HTTP errors to user-friendly messages."""
    status = response.status_code

    messages = {
        401: f"{service}: Authentication failed. Check your API key!",
        403: f"{service}: Access denied. Check your permissions or API key!",
        404: f"{service}: Resource not found. Check the IDs and URLs in config.json!",
        429: f"{service}: Too many requests. Wait a moment and try again.",
        500: f"{service}: Server error. The service may be temporarily unavailable.",
        502: f"{service}: Bad gateway. The service may be temporarily unavailable.",
        503: f"{service}: Service unavailable. Try again later.",
    }

    return messages.get(status, f"{service}: HTTP {status} - {_truncate(response.text, 300)}")


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


class ClickUpClient:
    """Client for the ClickUp REST API."""

    def __init__(self, config: ReporterConfig, debug: bool = False):
        self.token = config.api_key
        self.workspace_id = config.workspace_id
        self.utc_offset_hours = config.utc_offset_hours
        self.debug = debug

    def _log(self, message: str) -> None:
        if self.debug:
            print(f"[DEBUG] {message}")

    def _get(self, path: str, params: dict | None = None) -> dict:
        url = f"{CLICKUP_BASE_URL}/{path}"
        self._log(f"GET {url} {params or ''}")
        try:
            r = requests.get(
                url,
                headers={"Authorization": self.token, "Accept": "application/json"},
                params=params,
                timeout=30,
            )
        except requests.exceptions.ConnectionError:
            raise ApiError("ClickUp: Cannot connect to api.clickup.com. Check your network!")
        except requests.exceptions.Timeout:
            raise ApiError("ClickUp: Connection timed out. The server may be slow.")
        except requests.exceptions.RequestException as e:
            raise ApiError(f"ClickUp: Request failed: {e}")

        self._log(f"Response ({r.status_code}): {_truncate(r.text, 1000)}")
        if not r.ok:
            raise ApiError(_handle_api_error(r, "ClickUp"), r.status_code)
        try:
            data = r.json()
        except ValueError:
            raise ApiError(f"ClickUp: Invalid JSON in response from {path}")
        if not isinstance(data, dict):
            raise ApiError(f"ClickUp: Unexpected response from {path} (expected a JSON object)")
        return data

    def fetch_time_entries(self, target_date: date) -> list[TimeEntry]:
        """Fetch all time entries starting within the report day."""
        start_ms, end_ms = day_window_millis(target_date, self.utc_offset_hours)
        data = self._get(
            f"team/{self.workspace_id}/time_entries",
            {"start_date": start_ms, "end_date": end_ms},
        )
        raw_entries = [e for e in data.get("data") or [] if isinstance(e, dict)]
        self._log(f"Parsed {len(raw_entries)} time entries")
        return [parse_time_entry(e) for e in raw_entries]

    def fetch_updated_tasks(self, target_date: date) -> list[TaskUpdate]:
        """Fetch tasks updated within the report day, closed tasks and subtasks included."""
        start_ms, end_ms = day_window_millis(target_date, self.utc_offset_hours)
        tasks = []
        page = 0

        while True:
            data = self._get(
                f"team/{self.workspace_id}/task",
                {
                    "date_updated_gt": start_ms,
                    "date_updated_lt": end_ms,
                    "include_closed": "true",
                    "subtasks": "true",
                    "page": page,
                },
            )
            batch = [t for t in data.get("tasks") or [] if isinstance(t, dict)]
            tasks.extend(batch)

            # Handle pagination
            if not batch or data.get("last_page", True):
                break
            page += 1

        updates = [parse_task_update(t) for t in tasks if t.get("id")]
        self._log(f"Parsed {len(updates)} updated tasks")
        return updates

    def get_task_detail(self, task_id: str) -> dict | None:
        """Fetch task details. Returns None if the lookup fails."""
        try:
            return self._get(f"task/{task_id}")
        except ApiError as e:
            self._log(f"Task lookup failed for {task_id}: {e}")
            return None

    def resolve_list_names(self, task_ids: list[str]) -> dict[str, str]:
        """Look up list names for tasks in parallel.

        Tasks whose lookup fails or that have no list are left out.
        """
        list_names: dict[str, str] = {}
        if not task_ids:
            return list_names

        with ThreadPoolExecutor(max_workers=min(MAX_LOOKUP_WORKERS, len(task_ids))) as pool:
            futures = {pool.submit(self.get_task_detail, task_id): task_id for task_id in task_ids}
            for future in as_completed(futures):
                list_name = _list_name(future.result())
                if list_name:
                    list_names[futures[future]] = list_name

        return list_names

    def fetch_daily_data(self, target_date: date) -> tuple[list[TimeEntry], list[TaskUpdate]]:
        """Fetch time entries and updated tasks, then fill in missing list names.

        Both fetches are always issued.

        Raises:
            ApiError: If either fetch fails (the time entries error first).
        """
        errors: list[ApiError] = []
        entries: list[TimeEntry] = []
        updates: list[TaskUpdate] = []
        try:
            entries = self.fetch_time_entries(target_date)
        except ApiError as e:
            errors.append(e)
        try:
            updates = self.fetch_updated_tasks(target_date)
        except ApiError as e:
            errors.append(e)
        if errors:
            raise errors[0]

        missing = list(
            dict.fromkeys(e.task_id for e in entries if e.task_id and e.list_name is None)
        )
        self._log(f"Fetching details for {len(missing)} tasks missing list info")
        list_names = self.resolve_list_names(missing)

        enriched = [
            replace(e, list_name=list_names.get(e.task_id))
            if e.task_id and e.list_name is None
            else e
            for e in entries
        ]
        return enriched, updates


# ============================================================================
# Response Parsing
# ============================================================================


def _list_name(detail: dict | None) -> str | None:
    """List name from a task detail response, if well-formed."""
    if not isinstance(detail, dict):
        return None
    task_list = detail.get("list")
    if not isinstance(task_list, dict):
        return None
    name = task_list.get("name")
    return name if isinstance(name, str) and name else None


def _user_fields(user: dict | None) -> tuple[str, str]:
    if not isinstance(user, dict):
        return "", "Unknown"
    user_id = user.get("id")
    return ("" if user_id is None else str(user_id)), user.get("username") or "Unknown"


def parse_time_entry(raw: dict) -> TimeEntry:
    """Build a TimeEntry from a ClickUp time entry record.

    Unparsable duration becomes zero, unparsable start becomes the epoch.
    """
    task = raw.get("task") if isinstance(raw.get("task"), dict) else {}
    task_list = task.get("list") if isinstance(task.get("list"), dict) else {}
    user_id, user_name = _user_fields(raw.get("user"))

    return TimeEntry(
        id=str(raw.get("id", "")),
        task_id=str(task["id"]) if task.get("id") else None,
        task_name=task.get("name"),
        list_name=task_list.get("name"),
        user_id=user_id,
        user_name=user_name,
        duration=millis_to_duration(raw.get("duration")),
        start=millis_to_datetime(raw.get("start")),
        end=millis_to_datetime(raw.get("end"), default=None),
    )


def parse_task_update(raw: dict) -> TaskUpdate:
    """Build a TaskUpdate from a ClickUp task record."""
    task_list = raw.get("list") if isinstance(raw.get("list"), dict) else None

    return TaskUpdate(
        task_id=str(raw["id"]),
        task_name=raw.get("name") or "",
        list_name=task_list.get("name") if task_list else None,
        user_id="",
        user_name="Unknown",
        updated_at=millis_to_datetime(raw.get("date_updated")),
        change_type="updated",
    )


class DiscordClient:
    """Client for a Discord webhook."""

    def __init__(self, config: ReporterConfig, debug: bool = False):
        self.webhook_url = config.webhook_url
        self.username = config.username
        self.debug = debug

    def _log(self, message: str) -> None:
        if self.debug:
            print(f"[DEBUG] {message}")

    def send_message(self, message: str) -> None:
        """Post one message to the webhook."""
        payload = {"content": message, "username": self.username}
        self._log(f"POST {self.webhook_url}")
        self._log(f"Payload: {_truncate(str(payload), 500)}")

        try:
            r = requests.post(self.webhook_url, json=payload, timeout=30)
        except requests.exceptions.RequestException as e:
            raise ApiError(f"Discord: Failed to send message: {e}")

        if not r.ok:
            self._log(f"Response ({r.status_code}): {r.text}")
            raise ApiError(_handle_api_error(r, "Discord"), r.status_code)
        self._log("Response: OK")

    def send_messages(self, messages: list[str]) -> None:
        """Send messages in order, pausing between them.

        Raises:
            ApiError: On the first failed send; remaining messages are not sent.
        """
        self._log(f"Sending {len(messages)} messages to Discord")
        for message in messages:
            self._log(f"Message length: {len(message)} chars")
            self.send_message(message)
            time.sleep(MESSAGE_DELAY_S)
