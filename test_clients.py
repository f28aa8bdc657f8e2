"""Tests for the ClickUp and Discord clients.

HTTP calls are replaced with unittest.mock; nothing leaves the machine.
"""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

from clients import (
    CLICKUP_BASE_URL,
    ApiError,
    ClickUpClient,
    DiscordClient,
    parse_task_update,
    parse_time_entry,
)
from models import ReporterConfig
from utils import EPOCH, day_window_millis

REPORT_DATE = date(2026, 2, 3)
WEBHOOK_URL = "https://discord.com/api/webhooks/123/abc"


@pytest.fixture
def config():
    return ReporterConfig(api_key="pk_test", workspace_id="9001", webhook_url=WEBHOOK_URL)


def _response(status=200, payload=None, text=""):
    r = MagicMock()
    r.status_code = status
    r.ok = 200 <= status < 300
    r.text = text
    r.json.return_value = payload if payload is not None else {}
    return r


def _raw_entry(entry_id="te1", task=None, user_id=42, username="alice", duration="1800000"):
    return {
        "id": entry_id,
        "task": task,
        "user": {"id": user_id, "username": username},
        "start": "1770069600000",
        "end": "1770071400000",
        "duration": duration,
    }


def _router(time_entries=None, tasks=None, details=None):
    """Fake requests.get dispatching on URL."""
    details = details or {}

    def fake_get(url, headers=None, params=None, timeout=None):
        if url.endswith("/time_entries"):
            return _response(payload={"data": time_entries or []})
        if url.endswith("/task"):
            return _response(payload={"tasks": tasks or []})
        task_id = url.rsplit("/", 1)[1]
        detail = details.get(task_id)
        if isinstance(detail, Exception):
            raise detail
        if detail is None:
            return _response(404, text="not found")
        return _response(payload=detail)

    return fake_get


# ---------------------------------------------------------------------------
# Response parsing — best-effort numeric fields
# ---------------------------------------------------------------------------

class TestParseTimeEntry:

    def test_full_record(self):
        raw = _raw_entry(task={"id": "abc", "name": "Write docs", "list": {"id": "1", "name": "Sprint 4"}})
        e = parse_time_entry(raw)
        assert e.id == "te1"
        assert e.task_id == "abc"
        assert e.task_name == "Write docs"
        assert e.list_name == "Sprint 4"
        assert e.user_id == "42"
        assert e.user_name == "alice"
        assert e.duration == timedelta(minutes=30)
        assert e.start == datetime(2026, 2, 2, 22, 0, tzinfo=timezone.utc)
        assert e.end == datetime(2026, 2, 2, 22, 30, tzinfo=timezone.utc)

    def test_without_task(self):
        e = parse_time_entry(_raw_entry(task=None))
        assert e.task_id is None
        assert e.task_name is None
        assert e.list_name is None

    @pytest.mark.parametrize("duration", ["abc", "", None, "12.5", "-5000"])
    def test_bad_duration_is_zero(self, duration):
        assert parse_time_entry(_raw_entry(duration=duration)).duration == timedelta()

    def test_bad_start_is_epoch(self):
        raw = _raw_entry()
        raw["start"] = "not-a-number"
        raw["end"] = "nope"
        e = parse_time_entry(raw)
        assert e.start == EPOCH
        assert e.end is None

    def test_missing_end(self):
        raw = _raw_entry()
        del raw["end"]
        assert parse_time_entry(raw).end is None


class TestParseTaskUpdate:

    def test_record(self):
        t = parse_task_update(
            {"id": "c1", "name": "Plan", "list": {"id": "7", "name": "L3"}, "date_updated": "1770069600000"}
        )
        assert t.task_id == "c1"
        assert t.task_name == "Plan"
        assert t.list_name == "L3"
        assert t.user_name == "Unknown"
        assert t.change_type == "updated"
        assert t.updated_at == datetime(2026, 2, 2, 22, 0, tzinfo=timezone.utc)

    def test_without_list(self):
        t = parse_task_update({"id": "c1", "name": "Plan"})
        assert t.list_name is None
        assert t.updated_at == EPOCH


# ---------------------------------------------------------------------------
# ClickUpClient
# ---------------------------------------------------------------------------

class TestClickUpClient:

    def test_time_entries_request(self, config):
        with patch("clients.requests.get", return_value=_response(payload={"data": [_raw_entry()]})) as get:
            entries = ClickUpClient(config).fetch_time_entries(REPORT_DATE)

        assert len(entries) == 1
        start_ms, end_ms = day_window_millis(REPORT_DATE, 10)
        args, kwargs = get.call_args
        assert args[0] == f"{CLICKUP_BASE_URL}/team/9001/time_entries"
        assert kwargs["params"] == {"start_date": start_ms, "end_date": end_ms}
        assert kwargs["headers"]["Authorization"] == "pk_test"

    def test_updated_tasks_request(self, config):
        payload = {"tasks": [{"id": "c1", "name": "Plan"}]}
        with patch("clients.requests.get", return_value=_response(payload=payload)) as get:
            updates = ClickUpClient(config).fetch_updated_tasks(REPORT_DATE)

        assert [u.task_id for u in updates] == ["c1"]
        params = get.call_args.kwargs["params"]
        assert params["include_closed"] == "true"
        assert params["subtasks"] == "true"
        assert params["date_updated_lt"] - params["date_updated_gt"] == 86_400_000 - 1

    def test_updated_tasks_pagination(self, config):
        pages = [
            _response(payload={"tasks": [{"id": "c1", "name": "A"}], "last_page": False}),
            _response(payload={"tasks": [{"id": "c2", "name": "B"}], "last_page": True}),
        ]
        with patch("clients.requests.get", side_effect=pages) as get:
            updates = ClickUpClient(config).fetch_updated_tasks(REPORT_DATE)

        assert [u.task_id for u in updates] == ["c1", "c2"]
        assert [c.kwargs["params"]["page"] for c in get.call_args_list] == [0, 1]

    def test_tasks_without_id_skipped(self, config):
        payload = {"tasks": [{"name": "broken"}, {"id": "c1", "name": "ok"}]}
        with patch("clients.requests.get", return_value=_response(payload=payload)):
            updates = ClickUpClient(config).fetch_updated_tasks(REPORT_DATE)
        assert [u.task_id for u in updates] == ["c1"]

    @pytest.mark.parametrize(
        "status, fragment",
        [
            (401, "Authentication failed"),
            (404, "Resource not found"),
            (418, "HTTP 418"),
        ],
    )
    def test_http_error(self, config, status, fragment):
        with patch("clients.requests.get", return_value=_response(status, text="teapot")):
            with pytest.raises(ApiError) as exc_info:
                ClickUpClient(config).fetch_time_entries(REPORT_DATE)
        assert fragment in str(exc_info.value)
        assert exc_info.value.status_code == status

    @pytest.mark.parametrize("payload", [["not", "an", "object"], "text", 42])
    def test_non_object_body(self, config, payload):
        with patch("clients.requests.get", return_value=_response(payload=payload)):
            with pytest.raises(ApiError, match="expected a JSON object"):
                ClickUpClient(config).fetch_time_entries(REPORT_DATE)

    def test_non_object_records_skipped(self, config):
        payload = {"data": ["junk", None, 7, _raw_entry()]}
        with patch("clients.requests.get", return_value=_response(payload=payload)):
            entries = ClickUpClient(config).fetch_time_entries(REPORT_DATE)
        assert [e.id for e in entries] == ["te1"]

    def test_connection_error(self, config):
        with patch("clients.requests.get", side_effect=requests.exceptions.ConnectionError()):
            with pytest.raises(ApiError, match="Cannot connect"):
                ClickUpClient(config).fetch_time_entries(REPORT_DATE)

    def test_debug_logs_requests(self, config, capsys):
        with patch("clients.requests.get", return_value=_response(payload={"data": []})):
            ClickUpClient(config, debug=True).fetch_time_entries(REPORT_DATE)
        out = capsys.readouterr().out
        assert "[DEBUG] GET" in out
        assert "[DEBUG] Parsed 0 time entries" in out

    def test_quiet_without_debug(self, config, capsys):
        with patch("clients.requests.get", return_value=_response(payload={"data": []})):
            ClickUpClient(config).fetch_time_entries(REPORT_DATE)
        assert capsys.readouterr().out == ""


class TestFetchDailyData:

    def test_enriches_missing_list_name(self, config):
        fake_get = _router(
            time_entries=[_raw_entry(task={"id": "abc", "name": "Write docs"})],
            details={"abc": {"id": "abc", "name": "Write docs", "list": {"id": "5", "name": "Sprint 5"}}},
        )
        with patch("clients.requests.get", side_effect=fake_get):
            entries, updates = ClickUpClient(config).fetch_daily_data(REPORT_DATE)

        assert entries[0].list_name == "Sprint 5"
        assert updates == []

    def test_failed_lookup_left_unresolved(self, config):
        fake_get = _router(
            time_entries=[
                _raw_entry("te1", task={"id": "ok", "name": "A"}),
                _raw_entry("te2", task={"id": "missing", "name": "B"}),
                _raw_entry("te3", task={"id": "down", "name": "C"}),
                _raw_entry("te4", task={"id": "nolist", "name": "D"}),
            ],
            details={
                "ok": {"id": "ok", "list": {"name": "L1"}},
                "down": requests.exceptions.ConnectionError(),
                "nolist": {"id": "nolist"},
            },
        )
        with patch("clients.requests.get", side_effect=fake_get):
            entries, _ = ClickUpClient(config).fetch_daily_data(REPORT_DATE)

        assert [e.list_name for e in entries] == ["L1", None, None, None]

    def test_malformed_detail_left_unresolved(self, config):
        fake_get = _router(
            time_entries=[
                _raw_entry("te1", task={"id": "str", "name": "A"}),
                _raw_entry("te2", task={"id": "arr", "name": "B"}),
                _raw_entry("te3", task={"id": "num", "name": "C"}),
                _raw_entry("te4", task={"id": "ok", "name": "D"}),
            ],
            details={
                "str": {"id": "str", "list": "not-an-object"},
                "arr": ["str", "arr"],
                "num": {"id": "num", "list": {"name": 42}},
                "ok": {"id": "ok", "list": {"name": "L1"}},
            },
        )
        with patch("clients.requests.get", side_effect=fake_get):
            entries, _ = ClickUpClient(config).fetch_daily_data(REPORT_DATE)

        assert [e.list_name for e in entries] == [None, None, None, "L1"]

    def test_one_lookup_per_task(self, config):
        fake_get = MagicMock(
            side_effect=_router(
                time_entries=[
                    _raw_entry("te1", task={"id": "abc", "name": "A"}),
                    _raw_entry("te2", task={"id": "abc", "name": "A"}),
                    _raw_entry("te3", task={"id": "known", "name": "B", "list": {"name": "L2"}}),
                    _raw_entry("te4", task=None),
                ],
                details={"abc": {"id": "abc", "list": {"name": "L1"}}},
            )
        )
        with patch("clients.requests.get", fake_get):
            entries, _ = ClickUpClient(config).fetch_daily_data(REPORT_DATE)

        lookups = [c.args[0] for c in fake_get.call_args_list if "/task/" in c.args[0]]
        assert lookups == [f"{CLICKUP_BASE_URL}/task/abc"]
        assert [e.list_name for e in entries] == ["L1", "L1", "L2", None]

    def test_task_fetch_error_aborts(self, config):
        def fake_get(url, headers=None, params=None, timeout=None):
            if url.endswith("/time_entries"):
                return _response(payload={"data": [_raw_entry()]})
            return _response(500)

        with patch("clients.requests.get", side_effect=fake_get):
            with pytest.raises(ApiError, match="Server error"):
                ClickUpClient(config).fetch_daily_data(REPORT_DATE)

    def test_both_fetches_issued_when_entries_fail(self, config):
        fake_get = MagicMock(
            side_effect=lambda url, **kwargs: _response(401)
            if url.endswith("/time_entries")
            else _response(500)
        )
        with patch("clients.requests.get", fake_get):
            with pytest.raises(ApiError, match="Authentication failed") as exc_info:
                ClickUpClient(config).fetch_daily_data(REPORT_DATE)

        assert exc_info.value.status_code == 401
        urls = [c.args[0] for c in fake_get.call_args_list]
        assert urls == [
            f"{CLICKUP_BASE_URL}/team/9001/time_entries",
            f"{CLICKUP_BASE_URL}/team/9001/task",
        ]


# ---------------------------------------------------------------------------
# DiscordClient
# ---------------------------------------------------------------------------

class TestDiscordClient:

    def test_payload(self, config):
        with patch("clients.requests.post", return_value=_response(204)) as post:
            DiscordClient(config).send_message("hello")

        args, kwargs = post.call_args
        assert args[0] == WEBHOOK_URL
        assert kwargs["json"] == {"content": "hello", "username": "ClickUp Reporter"}

    def test_sends_all_in_order_with_pause(self, config):
        with patch("clients.requests.post", return_value=_response(204)) as post, patch(
            "clients.time.sleep"
        ) as sleep:
            DiscordClient(config).send_messages(["one", "two", "three"])

        assert [c.kwargs["json"]["content"] for c in post.call_args_list] == ["one", "two", "three"]
        assert sleep.call_count == 3
        sleep.assert_called_with(0.5)

    def test_stops_on_first_failure(self, config):
        responses = [_response(204), _response(400, text="bad"), _response(204)]
        with patch("clients.requests.post", side_effect=responses) as post, patch(
            "clients.time.sleep"
        ) as sleep:
            with pytest.raises(ApiError, match="Discord"):
                DiscordClient(config).send_messages(["one", "two", "three"])

        assert post.call_count == 2
        assert sleep.call_count == 1

    def test_transport_error(self, config):
        with patch("clients.requests.post", side_effect=requests.exceptions.Timeout("slow")):
            with pytest.raises(ApiError, match="Failed to send message"):
                DiscordClient(config).send_message("hello")

    def test_empty_list_sends_nothing(self, config):
        with patch("clients.requests.post") as post:
            DiscordClient(config).send_messages([])
        post.assert_not_called()
