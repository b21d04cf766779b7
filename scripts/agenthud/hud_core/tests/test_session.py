from __future__ import annotations

import json
import os
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from hud_core.events import UserRecord, parse_record  # noqa: E402
from hud_core.session import (  # noqa: E402
    check_session_availability,
    classify_status,
    derive_state,
    encode_project_path,
    locate_active_session,
    session_dir_for,
    tool_detail,
)

NOW = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


def ts(seconds_ago: float = 0) -> str:
    return (NOW - timedelta(seconds=seconds_ago)).isoformat().replace("+00:00", "Z")


def user(text, ago=0, todos=None):
    record = {"type": "user", "timestamp": ts(ago), "message": {"role": "user", "content": text}}
    if todos is not None:
        record["toolUseResult"] = {"newTodos": todos}
    return record


def tool(name, ago=0, usage=None, **tool_input):
    return {
        "type": "assistant",
        "timestamp": ts(ago),
        "message": {
            "model": "claude-test",
            "content": [{"type": "tool_use", "name": name, "input": tool_input}],
            "usage": usage or {},
        },
    }


def text(body, ago=0, usage=None):
    return {
        "type": "assistant",
        "timestamp": ts(ago),
        "message": {"content": [{"type": "text", "text": body}], "usage": usage or {}},
    }


def stop(ago=0):
    return {"type": "system", "subtype": "stop_hook_summary", "timestamp": ts(ago)}


def write_log(path: Path, records, mtime_ago: float = 0) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [record if isinstance(record, str) else json.dumps(record) for record in records]
    path.write_text("\n".join(lines) + "\n")
    stamp = (NOW - timedelta(seconds=mtime_ago)).timestamp()
    os.utime(path, (stamp, stamp))
    return path


class SessionTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)
        self.session_dir = self.root / "sessions"
        self.session_dir.mkdir()

    def log(self, records, name="session.jsonl", mtime_ago=0) -> Path:
        return write_log(self.session_dir / name, records, mtime_ago)


class ScenarioTests(SessionTestCase):
    def test_user_then_tool_is_running_newest_first(self):
        path = self.log([user("Hello"), tool("Bash", command="npm test")])
        state = derive_state(path, now=NOW)
        self.assertEqual(state.status, "running")
        self.assertEqual(
            [(entry.label, entry.detail) for entry in state.activities],
            [("Bash", "npm test"), ("User", "Hello")],
        )
        self.assertEqual(state.activities[0].icon, "$")
        self.assertEqual(state.activities[1].icon, ">")

    def test_stale_file_is_not_active(self):
        self.log([user("Hello"), tool("Bash", ago=360, command="npm test")], mtime_ago=360)
        self.assertIsNone(locate_active_session(self.session_dir, 5 * 60 * 1000, now=NOW))

    def test_latest_todo_payload_wins(self):
        first = [{"content": "A", "status": "completed"}, {"content": "B", "status": "in_progress", "activeForm": "Doing B"}]
        second = [{"content": "A", "status": "completed"}, {"content": "B", "status": "completed"}]
        path = self.log([user("", ago=20, todos=first), user("", ago=10, todos=second)])
        state = derive_state(path, now=NOW)
        self.assertEqual([(todo.content, todo.status) for todo in state.todos], [("A", "completed"), ("B", "completed")])
        self.assertEqual(state.activities, [])


class LocateTests(SessionTestCase):
    def test_missing_directory(self):
        self.assertIsNone(locate_active_session(self.root / "nope", 60_000, now=NOW))

    def test_newest_mtime_wins(self):
        self.log([user("old")], name="a.jsonl", mtime_ago=100)
        newest = self.log([user("new")], name="b.jsonl", mtime_ago=5)
        self.assertEqual(locate_active_session(self.session_dir, 3_600_000, now=NOW), newest)

    def test_tie_prefers_larger_file(self):
        self.log([user("short")], name="a.jsonl", mtime_ago=5)
        larger = self.log([user("a much longer first message"), user("and another")], name="b.jsonl", mtime_ago=5)
        self.assertEqual(locate_active_session(self.session_dir, 3_600_000, now=NOW), larger)

    def test_ignores_other_suffixes(self):
        (self.session_dir / "notes.txt").write_text("hi")
        self.assertIsNone(locate_active_session(self.session_dir, 3_600_000, now=NOW))

    def test_encode_project_path(self):
        self.assertEqual(encode_project_path("/Users/me/my-app"), "-Users-me-my-app")
        self.assertEqual(session_dir_for("/Users/me/app", Path("/home/x")), Path("/home/x/.claude/projects/-Users-me-app"))


class StatusTests(unittest.TestCase):
    def test_status_table(self):
        expected_recent = {"user": "running", "tool": "running", "response": "completed", "stop": "completed"}
        for elapsed in (10, 29, 31, 240, 600):
            for kind in ("user", "tool", "response", "stop"):
                with self.subTest(elapsed=elapsed, kind=kind):
                    status = classify_status(NOW - timedelta(seconds=elapsed), kind, NOW)
                    want = expected_recent[kind] if elapsed < 30 else "completed"
                    self.assertEqual(status, want)

    def test_no_timestamp_is_none(self):
        self.assertEqual(classify_status(None, "user", NOW), "none")


class ReplayTests(SessionTestCase):
    def test_consecutive_identical_tools_collapse(self):
        path = self.log(
            [
                tool("Bash", ago=9, command="npm test"),
                tool("Bash", ago=8, command="npm test"),
                tool("Bash", ago=7, command="npm test"),
                tool("Bash", ago=6, command="npm run lint"),
            ]
        )
        state = derive_state(path, now=NOW)
        self.assertEqual(len(state.activities), 2)
        self.assertEqual(state.activities[0].detail, "npm run lint")
        self.assertIsNone(state.activities[0].count)
        self.assertEqual(state.activities[1].count, 3)
        self.assertEqual(state.activities[1].timestamp, NOW - timedelta(seconds=7))

    def test_interleaved_tool_breaks_aggregation(self):
        path = self.log(
            [
                tool("Bash", ago=9, command="npm test"),
                tool("Read", ago=8, file_path="x.py"),
                tool("Bash", ago=7, command="npm test"),
            ]
        )
        state = derive_state(path, now=NOW)
        self.assertEqual([entry.label for entry in state.activities], ["Bash", "Read", "Bash"])
        self.assertEqual(state.activities[0].detail, "npm test")
        self.assertEqual(state.activities[2].detail, "npm test")
        self.assertTrue(all(entry.count is None for entry in state.activities))

    def test_todo_tool_is_hidden_but_counts_as_tool(self):
        path = self.log([text("Working on the fix now", ago=5), tool("TodoWrite", ago=4, todos=[])])
        state = derive_state(path, now=NOW)
        self.assertEqual([entry.label for entry in state.activities], ["Response"])
        self.assertEqual(state.status, "running")

    def test_short_text_is_ignored(self):
        path = self.log([user("hi", ago=5), text("OK.", ago=4)])
        state = derive_state(path, now=NOW)
        self.assertEqual([entry.label for entry in state.activities], ["User"])
        self.assertEqual(state.status, "running")

    def test_response_and_stop_complete_the_turn(self):
        path = self.log([user("go", ago=6), text("All done with the change.", ago=5)])
        self.assertEqual(derive_state(path, now=NOW).status, "completed")
        path = self.log([user("go", ago=6), tool("Read", ago=5, file_path="/a/b.py"), stop(ago=4)], name="s2.jsonl")
        self.assertEqual(derive_state(path, now=NOW).status, "completed")

    def test_tool_result_only_user_record_adds_nothing(self):
        result = {"type": "user", "timestamp": ts(3), "message": {"content": [{"type": "tool_result", "content": "ok"}]}}
        path = self.log([user("start", ago=5), result])
        state = derive_state(path, now=NOW)
        self.assertEqual([entry.label for entry in state.activities], ["User"])

    def test_malformed_lines_are_skipped(self):
        path = self.log(["{not json", "[1, 2]", user("Hello", ago=2)])
        state = derive_state(path, now=NOW)
        self.assertEqual(len(state.activities), 1)
        self.assertIsNone(state.error)

    def test_bounded_feed_and_window(self):
        path = self.log([user(f"message {i}", ago=300 - i) for i in range(250)])
        self.assertEqual(len(derive_state(path, max_activities=10, now=NOW).activities), 10)

        state = derive_state(path, max_activities=500, now=NOW)
        self.assertEqual(len(state.activities), 200)
        self.assertEqual(state.activities[0].detail, "message 249")
        self.assertEqual(state.activities[-1].detail, "message 50")

    def test_session_start_comes_from_head_of_file(self):
        path = self.log([user(f"message {i}", ago=1000 - i) for i in range(300)])
        state = derive_state(path, now=NOW)
        self.assertEqual(state.session_start_time, NOW - timedelta(seconds=1000))

    def test_tokens_and_model(self):
        usage = {"input_tokens": 100, "cache_read_input_tokens": 20, "output_tokens": 5}
        path = self.log([tool("Read", ago=3, usage=usage, file_path="C:\\src\\main.py"), text("Some long answer", ago=2, usage=usage)])
        state = derive_state(path, now=NOW)
        self.assertEqual(state.token_count, 250)
        self.assertEqual(state.model_name, "claude-test")
        self.assertEqual(state.activities[1].detail, "main.py")

    def test_turn_duration_is_recorded(self):
        path = self.log([user("go", ago=6), {"type": "system", "subtype": "turn_duration", "durationMs": 4200}])
        state = derive_state(path, now=NOW)
        self.assertEqual(state.last_turn_duration_ms, 4200)
        self.assertEqual(state.status, "running")

    def test_idempotent(self):
        path = self.log([user("Hello", ago=5), tool("Grep", ago=4, pattern="TODO"), text("Found three of them.", ago=3)])
        self.assertEqual(derive_state(path, now=NOW).to_dict(), derive_state(path, now=NOW).to_dict())

    def test_missing_file_degrades_to_empty_state(self):
        state = derive_state(self.session_dir / "gone.jsonl", now=NOW)
        self.assertEqual(state.status, "none")
        self.assertEqual(state.activities, [])
        self.assertIsNotNone(state.error)

    def test_empty_file(self):
        path = self.log([])
        state = derive_state(path, now=NOW)
        self.assertEqual(state.status, "none")
        self.assertIsNone(state.error)


class SubLogTests(SessionTestCase):
    def test_delegations_get_sub_activities_by_recency(self):
        usage = {"input_tokens": 10, "output_tokens": 1}
        path = self.log(
            [
                tool("Task", ago=60, usage=usage, description="first helper"),
                tool("Task", ago=30, usage=usage, description="second helper"),
            ]
        )
        sub_dir = self.session_dir / "session" / "subagents"
        write_log(
            sub_dir / "agent-old.jsonl",
            [tool("Read", ago=55, usage={"output_tokens": 100}, file_path="/x/old.py")],
            mtime_ago=50,
        )
        write_log(
            sub_dir / "agent-new.jsonl",
            [tool(name, ago=25 - i, usage={"output_tokens": 1000}, command=f"step {i}") for i, name in enumerate(["Bash"] * 5)],
            mtime_ago=10,
        )

        state = derive_state(path, now=NOW)
        newest, oldest = state.activities
        self.assertEqual(newest.detail, "second helper")
        self.assertEqual(newest.icon, "»")
        self.assertEqual(len(newest.sub_activities), 3)
        self.assertEqual(newest.sub_activity_count, 5)
        self.assertEqual(newest.sub_activities[0].detail, "step 4")
        self.assertEqual([entry.detail for entry in oldest.sub_activities], ["old.py"])
        self.assertEqual(state.token_count, 22 + 100 + 5000)

    def test_no_sub_logs_leaves_entries_plain(self):
        path = self.log([tool("Task", ago=5, description="helper")])
        state = derive_state(path, now=NOW)
        self.assertIsNone(state.activities[0].sub_activities)


class EventTests(unittest.TestCase):
    def test_parse_record_rejects_non_objects(self):
        self.assertIsNone(parse_record(""))
        self.assertIsNone(parse_record("not json"))
        self.assertIsNone(parse_record("42"))

    def test_user_record_takes_first_text_block(self):
        line = json.dumps(
            {
                "type": "user",
                "message": {"content": [{"type": "image"}, {"type": "text", "text": "look at this"}]},
            }
        )
        record = parse_record(line)
        self.assertIsInstance(record, UserRecord)
        self.assertEqual(record.text, "look at this")
        self.assertIsNone(record.timestamp)

    def test_tool_detail_precedence(self):
        self.assertEqual(tool_detail({"command": "ls\n-la", "file_path": "/a/b"}), "ls -la")
        self.assertEqual(tool_detail({"file_path": "/a/b/c.txt", "pattern": "x"}), "c.txt")
        self.assertEqual(tool_detail({"pattern": "foo", "query": "bar"}), "foo")
        self.assertEqual(tool_detail({"query": "bar"}), "bar")
        self.assertEqual(tool_detail({"description": "helper"}), "helper")
        self.assertEqual(tool_detail({}), "")


class AvailabilityTests(SessionTestCase):
    def test_reports_other_projects(self):
        home = self.root / "home"
        (home / ".claude" / "projects" / "-elsewhere-proj").mkdir(parents=True)
        result = check_session_availability("/work/current", home)
        self.assertFalse(result.has_current_session)
        self.assertEqual(len(result.other_projects), 1)

        (home / ".claude" / "projects" / "-work-current").mkdir()
        self.assertTrue(check_session_availability("/work/current", home).has_current_session)


if __name__ == "__main__":
    unittest.main()
