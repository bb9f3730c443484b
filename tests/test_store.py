#!/usr/bin/env python3
"""
Unit tests for REPL Sessions storage, replay, update and auto-save

Tests cover:
- Session store CRUD, listing order, tag filtering and corrupt files
- Replay resilience and tracker hand-off
- Incremental update and order preservation
- Auto-save trigger policy
"""

import datetime
import io
import json
import logging
from pathlib import Path
from typing import Optional

import pytest
from rich.console import Console

from repl_sessions import (
    AutoSaveController,
    CommandEntry,
    HistoryReader,
    NoSessionLoadedError,
    SessionCommandRunner,
    SessionCorruptError,
    SessionData,
    SessionDescription,
    SessionMetadata,
    SessionName,
    SessionNotFoundError,
    SessionStorageError,
    SessionStore,
    SessionTags,
    SessionTracker,
    SessionUpdater,
    ValidationError,
    merge_commands,
)
from repl_sessions.decoder import HISTORY_SENTINEL


class FakeInterpreter:
    """Records submitted code; raises for codes listed in fail_on."""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.executed = []
        self.returned = []

    def execute(self, code):
        self.executed.append(code)
        if code in self.fail_on:
            raise RuntimeError(f"boom: {code}")
        if code == "answer":
            return 42
        return None

    def write_return_value(self, value):
        self.returned.append(value)


def _make_store(tmp_path: Path) -> SessionStore:
    return SessionStore(tmp_path / "sessions", project_path="/work/project")


def _make_tracker(*codes: str) -> SessionTracker:
    tracker = SessionTracker()
    for code in codes:
        tracker.add_command(code)
    return tracker


def _metadata(name: str, description: Optional[str] = None, tags=()) -> SessionMetadata:
    return SessionMetadata(
        name=SessionName(name),
        description=SessionDescription.from_optional(description),
        tags=SessionTags(tags),
    )


def _write_session_file(sessions_dir: Path, name: str, updated_at: str, tags=(), commands=2) -> Path:
    path = sessions_dir / f"{name}.json"
    path.write_text(json.dumps({
        "name": name,
        "description": None,
        "tags": list(tags),
        "created_at": "2026-01-01T00:00:00Z",
        "updated_at": updated_at,
        "commands": [{"code": f"c{i}", "output": None, "timestamp": "", "order": i + 1} for i in range(commands)],
        "variables": {},
        "metadata": {},
    }), encoding="utf-8")
    return path


class TestSessionStoreSave:
    def test_creates_directory(self, tmp_path):
        store = _make_store(tmp_path)
        assert store.sessions_dir.is_dir()

    def test_save_writes_pretty_json(self, tmp_path):
        store = _make_store(tmp_path)
        saved = store.save(_metadata("demo", "Path /tmp/é", ["api"]), _make_tracker("x = 1", "x + 1"))

        path = store.path_for("demo")
        text = path.read_text(encoding="utf-8")
        assert '\n    "name": "demo"' in text
        assert "/tmp/é" in text
        doc = json.loads(text)
        assert doc["tags"] == ["api"]
        assert [c["order"] for c in doc["commands"]] == [1, 2]
        assert doc["metadata"]["total_commands"] == 2
        assert doc["metadata"]["project_path"] == "/work/project"
        assert doc["interpreter_version"]
        assert saved.metadata.created_at == doc["created_at"]

    def test_no_temp_files_left_behind(self, tmp_path):
        store = _make_store(tmp_path)
        store.save(_metadata("demo"), _make_tracker("x"))
        assert [p.name for p in store.sessions_dir.iterdir()] == ["demo.json"]

    def test_created_at_survives_overwrite(self, tmp_path):
        store = _make_store(tmp_path)
        store.save(_metadata("demo"), _make_tracker("x"))
        doc = json.loads(store.path_for("demo").read_text(encoding="utf-8"))
        doc["created_at"] = "2020-05-05T05:05:05Z"
        store.path_for("demo").write_text(json.dumps(doc), encoding="utf-8")

        saved = store.save(_metadata("demo", "second"), _make_tracker("y"))
        assert saved.metadata.created_at == "2020-05-05T05:05:05Z"
        assert store.load("demo").metadata.created_at == "2020-05-05T05:05:05Z"
        assert store.load("demo").metadata.updated_at > "2020-05-05T05:05:05Z"

    def test_replaces_corrupt_existing_file(self, tmp_path, caplog):
        store = _make_store(tmp_path)
        store.path_for("demo").write_text("{oops", encoding="utf-8")
        with caplog.at_level(logging.WARNING, logger="repl_sessions.store"):
            saved = store.save(_metadata("demo"), _make_tracker("x"))
        assert saved.metadata.created_at
        assert [c.code for c in store.load("demo").commands] == ["x"]
        assert "Replacing unreadable session demo" in caplog.text

    def test_unserializable_variable_raises_storage_error(self, tmp_path):
        store = _make_store(tmp_path)
        tracker = _make_tracker("x")
        tracker._variables["bad"] = {"value": object()}
        with pytest.raises(SessionStorageError):
            store.save(_metadata("demo"), tracker)
        assert not store.exists("demo")


class TestSessionStoreLoad:
    def test_round_trip(self, tmp_path):
        store = _make_store(tmp_path)
        store.save(_metadata("demo", "desc", ["API", "debug"]), _make_tracker("a = 1", "a"))
        loaded = store.load("demo")
        assert loaded.metadata.description.value == "desc"
        assert loaded.metadata.tags.to_list() == ["api", "debug"]
        assert [c.code for c in loaded.commands] == ["a = 1", "a"]

    def test_missing(self, tmp_path):
        with pytest.raises(SessionNotFoundError) as exc_info:
            _make_store(tmp_path).load("ghost")
        assert str(exc_info.value) == "Session 'ghost' does not exist."

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"commands": []}'])
    def test_corrupt(self, tmp_path, content):
        store = _make_store(tmp_path)
        store.path_for("bad").write_text(content, encoding="utf-8")
        with pytest.raises(SessionCorruptError):
            store.load("bad")


class TestSessionStorePaths:
    def test_path_stays_in_sessions_dir(self, tmp_path):
        store = _make_store(tmp_path)
        assert store.path_for("demo") == store.sessions_dir / "demo.json"

    @pytest.mark.parametrize("bad", ["../escape", "a/b", ""])
    def test_unsafe_names_rejected(self, tmp_path, bad):
        with pytest.raises(ValidationError):
            _make_store(tmp_path).path_for(bad)


class TestSessionStoreList:
    def test_sorted_by_updated_at_descending(self, tmp_path):
        store = _make_store(tmp_path)
        _write_session_file(store.sessions_dir, "older", "2026-01-01T10:00:00Z")
        _write_session_file(store.sessions_dir, "newest", "2026-03-01T10:00:00Z")
        _write_session_file(store.sessions_dir, "middle", "2026-02-01T10:00:00Z")
        assert [s.name for s in store.list()] == ["newest", "middle", "older"]

    def test_filter_requires_all_tags(self, tmp_path):
        store = _make_store(tmp_path)
        _write_session_file(store.sessions_dir, "both", "2026-01-01T10:00:00Z", tags=["api", "debug"])
        _write_session_file(store.sessions_dir, "one", "2026-01-02T10:00:00Z", tags=["api"])
        assert [s.name for s in store.list(["API"])] == ["one", "both"]
        assert [s.name for s in store.list(["api", "debug"])] == ["both"]
        assert store.list(["missing"]) == []

    def test_skips_corrupt_files(self, tmp_path, caplog):
        store = _make_store(tmp_path)
        _write_session_file(store.sessions_dir, "good", "2026-01-01T10:00:00Z")
        (store.sessions_dir / "broken.json").write_text("{oops", encoding="utf-8")
        (store.sessions_dir / "array.json").write_text("[]", encoding="utf-8")
        with caplog.at_level(logging.WARNING, logger="repl_sessions.store"):
            sessions = store.list()
        assert [s.name for s in sessions] == ["good"]
        assert "broken.json" in caplog.text

    @pytest.mark.parametrize("bad", [
        {"name": "bad", "updated_at": 5},
        {"name": "bad", "commands": 3},
        {"name": "bad", "tags": 7},
        {"name": "bad", "metadata": {"total_commands": "many"}},
        {"name": ["bad"]},
    ])
    def test_skips_documents_with_wrong_field_types(self, tmp_path, caplog, bad):
        store = _make_store(tmp_path)
        _write_session_file(store.sessions_dir, "good", "2026-01-01T10:00:00Z")
        (store.sessions_dir / "bad.json").write_text(json.dumps(bad), encoding="utf-8")
        with caplog.at_level(logging.WARNING, logger="repl_sessions.store"):
            sessions = store.list()
        assert [s.name for s in sessions] == ["good"]
        assert "bad.json" in caplog.text

    def test_command_count_prefers_total_commands(self, tmp_path):
        store = _make_store(tmp_path)
        store.save(_metadata("demo"), _make_tracker("a", "b", "c"))
        _write_session_file(store.sessions_dir, "legacy", "2020-01-01T00:00:00Z", commands=4)
        counts = {s.name: s.command_count for s in store.list()}
        assert counts == {"demo": 3, "legacy": 4}

    def test_names_and_has_sessions(self, tmp_path):
        store = _make_store(tmp_path)
        assert not store.has_sessions()
        store.save(_metadata("demo"), _make_tracker("x"))
        assert store.names() == ["demo"]
        assert store.has_sessions()


class TestSessionStoreUpdateDelete:
    def test_update_requires_existing(self, tmp_path):
        store = _make_store(tmp_path)
        with pytest.raises(SessionNotFoundError):
            store.update(SessionData(metadata=_metadata("ghost")))

    def test_update_overwrites_document(self, tmp_path):
        store = _make_store(tmp_path)
        data = store.save(_metadata("demo"), _make_tracker("x"))
        data.commands.append(CommandEntry(code="y", order=2))
        store.update(data)
        assert [c.code for c in store.load("demo").commands] == ["x", "y"]

    def test_delete(self, tmp_path):
        store = _make_store(tmp_path)
        store.save(_metadata("demo"), _make_tracker("x"))
        assert store.delete("demo") is True
        assert not store.exists("demo")
        with pytest.raises(SessionNotFoundError):
            store.delete("demo")

    def test_end_to_end(self, tmp_path):
        store = _make_store(tmp_path)
        store.save(_metadata("s1", tags=["api"]), _make_tracker("a"))
        store.save(_metadata("s2"), _make_tracker("b", "c"))
        assert sorted(store.names()) == ["s1", "s2"]
        assert [s.name for s in store.list(["api"])] == ["s1"]
        store.delete("s1")
        assert store.names() == ["s2"]


class TestSessionCommandRunner:
    def _session(self, *codes: str) -> SessionData:
        return SessionData(
            metadata=_metadata("demo"),
            commands=[CommandEntry(code=c, order=i + 1) for i, c in enumerate(codes)],
        )

    def test_replays_in_order_and_decodes(self):
        interpreter = FakeInterpreter()
        tracker = SessionTracker()
        result = SessionCommandRunner().execute(
            interpreter, self._session(HISTORY_SENTINEL, "x\\040=\\0401", "answer"), tracker
        )
        assert interpreter.executed == ["x = 1", "answer"]
        assert interpreter.returned == [42]
        assert result.to_dict() == {"executed": 2, "failed": 0}

    def test_failures_do_not_stop_replay(self):
        interpreter = FakeInterpreter(fail_on=["bad()"])
        out = Console(file=io.StringIO(), width=200)
        runner = SessionCommandRunner()
        result = runner.execute(interpreter, self._session("a = 1", "bad()", "b = 2"), SessionTracker(), out)
        assert interpreter.executed == ["a = 1", "bad()", "b = 2"]
        assert (result.executed, result.failed) == (2, 1)
        assert runner.last_result is result
        text = out.file.getvalue()
        assert ">>> bad()" in text
        assert "Failed to execute: boom: bad()" in text

    def test_system_exit_counts_as_failure(self):
        class ExitingInterpreter(FakeInterpreter):
            def execute(self, code):
                if code == "quit()":
                    self.executed.append(code)
                    raise SystemExit(3)
                return super().execute(code)

        interpreter = ExitingInterpreter()
        tracker = SessionTracker()
        result = SessionCommandRunner().execute(interpreter, self._session("a = 1", "quit()", "b = 2"), tracker)
        assert interpreter.executed == ["a = 1", "quit()", "b = 2"]
        assert (result.executed, result.failed) == (2, 1)
        assert tracker.loaded_session_name == "demo"

    def test_display_output_off(self):
        interpreter = FakeInterpreter()
        SessionCommandRunner().execute(interpreter, self._session("answer"), SessionTracker(), display_output=False)
        assert interpreter.returned == []

    def test_tracker_takes_session_commands_even_on_failure(self):
        interpreter = FakeInterpreter(fail_on=["a", "b"])
        tracker = SessionTracker()
        session = SessionData(
            metadata=_metadata("demo"),
            commands=[CommandEntry(code="a", order=3), CommandEntry(code="b", order=8)],
        )
        SessionCommandRunner().execute(interpreter, session, tracker)
        assert [c.order for c in tracker.commands] == [3, 8]
        assert tracker.loaded_session_name == "demo"

    def test_summary(self):
        out = Console(file=io.StringIO(), width=200)
        SessionCommandRunner().execute_with_summary(
            FakeInterpreter(fail_on=["b"]), self._session("a", "b"), SessionTracker(), out
        )
        text = out.file.getvalue()
        assert "Executed 1 command(s) (1 failed)" in text
        assert "session:update" in text


def _append_history(path: Path, *lines: str) -> None:
    with open(path, "a", encoding="utf-8") as f:
        for line in lines:
            f.write(line + "\n")


class TestSessionUpdater:
    def _setup(self, tmp_path, stored_orders=(1, 2, 3)):
        store = _make_store(tmp_path)
        history_path = tmp_path / "history"
        history_path.write_text("earlier = 0\n", encoding="utf-8")
        history = HistoryReader(history_path)

        tracker = SessionTracker()
        history.mark_start(tracker)
        store.save(_metadata("demo", "original", ["api"]), _make_tracker("x"))
        session = store.load("demo")
        session.commands = [CommandEntry(code=f"c{o}", order=o) for o in stored_orders]
        store.update(session)

        SessionCommandRunner().execute(FakeInterpreter(), store.load("demo"), tracker)
        return store, history, history_path, tracker

    def test_requires_loaded_session(self, tmp_path):
        store = _make_store(tmp_path)
        updater = SessionUpdater(store, HistoryReader(tmp_path / "history"))
        with pytest.raises(NoSessionLoadedError):
            updater.update(SessionTracker())

    def test_appends_with_continuing_order(self, tmp_path):
        store, history, history_path, tracker = self._setup(tmp_path)
        _append_history(history_path, "y = 2", "session:update", "z = 3")

        result = SessionUpdater(store, history).update(tracker)
        assert (result.added, result.total) == (2, 5)

        stored = store.load("demo")
        assert [c.order for c in stored.commands] == [1, 2, 3, 4, 5]
        assert [c.code for c in stored.commands[3:]] == ["y = 2", "z = 3"]
        assert stored.session_metadata["total_commands"] == 5
        assert stored.metadata.description.value == "original"
        assert stored.metadata.tags.to_list() == ["api"]

    def test_no_new_commands_is_a_no_op(self, tmp_path):
        store, history, history_path, tracker = self._setup(tmp_path)
        _append_history(history_path, "session:update", "help")
        before = store.path_for("demo").read_text(encoding="utf-8")

        result = SessionUpdater(store, history).update(tracker)
        assert not result.has_changes
        assert result.total == 3
        assert store.path_for("demo").read_text(encoding="utf-8") == before

    def test_second_update_does_not_duplicate(self, tmp_path):
        store, history, history_path, tracker = self._setup(tmp_path)
        updater = SessionUpdater(store, history)
        _append_history(history_path, "y = 2")
        updater.update(tracker)
        assert updater.update(tracker).added == 0
        _append_history(history_path, "z = 3")
        assert updater.update(tracker).added == 1
        assert [c.code for c in store.load("demo").commands][-2:] == ["y = 2", "z = 3"]

    def test_overlays_description_and_tags(self, tmp_path):
        store, history, history_path, tracker = self._setup(tmp_path)
        _append_history(history_path, "y = 2")
        SessionUpdater(store, history).update(
            tracker, description=SessionDescription("new"), tags=SessionTags(["db"])
        )
        stored = store.load("demo")
        assert stored.metadata.description.value == "new"
        assert stored.metadata.tags.to_list() == ["db"]

    def test_keeps_created_at(self, tmp_path):
        store, history, history_path, tracker = self._setup(tmp_path)
        created = store.load("demo").metadata.created_at
        _append_history(history_path, "y = 2")
        SessionUpdater(store, history).update(tracker)
        assert store.load("demo").metadata.created_at == created

    def test_merge_commands_uses_max_order(self):
        existing = [CommandEntry(code="a", order=1), CommandEntry(code="b", order=7)]
        merged = merge_commands(existing, ["c", "d"])
        assert [c.order for c in merged] == [1, 7, 8, 9]
        assert merge_commands([], ["x"])[0].order == 1


class _FixedClock:
    def __init__(self, when: datetime.datetime):
        self.when = when

    def __call__(self):
        return self.when


class TestAutoSaveController:
    def _setup(self, tmp_path, enabled=True, min_commands=2, interval_seconds=300):
        store = _make_store(tmp_path)
        history_path = tmp_path / "history"
        history = HistoryReader(history_path)
        tracker = SessionTracker()
        history.mark_start(tracker)
        controller = AutoSaveController(
            store, tracker, history,
            enabled=enabled,
            min_commands=min_commands,
            interval_seconds=interval_seconds,
            clock=_FixedClock(datetime.datetime(2026, 1, 24, 10, 30, 15)),
        )
        return store, history_path, tracker, controller

    def test_disabled_is_a_no_op(self, tmp_path):
        store, history_path, tracker, controller = self._setup(tmp_path, enabled=False)
        _append_history(history_path, "a", "b", "c")
        controller.tick()
        assert tracker.command_count == 0
        assert not store.has_sessions()

    def test_below_threshold_does_not_save(self, tmp_path):
        store, history_path, tracker, controller = self._setup(tmp_path)
        _append_history(history_path, "a = 1")
        controller.tick()
        assert tracker.command_count == 1
        assert not store.has_sessions()
        assert not controller.has_auto_saved

    def test_saves_under_one_name_per_process(self, tmp_path):
        store, history_path, tracker, controller = self._setup(tmp_path)
        _append_history(history_path, "a = 1", "b = 2")
        controller.tick()
        assert controller.auto_saved_name == "session-auto-saved-2026-01-24-103015"

        _append_history(history_path, "c = 3")
        controller.tick()
        assert store.names() == ["session-auto-saved-2026-01-24-103015"]
        saved = store.load("session-auto-saved-2026-01-24-103015")
        assert [c.code for c in saved.commands] == ["a = 1", "b = 2", "c = 3"]
        assert saved.metadata.description.value == "Auto-saved session"
        assert saved.metadata.tags.to_list() == ["auto-saved"]

    def test_interval_triggers_save(self, tmp_path):
        store, history_path, tracker, controller = self._setup(tmp_path, min_commands=100, interval_seconds=0)
        _append_history(history_path, "a = 1")
        controller.tick()
        assert controller.has_auto_saved

    def test_nothing_to_save(self, tmp_path):
        store, history_path, tracker, controller = self._setup(tmp_path, min_commands=0)
        controller.tick()
        assert not controller.has_auto_saved
        assert controller.perform_auto_save() is None

    def test_failures_are_logged_not_raised(self, tmp_path, caplog, monkeypatch):
        store, history_path, tracker, controller = self._setup(tmp_path)

        def failing_save(metadata, tracker):
            raise SessionStorageError("disk full")

        monkeypatch.setattr(store, "save", failing_save)
        _append_history(history_path, "a = 1", "b = 2")
        with caplog.at_level(logging.WARNING, logger="repl_sessions.autosave"):
            controller.tick()
        assert "Auto-save failed: disk full" in caplog.text
