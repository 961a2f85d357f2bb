"""Tests for tcgen.recorder."""

import json
from datetime import date, datetime

import pytest

from tcgen.clock import FixtureClock
from tcgen.recorder import FixtureRecorder


def log_add(recorder, a=2, b=3):
    recorder.log("add", False, {"total": 0}, [a, b], {"output": a + b})


class TestFileNames:
    def test_base_name_and_date(self, recorder):
        assert recorder.file_name_for(date(2024, 3, 14)) == "models_calc_Mar_14_2024.json"

    def test_bare_date_without_base_name(self, temp_dir, clock):
        rec = FixtureRecorder(temp_dir, clock=clock)
        assert rec.file_name_for(date(2024, 3, 14)) == "Mar_14_2024.json"
        assert rec.file_name_for(date(2024, 3, 14), 2) == "Mar_14_2024.2.json"

    def test_creates_missing_directory(self, temp_dir, clock):
        logdir = temp_dir / "a" / "b"
        FixtureRecorder(logdir, clock=clock)
        assert logdir.is_dir()


class TestStream:
    def test_lazy_open(self, recorder):
        assert recorder.current_path is None
        assert list(recorder.logdir.iterdir()) == []

    def test_records_form_one_document(self, recorder, read_fixture):
        log_add(recorder)
        recorder.log("add", False, {"total": 5}, [1, 1], {"output": 2}, kwargs={"round": True})
        path = recorder.current_path
        recorder.close()

        doc = read_fixture(path)
        assert doc["type"] == "unit"
        assert doc["require"] == "models/calc.py"
        assert doc["label"] == "models_calc"
        assert doc["tests"] == [
            {
                "require": {"total": 0},
                "request": {"payload": [2, 3], "construct": False, "method": "add"},
                "output": {"output": 5},
            },
            {
                "require": {"total": 5},
                "request": {
                    "payload": [1, 1],
                    "construct": False,
                    "method": "add",
                    "kwargs": {"round": True},
                },
                "output": {"output": 2},
            },
        ]
        assert recorder.records_written == 2

    def test_empty_stream_is_valid(self, recorder, read_fixture):
        path = recorder.ensure_current()
        recorder.close()
        assert read_fixture(path)["tests"] == []

    def test_open_file_lacks_footer(self, recorder):
        log_add(recorder)
        content = recorder.current_path.read_text(encoding="utf-8")

        assert content.startswith('{"type":"unit"')
        with pytest.raises(json.JSONDecodeError):
            json.loads(content)

    def test_close_is_idempotent(self, recorder, read_fixture):
        log_add(recorder)
        path = recorder.current_path
        recorder.close()
        recorder.close()
        assert len(read_fixture(path)["tests"]) == 1

    def test_logging_after_close_opens_numbered_sibling(self, recorder, read_fixture):
        log_add(recorder)
        first = recorder.current_path
        recorder.close()

        log_add(recorder, 4, 4)
        second = recorder.current_path
        recorder.close()

        assert first.name == "models_calc_Mar_14_2024.json"
        assert second.name == "models_calc_Mar_14_2024.1.json"
        assert read_fixture(second)["tests"][0]["output"] == {"output": 8}

    def test_unserializable_record_is_dropped(self, recorder, read_fixture):
        circular = []
        circular.append(circular)

        recorder.log("add", False, None, [float("nan")], {"output": None})
        recorder.log("add", False, None, [circular], {"output": None})
        recorder.log("add", False, None, [{1, 2}], {"output": None})
        path = recorder.current_path
        recorder.close()

        assert recorder.records_dropped == 2
        assert recorder.records_written == 1
        assert read_fixture(path)["tests"][0]["request"]["payload"] == ["{1, 2}"]


class TestRollover:
    def test_day_change_produces_two_documents(self, temp_dir, read_fixture):
        clock = FixtureClock(frozen_time=datetime(2024, 3, 14, 23, 59, 0))
        rec = FixtureRecorder(temp_dir, "calc.py", "calc", clock=clock)

        rec.log("add", False, None, [1, 1], {"output": 2})
        before = rec.current_path

        clock.advance(minutes=2)
        rec.log("add", False, None, [2, 2], {"output": 4})
        after = rec.current_path
        rec.close()

        assert before != after
        assert before.name == "calc_Mar_14_2024.json"
        assert after.name == "calc_Mar_15_2024.json"

        first, second = read_fixture(before), read_fixture(after)
        assert [t["request"]["payload"] for t in first["tests"]] == [[1, 1]]
        assert [t["request"]["payload"] for t in second["tests"]] == [[2, 2]]

    def test_same_day_keeps_stream(self, recorder):
        log_add(recorder)
        path = recorder.current_path
        recorder.clock.advance(hours=6)
        log_add(recorder)
        assert recorder.current_path == path


class TestFailures:
    def test_unwritable_directory_drops_records(self, temp_dir, clock):
        blocker = temp_dir / "file"
        blocker.write_text("not a directory")

        rec = FixtureRecorder(blocker / "fixtures", clock=clock)
        rec.log("add", False, None, [], {"output": None})

        assert rec.records_written == 0
        assert rec.records_dropped == 1
        rec.close()

    def test_context_manager_closes(self, temp_dir, clock, read_fixture):
        with FixtureRecorder(temp_dir, "x.py", "x", clock=clock) as rec:
            rec.log("f", False, None, [], {"output": 1})
            path = rec.current_path
        assert read_fixture(path)["tests"][0]["output"] == {"output": 1}
