# Event Log Tests
# SPDX-License-Identifier: AGPL-3.0

"""
Tests for the append-only event log:
1. append builds, stores and persists events
2. load tolerates missing and corrupt files
3. reads return snapshots, never the live history
4. replay and get_events_since follow append order
"""

import json
import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings, strategies as st

from alignment_memory import EventLog, EventType, create_event_log


class TestAppend:
    """Test event creation and persistence."""

    def test_append_returns_event(self, event_log, clock):
        """Appended event carries id, timestamp, type, payload and source."""
        event = event_log.append(EventType.CONSTRAINT_ADDED, {"key": "k", "value": "v"})

        assert event.event_id.startswith("evt_")
        assert event.timestamp == "2026-01-01T12:00:00.000+00:00"
        assert event.event_type == "CONSTRAINT_ADDED"
        assert event.payload == {"key": "k", "value": "v"}
        assert event.source == "conscience"
        assert event.occurred_at == clock()

    def test_append_custom_source(self, event_log):
        """Source tag is recorded."""
        event = event_log.append(EventType.MOOD_RECORDED, {"mood": "Calm"}, source="mood_tracker")
        assert event.source == "mood_tracker"

    def test_unique_ids(self, event_log):
        """Ids are unique even within one millisecond."""
        ids = {event_log.append(EventType.MOOD_RECORDED, {}).event_id for _ in range(50)}
        assert len(ids) == 50

    def test_unknown_event_type_rejected(self, event_log):
        """Only the fixed enumeration may be appended."""
        with pytest.raises(ValueError):
            event_log.append("SOMETHING_ELSE", {})
        assert len(event_log) == 0

    def test_append_persists(self, event_log, log_path):
        """Every append writes the full sequence to disk."""
        event_log.append(EventType.CONSTRAINT_ADDED, {"key": "a", "nested": {"list": [1, 2, {"x": None}]}})
        event_log.append(EventType.CONSTRAINT_OBSOLETED, {"key": "a", "reason": "done"})

        lines = log_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["payload"]["nested"] == {"list": [1, 2, {"x": None}]}
        assert event_log.last_save_result.ok

    def test_reload_roundtrip(self, event_log, log_path):
        """A fresh log loads exactly what was appended."""
        appended = [
            event_log.append(EventType.CONSTRAINT_ADDED, {"key": "a", "value": "ünïcode ✓"}),
            event_log.append(EventType.MOOD_RECORDED, {"mood": "Sad", "intensity": 7.5}, "mood_tracker"),
        ]

        reloaded = create_event_log(log_path)
        assert reloaded.get_events() == appended

    def test_save_failure_keeps_event_in_memory(self, data_dir):
        """A failed save is reported but the event stays visible."""
        blocked = data_dir / "blocked"
        blocked.mkdir()
        log = EventLog(blocked)

        event = log.append(EventType.CONSTRAINT_ADDED, {"key": "a", "value": "v"})

        assert not log.last_save_result.ok
        assert log.last_save_result.error
        assert log.get_events() == [event]

    def test_unserializable_payload_reported(self, event_log):
        """Payloads that cannot be encoded fail the save, not the process."""
        event_log.append(EventType.MOOD_RECORDED, {"bad": object()})
        assert not event_log.last_save_result.ok
        assert len(event_log) == 1


class TestLoad:
    """Test loading from the backing file."""

    def test_missing_file_is_empty(self, event_log):
        """First run: no file, empty log, success."""
        result = event_log.load()
        assert result.ok
        assert event_log.get_events() == []

    def test_corrupt_file_is_empty(self, log_path):
        """Malformed JSON degrades to an empty log without raising."""
        log_path.write_text("{not json\n", encoding="utf-8")
        log = EventLog(log_path)

        result = log.load()

        assert not result.ok
        assert "JSONDecodeError" in result.error
        assert log.get_events() == []

    def test_wrong_shape_is_empty(self, log_path):
        """Valid JSON that is not an event is treated as corrupt."""
        log_path.write_text('[1, 2, 3]\n{"event_id": "x"}\n', encoding="utf-8")
        log = EventLog(log_path)

        assert not log.load().ok
        assert len(log) == 0

    @pytest.mark.parametrize("entry", [
        {"event_type": "CONSTRAINT_ADDED", "payload": {"key": "k"}},
        {"event_type": "CONSTRAINT_ADDED", "payload": {"key": "k", "value": "v", "strength": "high"}},
        {"event_type": "CONSTRAINT_OBSOLETED", "payload": {}},
        {"event_type": "MOOD_RECORDED", "payload": {"mood": "Sad", "intensity": "7"}},
        {"event_type": "MOOD_RECORDED", "payload": ["Sad", 7]},
        {"event_type": "MOOD_RECORDED", "payload": {"mood": "Sad", "intensity": 7}, "timestamp": "yesterday"},
        {"event_type": "SOMETHING_ELSE", "payload": {}},
    ])
    def test_unreplayable_entry_is_empty(self, log_path, entry):
        """Parseable entries the projections cannot fold are treated as corrupt."""
        line = {"event_id": "evt_1_abc", "timestamp": "2026-01-01T12:00:00.000+00:00", "source": "conscience"}
        line.update(entry)
        log_path.write_text(json.dumps(line) + "\n", encoding="utf-8")
        log = EventLog(log_path)

        result = log.load()

        assert not result.ok
        assert "ValueError" in result.error
        assert len(log) == 0

    def test_zulu_and_legacy_fields_load(self, log_path):
        """Older entries with a 'Z' suffix and no source still load."""
        line = {"event_id": "evt_1_abc", "timestamp": "2026-01-01T12:00:00Z",
                "event_type": "MOOD_RECORDED", "payload": {"mood": "Calm", "intensity": 1}}
        log_path.write_text(json.dumps(line) + "\n", encoding="utf-8")
        log = EventLog(log_path)

        assert log.load().ok
        assert log.get_events()[0].source == "conscience"

    def test_load_replaces_memory(self, event_log, log_path):
        """load() discards in-memory events in favour of the file."""
        event_log.append(EventType.MOOD_RECORDED, {"mood": "Calm"})
        log_path.unlink()

        event_log.load()
        assert len(event_log) == 0

    def test_blank_lines_ignored(self, event_log, log_path):
        """Blank lines in the file are skipped."""
        event = event_log.append(EventType.MOOD_RECORDED, {"mood": "Calm", "intensity": 2})
        log_path.write_text("\n" + log_path.read_text(encoding="utf-8") + "\n\n", encoding="utf-8")

        assert create_event_log(log_path).get_events() == [event]


class TestReads:
    """Test snapshots, filtering and replay."""

    def test_get_events_returns_copy(self, event_log):
        """Mutating the returned list or payloads leaves history untouched."""
        event_log.append(EventType.CONSTRAINT_ADDED, {"key": "a", "tags": ["x"]})

        events = event_log.get_events()
        events.clear()
        snapshot = event_log.get_events()
        snapshot[0].payload["key"] = "hacked"
        snapshot[0].payload["tags"].append("y")

        fresh = event_log.get_events()[0]
        assert fresh.payload == {"key": "a", "tags": ["x"]}

    def test_caller_payload_detached(self, event_log):
        """Editing the dict passed to append does not rewrite history."""
        payload = {"key": "a"}
        event_log.append(EventType.CONSTRAINT_ADDED, payload)
        payload["key"] = "b"

        assert event_log.get_events()[0].payload["key"] == "a"

    def test_filter_by_type(self, event_log):
        """Type filter keeps append order."""
        event_log.append(EventType.MOOD_RECORDED, {"n": 1})
        event_log.append(EventType.CONSTRAINT_ADDED, {"n": 2})
        event_log.append(EventType.MOOD_RECORDED, {"n": 3})

        moods = event_log.get_events(EventType.MOOD_RECORDED)
        assert [e.payload["n"] for e in moods] == [1, 3]
        assert [e.payload["n"] for e in event_log.get_events("CONSTRAINT_ADDED")] == [2]

    def test_replay_folds_in_order(self, event_log):
        """replay is a left fold over the sequence."""
        for n in range(5):
            event_log.append(EventType.MOOD_RECORDED, {"n": n})

        result = event_log.replay(lambda acc, e: acc + [e.payload["n"]], [])
        assert result == [0, 1, 2, 3, 4]

    def test_replay_empty_returns_initial(self, event_log):
        """No events: initial state comes back."""
        initial = {"untouched": True}
        assert event_log.replay(lambda s, e: None, initial) is initial

    def test_replay_reducer_cannot_corrupt_log(self, event_log):
        """A reducer that edits payloads does not change stored events."""
        event_log.append(EventType.CONSTRAINT_ADDED, {"key": "a"})

        def vandal(state, event):
            event.payload["key"] = "z"
            return state

        event_log.replay(vandal, None)
        assert event_log.get_events()[0].payload["key"] == "a"

    def test_get_events_since(self, event_log):
        """Events strictly after the anchor."""
        events = [event_log.append(EventType.MOOD_RECORDED, {"n": n}) for n in range(4)]

        assert event_log.get_events_since(events[1].event_id) == events[2:]
        assert event_log.get_events_since(events[3].event_id) == []

    def test_get_events_since_unknown(self, event_log):
        """Unknown anchor returns the whole sequence."""
        events = [event_log.append(EventType.MOOD_RECORDED, {"n": n}) for n in range(3)]
        assert event_log.get_events_since("evt_missing") == events


@settings(max_examples=25, deadline=None)
@given(n=st.integers(min_value=1, max_value=15), data=st.data())
def test_get_events_since_property(n, data):
    """For any k, get_events_since(id_k) returns events k+1..N in order."""
    k = data.draw(st.integers(min_value=0, max_value=n - 1))
    with tempfile.TemporaryDirectory() as tmpdir:
        log = EventLog(Path(tmpdir) / "events.jsonl")
        events = [log.append(EventType.MOOD_RECORDED, {"n": i}) for i in range(n)]

        assert log.get_events_since(events[k].event_id) == events[k + 1:]
        assert log.get_events_since("evt_unknown") == events


class TestExport:
    """Test JSONL export."""

    def test_export_with_redaction(self, event_log, data_dir):
        """Redacted export hides secrets, plain export keeps them."""
        event_log.append(EventType.MOOD_RECORDED, {"mood": "Angry", "reason": "leaked sk-1234567890abcdefghij"})

        plain = data_dir / "plain.jsonl"
        redacted = data_dir / "redacted.jsonl"
        assert event_log.export(plain) == 1
        event_log.export(redacted, redact=True)

        assert "sk-1234567890abcdefghij" in plain.read_text(encoding="utf-8")
        text = redacted.read_text(encoding="utf-8")
        assert "sk-1234567890abcdefghij" not in text
        assert "<REDACTED_TOKEN>" in text
        # Export never touches the log itself
        assert "sk-1234567890abcdefghij" in event_log.get_events()[0].payload["reason"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
