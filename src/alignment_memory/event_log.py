# Alignment Memory - Event Log (JSONL Append-Only)
# SPDX-License-Identifier: AGPL-3.0

from __future__ import annotations
"""
Append-only JSONL event log as the truth source for behavioral state.

Constraints and moods are projections of this log. Nothing else is durable.
Events are immutable once appended: reads hand out copies, never the live list.
"""

import copy
import json
import logging
import os
import tempfile
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterator, TypeVar

from .errors import StorageResult
from .redaction import redact_payload

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "conscience"

S = TypeVar("S")
Clock = Callable[[], datetime]


class EventType(str, Enum):
    CONSTRAINT_ADDED = "CONSTRAINT_ADDED"
    CONSTRAINT_UPDATED = "CONSTRAINT_UPDATED"
    CONSTRAINT_OBSOLETED = "CONSTRAINT_OBSOLETED"
    CONSTRAINT_CONTRADICTED = "CONSTRAINT_CONTRADICTED"
    MOOD_RECORDED = "MOOD_RECORDED"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def parse_timestamp(value: str) -> datetime:
    """Parse a stored timestamp. Accepts a trailing 'Z' and naive values (taken as UTC)."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_payload(event_type: EventType, payload: Any) -> None:
    """Reject persisted payloads the projections could not fold."""
    if not isinstance(payload, dict):
        raise ValueError(f"{event_type.value} payload is not an object")

    if event_type == EventType.MOOD_RECORDED:
        if not isinstance(payload.get("mood"), str):
            raise ValueError("MOOD_RECORDED payload needs a string 'mood'")
        if not _is_number(payload.get("intensity")):
            raise ValueError("MOOD_RECORDED payload needs a numeric 'intensity'")
        return

    if not isinstance(payload.get("key"), str):
        raise ValueError(f"{event_type.value} payload needs a string 'key'")
    if event_type == EventType.CONSTRAINT_ADDED and not isinstance(payload.get("value"), str):
        raise ValueError("CONSTRAINT_ADDED payload needs a string 'value'")
    for name in ("strength", "ttl"):
        if payload.get(name) is not None and not _is_number(payload[name]):
            raise ValueError(f"{event_type.value} payload field '{name}' must be numeric")


@dataclass(frozen=True)
class Event:
    """A single immutable domain event."""
    event_id: str
    timestamp: str
    event_type: str
    payload: dict[str, Any] = field(default_factory=dict)
    source: str = DEFAULT_SOURCE

    def __post_init__(self):
        # Detach from the caller's dict so later edits cannot reach the log
        object.__setattr__(self, "payload", copy.deepcopy(dict(self.payload)))

    @property
    def occurred_at(self) -> datetime:
        return parse_timestamp(self.timestamp)

    def copy(self) -> "Event":
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "timestamp": self.timestamp,
            "event_type": self.event_type,
            "payload": copy.deepcopy(self.payload),
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Event":
        """Build an event from its persisted form. Raises ValueError on entries that cannot be replayed."""
        event_type = EventType(data["event_type"])
        timestamp = data["timestamp"]
        if not isinstance(timestamp, str):
            raise ValueError(f"timestamp must be a string, got {timestamp!r}")
        parse_timestamp(timestamp)
        payload = data.get("payload")
        payload = {} if payload is None else payload
        _check_payload(event_type, payload)
        return cls(
            event_id=data["event_id"],
            timestamp=timestamp,
            event_type=event_type.value,
            payload=payload,
            source=data.get("source", DEFAULT_SOURCE),
        )


class EventLog:
    """
    Append-only event log backed by a JSONL file.

    One EventLog owns its file. Appends are not locked: callers sharing a log
    must serialize their writes.
    """

    def __init__(self, file_path: Path, clock: Clock | None = None):
        self.file_path = Path(file_path)
        self._clock = clock or utc_now
        self._events: list[Event] = []
        self.last_save_result: StorageResult | None = None

    def _generate_event_id(self, moment: datetime) -> str:
        return f"evt_{epoch_ms(moment)}_{uuid.uuid4().hex[:8]}"

    # ===== Persistence =====

    def load(self) -> StorageResult:
        """
        Replace in-memory events with the persisted sequence.

        A missing file is a first run and yields an empty log. An unreadable or
        malformed file also yields an empty log; the failure is logged and
        returned, never raised.
        """
        if not self.file_path.exists():
            self._events = []
            return StorageResult.success(self.file_path)

        try:
            events = []
            with open(self.file_path, "r", encoding="utf-8") as f:
                for line_no, line in enumerate(f, 1):
                    if not line.strip():
                        continue
                    data = json.loads(line)
                    if not isinstance(data, dict):
                        raise ValueError(f"line {line_no} is not an event object")
                    events.append(Event.from_dict(data))
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.error("Error loading event log %s: %s", self.file_path, exc)
            self._events = []
            return StorageResult.failure(self.file_path, exc)

        self._events = events
        logger.debug("Loaded %d events from %s", len(events), self.file_path)
        return StorageResult.success(self.file_path)

    def save(self) -> StorageResult:
        """
        Persist the full sequence, replacing the file atomically.

        Failures are logged and returned. In-memory state is left as is.
        """
        tmp_name = None
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.file_path.parent, prefix=f".{self.file_path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                for event in self._events:
                    f.write(json.dumps(event.to_dict(), ensure_ascii=False) + "\n")
            os.replace(tmp_name, self.file_path)
            tmp_name = None
            result = StorageResult.success(self.file_path)
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Error saving event log %s: %s", self.file_path, exc)
            result = StorageResult.failure(self.file_path, exc)
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        self.last_save_result = result
        return result

    # ===== Writes =====

    def append(self, event_type: EventType | str, payload: dict[str, Any],
               source: str = DEFAULT_SOURCE) -> Event:
        """
        Append an event and persist the log.

        Args:
            event_type: One of EventType
            payload: Event data
            source: Origin of the event (e.g. "conscience", "mood_tracker")

        Returns:
            The created event. It stays visible in this process even when the
            save fails; check last_save_result for durability.
        """
        moment = self._clock()
        event = Event(
            event_id=self._generate_event_id(moment),
            timestamp=format_timestamp(moment),
            event_type=EventType(event_type).value,
            payload=payload,
            source=source,
        )

        self._events.append(event)
        self.save()
        logger.debug("Appended %s %s", event.event_type, event.event_id)
        return event.copy()

    # ===== Reads =====

    def get_events(self, event_type: EventType | str | None = None) -> list[Event]:
        """Get a snapshot of all events, optionally of one type, in append order."""
        if event_type is None:
            return [e.copy() for e in self._events]
        wanted = EventType(event_type).value
        return [e.copy() for e in self._events if e.event_type == wanted]

    def replay(self, reducer: Callable[[S, Event], S], initial_state: S) -> S:
        """Fold the ordered events through reducer(state, event) -> state."""
        state = initial_state
        for event in self._events:
            state = reducer(state, event.copy())
        return state

    def get_events_since(self, event_id: str) -> list[Event]:
        """Events strictly after event_id. An unknown id returns every event."""
        for idx, event in enumerate(self._events):
            if event.event_id == event_id:
                return [e.copy() for e in self._events[idx + 1:]]
        return self.get_events()

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self.get_events())

    def export(self, output_file: Path, redact: bool = False) -> int:
        """Export all events to a JSONL file. Returns the number written."""
        count = 0
        with open(output_file, "w", encoding="utf-8") as out:
            for event in self._events:
                data = event.to_dict()
                if redact:
                    data["payload"] = redact_payload(data["payload"])
                out.write(json.dumps(data, ensure_ascii=False) + "\n")
                count += 1
        return count


def create_event_log(file_path: str | Path, load: bool = True, clock: Clock | None = None) -> EventLog:
    """Create or open an event log."""
    log = EventLog(Path(file_path), clock=clock)
    if load:
        log.load()
    return log
