# Alignment Memory - Main Package
# SPDX-License-Identifier: AGPL-3.0

"""
Alignment Memory - Event-sourced behavioral state for agent supervision.

Components:
- Event Log: Append-only JSONL truth source
- Constraint Store: Hard/soft rules projected from the log, pruned by strength and ttl
- Mood Tracker: Temporally-decayed distress and admonishment multiplier
- Behavioral State: Explicit context owning one log and its projections
"""

from .errors import AlignmentMemoryError, ConstraintNotFoundError, StorageResult, ValidationError
from .event_log import Event, EventLog, EventType, create_event_log
from .constraint_store import ConstraintRecord, ConstraintStore, ConstraintType
from .mood_tracker import DistressLevel, MoodTracker
from .config import Settings, get_settings
from .state import BehavioralState, open_state

__version__ = "0.1.0"

__all__ = [
    "AlignmentMemoryError",
    "ConstraintNotFoundError",
    "StorageResult",
    "ValidationError",
    "Event",
    "EventLog",
    "EventType",
    "create_event_log",
    "ConstraintRecord",
    "ConstraintStore",
    "ConstraintType",
    "DistressLevel",
    "MoodTracker",
    "Settings",
    "get_settings",
    "BehavioralState",
    "open_state",
]
