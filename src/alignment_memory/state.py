# Alignment Memory - Behavioral State Context
# SPDX-License-Identifier: AGPL-3.0

from __future__ import annotations
"""
Explicitly constructed context that owns one event log and its projections.
Callers receive this object instead of reaching for process-wide instances.
"""

import logging
from dataclasses import dataclass

from .config import Settings, get_settings
from .constraint_store import ConstraintStore
from .errors import StorageResult
from .event_log import Clock, EventLog, EventType
from .mood_tracker import MoodTracker

logger = logging.getLogger(__name__)


@dataclass
class BehavioralState:
    event_log: EventLog
    constraints: ConstraintStore
    moods: MoodTracker
    load_result: StorageResult | None = None

    def summary(self) -> dict:
        distress = self.moods.get_distress_level()
        return {
            "event_log": str(self.event_log.file_path),
            "events": len(self.event_log),
            "constraints": {
                "hard": len(self.constraints.get_by_type("hard")),
                "soft": len(self.constraints.get_by_type("soft")),
            },
            "mood_observations": len(self.event_log.get_events(EventType.MOOD_RECORDED)),
            "distress_level": distress.level,
            "admonishment_multiplier": self.moods.get_admonishment_multiplier(distress.level),
        }


def open_state(settings: Settings | None = None, clock: Clock | None = None) -> BehavioralState:
    """Load the event log at the configured location and build its projections."""
    settings = settings or get_settings()

    event_log = EventLog(settings.event_log_path, clock=clock)
    load_result = event_log.load()
    if not load_result.ok:
        logger.warning("Starting from an empty event log: %s", load_result.error)

    constraints = ConstraintStore(
        event_log,
        strength_threshold=settings.strength_threshold,
        clock=clock,
    )
    constraints.rebuild()

    moods = MoodTracker(
        event_log,
        distress_threshold=settings.distress_threshold,
        half_life_ms=settings.decay_half_life_ms,
        clock=clock,
    )

    return BehavioralState(
        event_log=event_log,
        constraints=constraints,
        moods=moods,
        load_result=load_result,
    )
