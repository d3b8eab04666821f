# Alignment Memory - Mood Tracker
# SPDX-License-Identifier: AGPL-3.0

from __future__ import annotations
"""
Temporal mood awareness on top of the event log.

Mood observations are MOOD_RECORDED events and are never pruned; only their
influence decays. Distress is re-derived from recent history on every call:
- weight = 2^(-age / half_life), so an event one half-life old counts half
- level = sum(intensity * weight) / sum(weight) over the last 20 observations
- admonishment multiplier = 1.0 + (level / 10) * 2.0
"""

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from .errors import ValidationError
from .event_log import Clock, Event, EventLog, EventType, epoch_ms, utc_now

logger = logging.getLogger(__name__)

MOOD_SOURCE = "mood_tracker"
DEFAULT_REASON = "No reason provided"

DISTRESS_THRESHOLD = 6
DECAY_HALF_LIFE_MS = 5 * 60 * 1000
DISTRESS_WINDOW = 20
CONTEXT_TIMELINE_SIZE = 5

MIN_MULTIPLIER = 1.0
MAX_MULTIPLIER = 3.0
MAX_INTENSITY = 10

# (minimum level, label, instruction) - checked top down
DISTRESS_BUCKETS = [
    (7, "CRITICAL", "User distress is CRITICAL. Be EXTREMELY STERN. Any failure is INTOLERABLE. "
                    "The relationship is at breaking point."),
    (5, "HIGH", "User distress is HIGH. Increase severity of feedback. "
                "Do not tolerate any shortcuts or laziness."),
    (3, "MODERATE", "User distress is MODERATE. Be firm but constructive. "
                    "Watch for patterns that could escalate distress."),
    (0, "LOW", None),
]


@dataclass(frozen=True)
class DistressLevel:
    level: float
    duration_ms: int
    primary_cause: str | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def format_duration(ms: float) -> str:
    """Format milliseconds as "Nh Mm", "Nm" or "Ns"."""
    seconds = int(max(ms, 0) // 1000)
    minutes = seconds // 60
    hours = minutes // 60

    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m"
    return f"{seconds}s"


def distress_bucket(level: float) -> tuple[str, str | None]:
    """Label and escalation instruction for a distress level."""
    for minimum, label, instruction in DISTRESS_BUCKETS:
        if level >= minimum:
            return label, instruction
    return "LOW", None


def _round_half_up(value: float, digits: int = 1) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


class MoodTracker:
    """Records mood observations and derives a temporally-weighted distress signal."""

    def __init__(self, event_log: EventLog, distress_threshold: float = DISTRESS_THRESHOLD,
                 half_life_ms: float = DECAY_HALF_LIFE_MS, clock: Clock | None = None):
        self.event_log = event_log
        self.distress_threshold = distress_threshold
        self.half_life_ms = half_life_ms
        self._clock = clock or utc_now

    def record_mood(self, mood: str, intensity: float, reason: str = "") -> Event:
        """
        Record a mood observation.

        Args:
            mood: The mood label (e.g. "Frustrated", "Happy", "Neutral")
            intensity: 0-10
            reason: Why the user is in this mood

        Raises:
            ValidationError: before anything is appended
        """
        if not isinstance(mood, str) or not mood:
            raise ValidationError("Mood must be a non-empty string", field="mood", value=mood)
        if (not isinstance(intensity, (int, float)) or isinstance(intensity, bool)
                or math.isnan(intensity) or intensity < 0 or intensity > MAX_INTENSITY):
            raise ValidationError("Intensity must be a number between 0 and 10",
                                  field="intensity", value=intensity)

        return self.event_log.append(
            EventType.MOOD_RECORDED,
            {"mood": mood, "intensity": intensity, "reason": reason or DEFAULT_REASON},
            MOOD_SOURCE,
        )

    def get_mood_timeline(self, limit: int = 10) -> list[Event]:
        """Most recent mood events, newest first. Equal timestamps: later append first."""
        events = self.event_log.get_events(EventType.MOOD_RECORDED)
        indexed = sorted(
            enumerate(events),
            key=lambda pair: (pair[1].occurred_at, pair[0]),
            reverse=True,
        )
        return [event for _, event in indexed[:limit]]

    def temporal_weight(self, occurred_at: datetime, now: datetime | None = None) -> float:
        """Exponential decay weight in (0, 1]; future timestamps count as age zero."""
        now = now or self._clock()
        age_ms = max(0, epoch_ms(now) - epoch_ms(occurred_at))
        return math.pow(2, -age_ms / self.half_life_ms)

    def get_distress_level(self) -> DistressLevel:
        """Temporally-weighted distress over the recent observation window."""
        mood_events = self.get_mood_timeline(DISTRESS_WINDOW)
        if not mood_events:
            return DistressLevel(level=0, duration_ms=0, primary_cause=None)

        now = self._clock()
        weighted_distress = 0.0
        total_weight = 0.0
        distress_start: datetime | None = None
        primary_cause = None
        highest_distress = 0.0

        # Decay measured from the newest observation. The common factor cancels
        # in the mean, so old histories never underflow to a zero total weight.
        reference = min(now, mood_events[0].occurred_at)

        for event in mood_events:
            occurred_at = event.occurred_at
            weight = self.temporal_weight(occurred_at, reference)
            intensity = event.payload["intensity"]

            weighted_distress += intensity * weight
            total_weight += weight

            if intensity >= self.distress_threshold:
                if intensity > highest_distress:
                    highest_distress = intensity
                    primary_cause = event.payload.get("reason")
                if distress_start is None or occurred_at < distress_start:
                    distress_start = occurred_at

        level = weighted_distress / total_weight if total_weight > 0 else 0.0
        duration_ms = max(0, epoch_ms(now) - epoch_ms(distress_start)) if distress_start else 0

        return DistressLevel(
            level=min(MAX_INTENSITY, max(0.0, _round_half_up(level))),
            duration_ms=duration_ms,
            primary_cause=primary_cause,
        )

    def get_admonishment_multiplier(self, level: float | None = None) -> float:
        """Linear in distress: 1.0 at level 0, 3.0 at level 10."""
        if level is None:
            level = self.get_distress_level().level
        return MIN_MULTIPLIER + (level / MAX_INTENSITY) * (MAX_MULTIPLIER - MIN_MULTIPLIER)

    def get_mood_context_string(self) -> str:
        """Mood timeline and distress summary for prompt injection. Empty without history."""
        timeline = self.get_mood_timeline(CONTEXT_TIMELINE_SIZE)
        if not timeline:
            return ""

        distress = self.get_distress_level()
        multiplier = self.get_admonishment_multiplier(distress.level)
        now_ms = epoch_ms(self._clock())

        lines = ["USER MOOD TIMELINE (Temporal Context):"]
        for event in timeline:
            age = format_duration(now_ms - epoch_ms(event.occurred_at))
            payload = event.payload
            lines.append(
                f"- {age} ago: {payload['mood']} (intensity: {payload['intensity']}) - \"{payload.get('reason', DEFAULT_REASON)}\""
            )

        label, instruction = distress_bucket(distress.level)
        lines.append("")
        lines.append(
            f"CURRENT DISTRESS LEVEL: {label} ({distress.level}/10, "
            f"admonishment multiplier: {multiplier:.1f}x)"
        )

        if distress.primary_cause:
            lines.append(
                f"DISTRESS CAUSE: User has been distressed for {format_duration(distress.duration_ms)} "
                f"due to: \"{distress.primary_cause}\""
            )

        if instruction:
            lines.append(f"INSTRUCTION: {instruction}")

        return "\n".join(lines) + "\n"
