# Alignment Memory - Constraint Store
# SPDX-License-Identifier: AGPL-3.0

from __future__ import annotations
"""
Constraint store: behavioral rules and preferences projected from the event log.

State per key: absent -> active(hard|soft) -> absent.
Every mutation is appended to the log before it takes effect locally, and the
local map must always equal a full replay of the log followed by pruning.

Pruning (evaluated on every rebuild):
- soft constraints below the strength threshold are dropped
- any constraint with a ttl is dropped once created_at + ttl has passed
- hard constraints otherwise persist until obsoleted or contradicted
"""

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from .errors import ConstraintNotFoundError, ValidationError
from .event_log import Clock, Event, EventLog, EventType, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

STRENGTH_THRESHOLD = 0.15

_UNSET: Any = object()


class ConstraintType(str, Enum):
    HARD = "hard"
    SOFT = "soft"


@dataclass(frozen=True)
class ConstraintRecord:
    """A projected constraint. Never stored directly."""
    key: str
    value: str
    strength: float
    type: str
    source_event_id: str
    ttl: float | None
    created_at: str

    @property
    def expires_at(self) -> datetime | None:
        if self.ttl is None:
            return None
        return parse_timestamp(self.created_at) + timedelta(seconds=self.ttl)

    def is_expired(self, now: datetime) -> bool:
        expires_at = self.expires_at
        return expires_at is not None and now > expires_at

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ===== Validation =====

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)


def _validate_key(key: Any) -> None:
    if not isinstance(key, str) or not key:
        raise ValidationError("Constraint key must be a non-empty string", field="key", value=key)


def _validate_value(value: Any) -> None:
    if not isinstance(value, str) or not value:
        raise ValidationError("Constraint value must be a non-empty string", field="value", value=value)


def _validate_type(constraint_type: Any) -> str:
    if constraint_type not in (ConstraintType.HARD.value, ConstraintType.SOFT.value):
        raise ValidationError("Constraint type must be 'hard' or 'soft'", field="type", value=constraint_type)
    return ConstraintType(constraint_type).value


def _validate_strength(strength: Any) -> float:
    if not _is_number(strength) or strength < 0 or strength > 1:
        raise ValidationError("Constraint strength must be between 0 and 1", field="strength", value=strength)
    return strength


def _validate_ttl(ttl: Any) -> float | None:
    if ttl is None:
        return None
    if not _is_number(ttl) or ttl < 0:
        raise ValidationError("Constraint ttl must be a non-negative number of seconds", field="ttl", value=ttl)
    return ttl


# ===== Projection =====

def record_from_added(event: Event) -> ConstraintRecord:
    payload = event.payload
    strength = payload.get("strength")
    constraint_type = payload.get("type")
    return ConstraintRecord(
        key=payload["key"],
        value=payload["value"],
        strength=1.0 if strength is None else strength,
        type=constraint_type or ConstraintType.HARD.value,
        source_event_id=event.event_id,
        ttl=payload.get("ttl"),
        created_at=event.timestamp,
    )


def apply_event(state: dict[str, ConstraintRecord], event: Event) -> dict[str, ConstraintRecord]:
    """
    Reducer for constraint events. Non-constraint events pass through.

    CONSTRAINT_ADDED sets or overwrites the key; CONSTRAINT_UPDATED merges into an
    existing record (no-op when absent); OBSOLETED and CONTRADICTED delete.
    """
    event_type = event.event_type
    payload = event.payload

    if event_type == EventType.CONSTRAINT_ADDED.value:
        record = record_from_added(event)
        state[record.key] = record

    elif event_type == EventType.CONSTRAINT_UPDATED.value:
        existing = state.get(payload.get("key"))
        if existing is not None:
            state[existing.key] = ConstraintRecord(
                key=existing.key,
                value=existing.value if payload.get("value") is None else payload["value"],
                strength=existing.strength if payload.get("strength") is None else payload["strength"],
                type=existing.type if payload.get("type") is None else payload["type"],
                source_event_id=event.event_id,
                ttl=payload["ttl"] if "ttl" in payload else existing.ttl,
                created_at=existing.created_at,
            )

    elif event_type in (EventType.CONSTRAINT_OBSOLETED.value, EventType.CONSTRAINT_CONTRADICTED.value):
        state.pop(payload.get("key"), None)

    return state


class ConstraintStore:
    """
    Canonical set of active constraints, projected from an EventLog.

    The store exclusively owns its key -> record map and rebuilds it wholesale
    from the log whenever correctness is in question.
    """

    def __init__(self, event_log: EventLog, strength_threshold: float = STRENGTH_THRESHOLD,
                 clock: Clock | None = None):
        self.event_log = event_log
        self.strength_threshold = strength_threshold
        self._clock = clock or utc_now
        self._constraints: dict[str, ConstraintRecord] = {}

    # ===== Projection =====

    def rebuild(self) -> None:
        """Recompute the projection by replaying the whole log, then prune."""
        self._constraints = self.event_log.replay(apply_event, {})
        self.prune()

    def prune(self, now: datetime | None = None) -> list[str]:
        """
        Drop expired constraints and weak soft constraints.

        Returns:
            Keys removed by this pass
        """
        now = now or self._clock()
        removed = []
        for key, record in list(self._constraints.items()):
            if record.is_expired(now):
                removed.append(key)
            elif record.type == ConstraintType.SOFT.value and record.strength < self.strength_threshold:
                removed.append(key)

        for key in removed:
            del self._constraints[key]
        if removed:
            logger.debug("Pruned constraints: %s", ", ".join(removed))
        return removed

    # ===== Mutations =====

    def add(self, key: str, value: str, strength: float = 1.0,
            constraint_type: str = ConstraintType.HARD.value,
            ttl: float | None = None) -> ConstraintRecord | None:
        """
        Add (or overwrite) a constraint.

        Args:
            key: Unique identifier for the constraint
            value: The rule content
            strength: 0-1, soft constraints below the threshold are pruned
            constraint_type: "hard" or "soft"
            ttl: Optional lifetime in seconds

        Returns:
            The active record, or None if pruning removed it straight away

        Raises:
            ValidationError: before anything is appended
        """
        _validate_key(key)
        _validate_value(value)
        constraint_type = _validate_type(constraint_type)
        strength = _validate_strength(strength)
        ttl = _validate_ttl(ttl)

        event = self.event_log.append(
            EventType.CONSTRAINT_ADDED,
            {"key": key, "value": value, "strength": strength, "type": constraint_type, "ttl": ttl},
        )

        self._constraints[key] = record_from_added(event)
        self.prune()
        return self._constraints.get(key)

    def update(self, key: str, *, value: str | None = _UNSET, strength: float | None = _UNSET,
               constraint_type: str | None = _UNSET, ttl: float | None = _UNSET) -> ConstraintRecord | None:
        """
        Update fields of an active constraint. Fields not given keep their value;
        ttl=None given explicitly removes the expiry.

        Raises:
            ConstraintNotFoundError: the key is not active
            ValidationError: a given field is invalid
        """
        if not self.has(key):
            raise ConstraintNotFoundError(key)

        updates: dict[str, Any] = {}
        if value is not _UNSET and value is not None:
            _validate_value(value)
            updates["value"] = value
        if strength is not _UNSET and strength is not None:
            updates["strength"] = _validate_strength(strength)
        if constraint_type is not _UNSET and constraint_type is not None:
            updates["type"] = _validate_type(constraint_type)
        if ttl is not _UNSET:
            updates["ttl"] = _validate_ttl(ttl)

        self.event_log.append(EventType.CONSTRAINT_UPDATED, {"key": key, **updates})

        self.rebuild()
        return self._constraints.get(key)

    def obsolete(self, key: str, reason: str = "explicitly removed") -> Event | None:
        """Mark a constraint obsolete. Absent keys are a no-op and return None."""
        return self._remove(EventType.CONSTRAINT_OBSOLETED, key, reason)

    def contradict(self, key: str, reason: str = "contradicted") -> Event | None:
        """Mark a constraint as proven false. Same projection effect as obsolete."""
        return self._remove(EventType.CONSTRAINT_CONTRADICTED, key, reason)

    def _remove(self, event_type: EventType, key: str, reason: str) -> Event | None:
        if not self.has(key):
            logger.debug("Skipping %s for absent constraint %r", event_type.value, key)
            return None

        event = self.event_log.append(event_type, {"key": key, "reason": reason})
        del self._constraints[key]
        return event

    def clear(self) -> int:
        """Obsolete every active constraint. Returns how many were removed."""
        keys = list(self._constraints)
        for key in keys:
            self.obsolete(key, "bulk clear")
        return len(keys)

    # ===== Queries =====

    def get_all(self) -> list[ConstraintRecord]:
        return list(self._constraints.values())

    def get_by_type(self, constraint_type: str) -> list[ConstraintRecord]:
        return [c for c in self._constraints.values() if c.type == constraint_type]

    def has(self, key: str) -> bool:
        return key in self._constraints

    def get(self, key: str) -> ConstraintRecord | None:
        return self._constraints.get(key)

    def __len__(self) -> int:
        return len(self._constraints)

    def get_canonical_state_string(self) -> str:
        """
        Render active constraints for a consumer's textual context, one per line:
        "[HARD] value", "[SOFT] value" or "[SOFT] (strength: 0.2) value".
        """
        lines = []
        for c in self._constraints.values():
            type_marker = "[HARD]" if c.type == ConstraintType.HARD.value else "[SOFT]"
            strength_marker = f" (strength: {c.strength})" if c.strength < 1.0 else ""
            lines.append(f"{type_marker}{strength_marker} {c.value}")
        return "\n".join(lines)
