"""Data models for the activity monitor.

Dataclasses representing recorded events, per-source context and the
periodically recomputed learning snapshots, plus the enums they share.
"""

import math
import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

# Model output is opaque structured data; parsed JSON objects or the
# unstructured wrapper produced by the query layer.
AnalysisResult = dict[str, Any]


class RiskLevel(str, Enum):
    """Risk levels attached to events and source trends."""

    UNKNOWN = "unknown"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def values(cls) -> list[str]:
        """Return list of all risk level values."""
        return [r.value for r in cls]

    @classmethod
    def parse(cls, value: Any) -> "RiskLevel | None":
        """Return the matching level for a loosely formatted value, or None."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @property
    def ordinal(self) -> int:
        """Position on the trend scale (low=1 .. critical=4); unknown counts as low."""
        return _RISK_ORDINALS.get(self, 1)

    @classmethod
    def from_ordinal(cls, ordinal: int) -> "RiskLevel":
        """Inverse of ``ordinal``, clamped to the low..critical range."""
        clamped = min(max(ordinal, 1), 4)
        for level, value in _RISK_ORDINALS.items():
            if value == clamped:
                return level
        return cls.LOW


_RISK_ORDINALS: dict[RiskLevel, int] = {
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.CRITICAL: 4,
}


def aggregate_risk(current: RiskLevel, new: RiskLevel) -> RiskLevel:
    """Smooth a risk trend toward a new level.

    The result is the ceiling of the mean ordinal, so one outlier moves the
    trend by at most half the distance (rounded up).
    """
    return RiskLevel.from_ordinal(math.ceil((current.ordinal + new.ordinal) / 2))


class MonitorState(str, Enum):
    """Lifecycle states of the activity monitor."""

    STOPPED = "stopped"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(UTC)


def new_event_id() -> str:
    """Time-based id with a random suffix."""
    return f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _parse_trend(value: Any) -> RiskLevel:
    level = RiskLevel.parse(value)
    if level is None or level is RiskLevel.UNKNOWN:
        return RiskLevel.LOW
    return level


def parse_instant(value: str | None) -> datetime | None:
    """Parse an ISO-8601 instant; naive values are taken as UTC."""
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; aware ones are returned unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass
class Event:
    """One recorded occurrence from a source."""

    source_id: str
    action: str
    payload: dict[str, Any] = field(default_factory=dict)
    context: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=new_event_id)
    timestamp: datetime = field(default_factory=utc_now)
    analyzed: bool = False
    risk_level: RiskLevel = RiskLevel.UNKNOWN
    analysis: AnalysisResult | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "source_id": self.source_id,
            "action": self.action,
            "payload": self.payload,
            "context": self.context,
            "analyzed": self.analyzed,
            "risk_level": self.risk_level.value,
            "analysis": self.analysis,
        }


@dataclass
class SourceContext:
    """Rolling statistics for one source."""

    total_events: int = 0
    last_event_at: datetime | None = None
    action_counts: dict[str, int] = field(default_factory=dict)
    risk_trend: RiskLevel = RiskLevel.LOW

    def to_dict(self) -> dict[str, Any]:
        """Serialize; action counters become ordered [action, count] pairs."""
        return {
            "total_events": self.total_events,
            "last_event_at": self.last_event_at.isoformat() if self.last_event_at else None,
            "action_counts": [[action, count] for action, count in self.action_counts.items()],
            "risk_trend": self.risk_trend.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SourceContext":
        raw_counts = data.get("action_counts") or []
        if isinstance(raw_counts, dict):
            pairs = list(raw_counts.items())
        else:
            pairs = [(str(a), c) for a, c in raw_counts]
        return cls(
            total_events=int(data.get("total_events", 0)),
            last_event_at=parse_instant(data.get("last_event_at")),
            action_counts={action: int(count) for action, count in pairs},
            risk_trend=_parse_trend(data.get("risk_trend")),
        )


@dataclass
class LearningSnapshot:
    """Derived summary of a source's context, replaced wholesale on each pass."""

    top_actions: list[tuple[str, int]] = field(default_factory=list)
    average_events_per_day: float = 0.0
    risk_trend: RiskLevel = RiskLevel.LOW
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "top_actions": [[action, count] for action, count in self.top_actions],
            "average_events_per_day": self.average_events_per_day,
            "risk_trend": self.risk_trend.value,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LearningSnapshot":
        return cls(
            top_actions=[(str(a), int(c)) for a, c in data.get("top_actions") or []],
            average_events_per_day=float(data.get("average_events_per_day", 0.0)),
            risk_trend=_parse_trend(data.get("risk_trend")),
            updated_at=parse_instant(data.get("updated_at")) or utc_now(),
        )
